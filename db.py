"""Supabase client construction. The UI keeps one client per browser session."""
import logging
import os

import streamlit as st
from dotenv import load_dotenv
from supabase import create_client, Client

from examlift.database import DatabaseClient

load_dotenv()

logger = logging.getLogger(__name__)


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def get_supabase() -> Client:
    """Client for the current Streamlit session. The signed-in user's auth session lives on it."""
    if "supabase_client" not in st.session_state:
        logger.info("Creating Supabase client for new browser session")
        st.session_state["supabase_client"] = _env_client()
    return st.session_state["supabase_client"]


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_database() -> DatabaseClient:
    if "database" not in st.session_state:
        st.session_state["database"] = DatabaseClient(get_supabase())
    return st.session_state["database"]


def get_database_uncached() -> DatabaseClient:
    return DatabaseClient(get_supabase_uncached())
