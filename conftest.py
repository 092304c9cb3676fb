"""
Shared pytest fixtures: an in-memory stand-in for the Supabase client.

FakeSupabase implements the slice of the postgrest query builder that
DatabaseClient uses (select/insert/upsert/update/delete with eq, in_, or_, order,
limit) plus a tiny auth API. Writes can be made to fail on demand, or to
commit and then lose their response.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from uuid import uuid4

import pytest

path = Path(__file__).resolve().parent
if str(path) not in sys.path:
    sys.path.insert(0, str(path))

from examlift.database import DatabaseClient

UNIQUE_KEYS = {
    "user_progress": ("user_id", "topic_id"),
    "user_streaks": ("user_id",),
    "user_achievements": ("user_id", "achievement_id"),
    "user_track_selection": ("user_id",),
    "mock_questions": ("mock_exam_id", "question_id"),
}
BASE_TIME = datetime(2024, 1, 1)


class FakeAPIError(Exception):
    """What the fake raises where PostgREST would return an error."""


def _text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.count = None
        self.filters = []
        self.ordering = None
        self.max_rows = None

    # operations
    def select(self, columns="*", count=None):
        self.op = "select"
        self.count = count
        return self

    def insert(self, rows):
        self.op = "insert"
        self.payload = rows
        return self

    def upsert(self, rows, on_conflict="id"):
        self.op = "upsert"
        self.payload = rows
        self.conflict_keys = tuple(k.strip() for k in on_conflict.split(","))
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    # filters
    def eq(self, column, value):
        self.filters.append(lambda r: _text(r.get(column)) == _text(value))
        return self

    def in_(self, column, values):
        allowed = {_text(v) for v in values}
        self.filters.append(lambda r: _text(r.get(column)) in allowed)
        return self

    def or_(self, expression):
        clauses = []
        for part in expression.split(","):
            column, op, value = part.split(".", 2)
            assert op == "eq", f"unsupported or_ operator {op}"
            clauses.append((column, value))
        self.filters.append(lambda r: any(_text(r.get(c)) == v for c, v in clauses))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def _matches(self, row) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.db.broken:
            raise FakeAPIError("connection refused")
        if self.op != "select" and self.db.failures.get(self.table, 0) > 0:
            self.db.failures[self.table] -= 1
            raise FakeAPIError(f"write to {self.table} failed")

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            return self.db.respond(self.table, self.db.insert_rows(self.table, self.payload))
        if self.op == "upsert":
            return self.db.respond(self.table, self.db.upsert_rows(self.table, self.payload, self.conflict_keys))
        if self.op == "update":
            changed = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    changed.append(dict(row))
            return SimpleNamespace(data=changed, count=None)
        if self.op == "delete":
            gone = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=gone, count=None)

        found = [dict(r) for r in rows if self._matches(r)]
        if self.ordering:
            column, desc = self.ordering
            found.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        total = len(found)
        if self.max_rows is not None:
            found = found[: self.max_rows]
        return SimpleNamespace(data=found, count=total if self.count else None)


class FakeAuth:
    def __init__(self):
        self.users = {}
        self.session = None

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.users:
            raise FakeAPIError("User already registered")
        metadata = dict(credentials.get("options", {}).get("data", {}))
        user = SimpleNamespace(id=str(uuid4()), email=email, user_metadata=metadata)
        self.users[email] = (credentials["password"], user)
        self.session = SimpleNamespace(user=user)
        return SimpleNamespace(user=user, session=self.session)

    def sign_in_with_password(self, credentials):
        entry = self.users.get(credentials["email"])
        if entry is None or entry[0] != credentials["password"]:
            raise FakeAPIError("Invalid login credentials")
        self.session = SimpleNamespace(user=entry[1])
        return SimpleNamespace(user=entry[1], session=self.session)

    def sign_out(self):
        self.session = None

    def get_session(self):
        return self.session


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.failures = {}
        self.lost_responses = {}
        self.calls = []
        self.broken = False
        self.auth = FakeAuth()
        self._clock = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail_writes(self, table: str, times: int = 1):
        self.failures[table] = times

    def lose_responses(self, table: str, times: int = 1):
        """Commit the next writes to `table`, then fail as if the response timed out."""
        self.lost_responses[table] = times

    def respond(self, table: str, data):
        if self.lost_responses.get(table, 0) > 0:
            self.lost_responses[table] -= 1
            raise TimeoutError(f"read timed out after writing {table}")
        return SimpleNamespace(data=data, count=None)

    def upsert_rows(self, table: str, payload, keys):
        rows = payload if isinstance(payload, list) else [payload]
        existing = self.tables.setdefault(table, [])
        stored = []
        for row in rows:
            match = next(
                (r for r in existing if all(k in row and _text(r.get(k)) == _text(row[k]) for k in keys)),
                None,
            )
            if match is None:
                stored += self.insert_rows(table, [row])
            else:
                match.update(row)
                stored.append(dict(match))
        return stored

    def writes(self, table: str):
        return [op for t, op in self.calls if t == table and op != "select"]

    def insert_rows(self, table: str, payload):
        rows = payload if isinstance(payload, list) else [payload]
        existing = self.tables.setdefault(table, [])
        keys = UNIQUE_KEYS.get(table)
        stored = []
        for row in rows:
            row = dict(row)
            if keys and any(all(_text(r.get(k)) == _text(row.get(k)) for k in keys) for r in existing):
                raise FakeAPIError(f"duplicate key value violates unique constraint on {table}")
            row.setdefault("id", str(uuid4()))
            self._clock += 1
            stamp = (BASE_TIME + timedelta(seconds=self._clock)).isoformat()
            row.setdefault("created_at", stamp)
            if table == "user_mock_attempts":
                row.setdefault("completed_at", stamp)
            existing.append(row)
            stored.append(dict(row))
        return stored

    def seed(self, table: str, rows):
        """Insert fixture rows directly, bypassing failure injection."""
        return self.insert_rows(table, rows)


@pytest.fixture
def fake_client():
    return FakeSupabase()


@pytest.fixture
def db(fake_client):
    return DatabaseClient(fake_client, retry_delay=0)


def make_question(qid: str, correct: str = "A", topic_id: str = "t1", **extra) -> dict:
    row = {
        "id": qid,
        "topic_id": topic_id,
        "question_text": f"Question {qid}?",
        "option_a": "one",
        "option_b": "two",
        "option_c": "three",
        "option_d": "four",
        "correct_answer": correct,
        "explanation": f"Because {correct}.",
        "difficulty": "medium",
    }
    row.update(extra)
    return row
