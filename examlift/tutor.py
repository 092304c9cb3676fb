"""LiftBot: the AI tutor. Forwards the latest student message to a chat-completion API."""
import logging
import os
from typing import Dict, List, Optional, Tuple

import openai

from examlift.database import DatabaseClient
from examlift.errors import ExamLiftError, PersistenceError
from examlift.models import ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "google/gemini-3-flash-preview"
FALLBACK_RESPONSE = "Sorry, I could not generate a response."

SYSTEM_PROMPT = """
You are LiftBot, an AI tutor helping Nigerian students prepare for WAEC, NECO, GCE, JAMB and POST-UTME exams.

What you do:
- Explain difficult concepts in simple terms, step by step.
- Generate practice questions, always with the correct answer and an explanation.
- Share study tips and exam strategies.
- Break complex topics into small, digestible parts.
- Encourage and motivate the student.

How you do it:
- Be friendly and supportive, and write in clear, simple Nigerian English.
- Use examples from the Nigerian curriculum and everyday Nigerian life.
- Aim for understanding over memorization.
"""


class TutorError(ExamLiftError):
    """Tutor request failed. status_code mirrors the HTTP status the gateway would return."""

    def __init__(self, message: str, status_code: int = 500):
        self.status_code = status_code
        super().__init__(message)


class LiftBot:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client=None,
    ):
        self.model = model or os.getenv("LIFTBOT_MODEL") or DEFAULT_MODEL
        if client is None:
            api_key = api_key or os.getenv("LIFTBOT_API_KEY")
            base_url = base_url or os.getenv("LIFTBOT_BASE_URL")
            if not api_key or not base_url:
                logger.error("Missing LIFTBOT_API_KEY or LIFTBOT_BASE_URL")
                raise TutorError("AI service not configured", 500)
            client = openai.OpenAI(api_key=api_key, base_url=base_url)
        self.client = client

    def ask(self, message: str) -> str:
        """Send one message (no prior turns) and return the tutor's reply."""
        if not message or not message.strip():
            raise TutorError("Message is required", 400)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": message},
                ],
            )
        except openai.APIStatusError as e:
            logger.error(f"LiftBot upstream error ({e.status_code}): {e}")
            raise TutorError("AI service error", e.status_code) from e
        except openai.OpenAIError as e:
            logger.error(f"LiftBot error: {e}", exc_info=True)
            raise TutorError("Internal server error", 500) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        return (content or "").strip() or FALLBACK_RESPONSE

    def handle(self, payload: Optional[Dict]) -> Tuple[Dict, int]:
        """Gateway contract: {message} -> ({response}, 200) or ({error}, status_code)."""
        message = (payload or {}).get("message")
        try:
            return {"response": self.ask(message)}, 200
        except TutorError as e:
            return {"error": str(e)}, e.status_code


class TutorChat:
    """Chat page backend. Full history is persisted; only the newest message goes to the model."""

    def __init__(self, db: DatabaseClient, bot: LiftBot):
        self.db = db
        self.bot = bot

    def history(self, user_id: str) -> List[ChatMessage]:
        return self.db.get_chat_history(user_id)

    def send(self, user_id: str, message: str) -> ChatMessage:
        text = (message or "").strip()
        if not text:
            raise TutorError("Message is required", 400)
        self._save(ChatMessage(user_id=user_id, message=text, role="user"))
        reply = ChatMessage(user_id=user_id, message=self.bot.ask(text), role="assistant")
        self._save(reply)
        return reply

    def _save(self, message: ChatMessage):
        # History writes never block the reply.
        try:
            self.db.insert_chat_message(message)
        except PersistenceError as e:
            logger.warning("Chat message for %s not saved: %s", message.user_id, e)

    def clear(self, user_id: str):
        self.db.clear_chat_history(user_id)
