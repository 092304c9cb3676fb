"""
Database operations for ExamLift.
Handles Supabase CRUD for the question bank, progress, streaks, achievements,
mock attempts and tutor chat history.

Reads log and return an empty result on failure. Writes are retried with
exponential backoff and raise PersistenceError once the attempts run out.
"""
import logging
import time
from functools import wraps
from typing import Callable, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from supabase import Client

from engine import (
    CHAT_HISTORY_LIMIT,
    LEADERBOARD_LIMIT,
    PRACTICE_QUESTION_LIMIT,
    QUESTION_CHUNK_SIZE,
    WRITE_MAX_ATTEMPTS,
    WRITE_RETRY_DELAY_SECONDS,
)
from examlift.errors import PersistenceError
from examlift.models import (
    Achievement,
    ChatMessage,
    ExamType,
    LeaderboardEntry,
    MockExam,
    ProgressRecord,
    Question,
    StreakRecord,
    Subject,
    Topic,
    Track,
    UnlockedAchievement,
)

logger = logging.getLogger(__name__)


def with_retry(operation: str):
    """Retry a write method up to self.max_attempts times, doubling the delay each time."""

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            return self.retry(operation, lambda: func(self, *args, **kwargs))

        return wrapper

    return decorator


def with_id(row: Dict) -> Dict:
    """Give a new row its primary key up front so a replayed write targets the same row."""
    return row if row.get("id") else {**row, "id": str(uuid4())}


class DatabaseClient:
    """Wrapper around a Supabase client with ExamLift-specific operations."""

    def __init__(
        self,
        client: Client,
        max_attempts: int = WRITE_MAX_ATTEMPTS,
        retry_delay: float = WRITE_RETRY_DELAY_SECONDS,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay

    def retry(self, operation: str, call: Callable):
        """Run a write up to max_attempts times with exponential backoff, then raise PersistenceError."""
        delay = self.retry_delay
        for attempt in range(1, self.max_attempts + 1):
            try:
                return call()
            except Exception as e:
                if attempt >= self.max_attempts:
                    logger.error("Giving up on %s after %d attempts: %s", operation, attempt, e)
                    raise PersistenceError(operation, e) from e
                logger.warning("Error saving %s (attempt %d/%d): %s", operation, attempt, self.max_attempts, e)
                if delay:
                    time.sleep(delay)
                delay *= 2

    def _upsert(self, operation: str, table: str, rows: List[Dict], on_conflict: str = "id") -> List[Dict]:
        """
        Retried write keyed on `on_conflict`.

        A request can commit and still fail on the way back (read timeout), so every
        retried write is an upsert on a stable key: replaying it rewrites the same row.
        """
        if not rows:
            return []

        def call():
            response = self.client.table(table).upsert(rows, on_conflict=on_conflict).execute()
            return response.data or rows

        return self.retry(operation, call)

    # ============= Catalog =============

    def get_exam_types(self) -> List[ExamType]:
        try:
            response = self.client.table("exam_types").select("*").execute()
            return [ExamType.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching exam types: {e}")
            return []

    def get_tracks(self) -> List[Track]:
        try:
            response = self.client.table("tracks").select("*").execute()
            return [Track.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching tracks: {e}")
            return []

    def get_track(self, track_id: str) -> Optional[Track]:
        try:
            response = self.client.table("tracks").select("*").eq("id", track_id).limit(1).execute()
            return Track.from_row(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error fetching track {track_id}: {e}")
            return None

    def get_subjects_for_track(self, track_id: str) -> List[Subject]:
        """Compulsory subjects plus the ones belonging to the user's track."""
        try:
            response = (
                self.client.table("subjects")
                .select("*")
                .or_(f"is_compulsory.eq.true,track_id.eq.{track_id}")
                .execute()
            )
            return [Subject.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching subjects for track {track_id}: {e}")
            return []

    def get_topics(self, subject_ids: Optional[Iterable[str]] = None) -> List[Topic]:
        try:
            query = self.client.table("topics").select("*, subject:subjects(*)")
            if subject_ids is not None:
                ids = list(subject_ids)
                if not ids:
                    return []
                query = query.in_("subject_id", ids)
            response = query.order("name").execute()
            return [Topic.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching topics: {e}")
            return []

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        try:
            response = (
                self.client.table("topics")
                .select("*, subject:subjects(*)")
                .eq("id", topic_id)
                .limit(1)
                .execute()
            )
            return Topic.from_row(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error fetching topic {topic_id}: {e}")
            return None

    # ============= Questions =============

    def get_practice_questions(self, topic_id: str, limit: int = PRACTICE_QUESTION_LIMIT) -> List[Question]:
        try:
            response = (
                self.client.table("questions")
                .select("*")
                .eq("topic_id", topic_id)
                .limit(limit)
                .execute()
            )
            return [Question.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching questions for topic {topic_id}: {e}")
            return []

    def get_topic_questions(self, topic_id: str) -> List[Question]:
        """All questions for a topic, newest first (admin listing)."""
        try:
            response = (
                self.client.table("questions")
                .select("*")
                .eq("topic_id", topic_id)
                .order("created_at", desc=True)
                .execute()
            )
            return [Question.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching topic questions {topic_id}: {e}")
            return []

    def insert_question(self, row: Dict) -> Dict:
        return self._upsert("question", "questions", [with_id(row)])[0]

    def insert_questions(self, rows: List[Dict], chunk_size: int = QUESTION_CHUNK_SIZE) -> int:
        """Batch insert questions in chunks. Returns the number of rows inserted."""
        total = 0
        n_chunks = (len(rows) + chunk_size - 1) // chunk_size
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i : i + chunk_size]
            logger.info("Inserting chunk %d/%d (%d rows)", i // chunk_size + 1, n_chunks, len(chunk))
            self._upsert("question batch", "questions", [with_id(r) for r in chunk])
            total += len(chunk)
        logger.info(f"Total questions inserted: {total}")
        return total

    @with_retry("question deletion")
    def delete_question(self, question_id: str):
        self.client.table("questions").delete().eq("id", question_id).execute()

    # ============= Mock exams =============

    def get_mock_exams(self, exam_type_id: Optional[str] = None) -> List[MockExam]:
        try:
            query = self.client.table("mock_exams").select("*")
            if exam_type_id:
                query = query.eq("exam_type_id", exam_type_id)
            response = query.order("created_at", desc=True).execute()
            return [MockExam.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching mock exams: {e}")
            return []

    def get_mock_exam(self, mock_exam_id: str) -> Optional[MockExam]:
        try:
            response = self.client.table("mock_exams").select("*").eq("id", mock_exam_id).limit(1).execute()
            return MockExam.from_row(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error fetching mock exam {mock_exam_id}: {e}")
            return None

    def get_mock_exam_questions(self, mock_exam_id: str) -> List[Question]:
        """Questions of a mock exam in their authored order."""
        try:
            links = (
                self.client.table("mock_questions")
                .select("question_id, question_order")
                .eq("mock_exam_id", mock_exam_id)
                .order("question_order")
                .execute()
            )
            ids = [str(r["question_id"]) for r in links.data or []]
            if not ids:
                return []
            response = self.client.table("questions").select("*").in_("id", ids).execute()
            by_id = {str(r["id"]): Question.from_row(r) for r in response.data or []}
            return [by_id[qid] for qid in ids if qid in by_id]
        except Exception as e:
            logger.error(f"Error fetching questions for mock exam {mock_exam_id}: {e}")
            return []

    def insert_mock_exam(self, row: Dict) -> Dict:
        return self._upsert("mock exam", "mock_exams", [with_id(row)])[0]

    def add_mock_questions(self, mock_exam_id: str, question_ids: List[str], start_order: int = 1):
        rows = [
            {"mock_exam_id": mock_exam_id, "question_id": qid, "question_order": start_order + i}
            for i, qid in enumerate(question_ids)
        ]
        self._upsert("mock exam questions", "mock_questions", rows, on_conflict="mock_exam_id,question_id")

    # ============= Track selection =============

    def get_track_selection(self, user_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table("user_track_selection")
                .select("*")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching track selection: {e}")
            return None

    def save_track_selection(self, user_id: str, track_id: str, exam_type_id: str) -> Dict:
        row = {"user_id": user_id, "track_id": track_id, "exam_type_id": exam_type_id}
        return self._upsert("track selection", "user_track_selection", [row], on_conflict="user_id")[0]

    # ============= Progress =============

    def get_progress(self, user_id: str) -> List[ProgressRecord]:
        try:
            response = self.client.table("user_progress").select("*").eq("user_id", user_id).execute()
            return [ProgressRecord.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching progress: {e}")
            return []

    def get_progress_record(self, user_id: str, topic_id: str) -> Optional[ProgressRecord]:
        try:
            response = (
                self.client.table("user_progress")
                .select("*")
                .eq("user_id", user_id)
                .eq("topic_id", topic_id)
                .limit(1)
                .execute()
            )
            return ProgressRecord.from_row(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error fetching progress for topic {topic_id}: {e}")
            return None

    def insert_progress(self, record: ProgressRecord):
        row = {
            "user_id": record.user_id,
            "topic_id": record.topic_id,
            "questions_attempted": record.questions_attempted,
            "questions_correct": record.questions_correct,
        }
        self._upsert("progress", "user_progress", [row], on_conflict="user_id,topic_id")

    @with_retry("progress")
    def update_progress(self, record: ProgressRecord, last_practiced_at: str):
        self.client.table("user_progress").update({
            "questions_attempted": record.questions_attempted,
            "questions_correct": record.questions_correct,
            "last_practiced_at": last_practiced_at,
        }).eq("id", record.id).execute()

    # ============= Streaks =============

    def get_streak(self, user_id: str) -> Optional[StreakRecord]:
        try:
            response = self.client.table("user_streaks").select("*").eq("user_id", user_id).limit(1).execute()
            return StreakRecord.from_row(response.data[0]) if response.data else None
        except Exception as e:
            logger.error(f"Error fetching streak: {e}")
            return None

    def insert_streak(self, user_id: str, record: StreakRecord):
        self._upsert("streak", "user_streaks", [{"user_id": user_id, **record.to_row()}], on_conflict="user_id")

    @with_retry("streak")
    def update_streak(self, record: StreakRecord):
        self.client.table("user_streaks").update(record.to_row()).eq("id", record.id).execute()

    # ============= Achievements =============

    def get_achievements(self) -> List[Achievement]:
        """Full catalog, lowest threshold first."""
        try:
            response = (
                self.client.table("achievements")
                .select("*")
                .order("condition_value")
                .execute()
            )
            return [Achievement.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching achievements: {e}")
            return []

    def get_user_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        try:
            response = (
                self.client.table("user_achievements")
                .select("user_id, achievement_id, earned_at")
                .eq("user_id", user_id)
                .execute()
            )
            return [UnlockedAchievement.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching earned achievements: {e}")
            return []

    def get_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        return {ua.achievement_id for ua in self.get_user_achievements(user_id)}

    def insert_user_achievement(self, user_id: str, achievement_id: str):
        row = {"user_id": user_id, "achievement_id": achievement_id}
        self._upsert("achievement", "user_achievements", [row], on_conflict="user_id,achievement_id")

    # ============= Mock attempts =============

    def insert_attempt(self, row: Dict) -> Dict:
        """Store one submitted attempt. Returns the stored row (with its id)."""
        return self._upsert("mock attempt", "user_mock_attempts", [with_id(row)])[0]

    def get_attempt(self, attempt_id: str) -> Optional[Dict]:
        try:
            response = self.client.table("user_mock_attempts").select("*").eq("id", attempt_id).limit(1).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching attempt {attempt_id}: {e}")
            return None

    def get_attempts(self, user_id: str, limit: int = 10) -> List[Dict]:
        try:
            response = (
                self.client.table("user_mock_attempts")
                .select("*")
                .eq("user_id", user_id)
                .order("completed_at", desc=True)
                .limit(limit)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error(f"Error fetching attempts: {e}")
            return []

    # ============= Leaderboard =============

    def get_leaderboard(self, limit: int = LEADERBOARD_LIMIT) -> List[LeaderboardEntry]:
        try:
            response = self.client.table("leaderboard").select("*").order("rank").limit(limit).execute()
            return [LeaderboardEntry.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Failed to fetch leaderboard: {e}")
            return []

    # ============= Chat history =============

    def get_chat_history(self, user_id: str, limit: int = CHAT_HISTORY_LIMIT) -> List[ChatMessage]:
        try:
            response = (
                self.client.table("chat_history")
                .select("*")
                .eq("user_id", user_id)
                .order("created_at")
                .limit(limit)
                .execute()
            )
            return [ChatMessage.from_row(r) for r in response.data or []]
        except Exception as e:
            logger.error(f"Error fetching chat history: {e}")
            return []

    def insert_chat_message(self, message: ChatMessage):
        self._upsert("chat message", "chat_history", [with_id(message.to_row())])

    @with_retry("chat history deletion")
    def clear_chat_history(self, user_id: str):
        self.client.table("chat_history").delete().eq("user_id", user_id).execute()

    # ============= Profiles & admin =============

    def get_profile(self, user_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table("user_profiles")
                .select("is_admin, username")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching profile {user_id}: {e}")
            return None

    def get_admin_counts(self) -> Dict[str, int]:
        """Row counts for the admin dashboard."""
        out = {}
        for key, table in (
            ("questions", "questions"),
            ("topics", "topics"),
            ("mock_exams", "mock_exams"),
            ("users", "user_profiles"),
        ):
            try:
                r = self.client.table(table).select("id", count="exact").limit(0).execute()
                out[key] = getattr(r, "count", None) or 0
            except Exception as e:
                logger.error(f"Error counting {table}: {e}")
                out[key] = 0
        return out
