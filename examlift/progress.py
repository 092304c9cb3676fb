"""
Progress bookkeeping after each practice answer and mock submission.
Reads current counters through DatabaseClient, runs the pure evaluators,
and writes the results back.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional

from examlift.achievements import PracticeStats, aggregate_stats, evaluate_achievements
from examlift.database import DatabaseClient
from examlift.errors import PersistenceError
from examlift.models import Achievement, AttemptResult, ProgressRecord, StreakRecord
from examlift.streaks import ClockSkewError, evaluate_streak

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ProgressTracker:
    def __init__(self, db: DatabaseClient, today: Callable[[], date] = utc_today):
        self.db = db
        self.today = today

    def record_answer(self, user_id: str, topic_id: str, is_correct: bool) -> ProgressRecord:
        """Increment the (user, topic) counters, creating the row on first answer."""
        existing = self.db.get_progress_record(user_id, topic_id)
        if existing is None:
            record = ProgressRecord(
                user_id=user_id,
                topic_id=topic_id,
                questions_attempted=1,
                questions_correct=1 if is_correct else 0,
            )
            self.db.insert_progress(record)
            return record

        existing.questions_attempted += 1
        if is_correct:
            existing.questions_correct += 1
        self.db.update_progress(existing, datetime.now(timezone.utc).isoformat())
        return existing

    def update_streak(self, user_id: str, today: Optional[date] = None) -> Optional[StreakRecord]:
        """Apply today's practice to the streak. At most one write; none on same-day or clock skew."""
        today = today or self.today()
        previous = self.db.get_streak(user_id)
        try:
            updated = evaluate_streak(previous, today)
        except ClockSkewError as e:
            logger.warning("Skipping streak update for %s: %s", user_id, e)
            return previous

        if previous is None:
            self.db.insert_streak(user_id, updated)
            logger.info("Started streak for %s", user_id)
        elif updated != previous:
            self.db.update_streak(updated)
            logger.info("Streak for %s now %d (longest %d)", user_id, updated.current_streak, updated.longest_streak)
        return updated

    def load_stats(self, user_id: str) -> PracticeStats:
        return aggregate_stats(self.db.get_progress(user_id), self.db.get_streak(user_id))

    def check_achievements(self, user_id: str) -> List[Achievement]:
        """
        Record and return every achievement the user has just earned.

        Each unlock is saved on its own. One that fails to save is logged and left
        out; it is still unearned, so the next check offers it again. Every unlock
        that was saved is returned.
        """
        catalog = self.db.get_achievements()
        if not catalog:
            return []
        stats = self.load_stats(user_id)
        unlocked = evaluate_achievements(stats, catalog, self.db.get_unlocked_achievement_ids(user_id))
        saved = []
        for achievement in unlocked:
            try:
                self.db.insert_user_achievement(user_id, achievement.id)
            except PersistenceError as e:
                logger.warning("Achievement %s for %s not saved: %s", achievement.id, user_id, e)
                continue
            saved.append(achievement)
            logger.info("User %s unlocked achievement %s (%s)", user_id, achievement.id, achievement.name)
        return saved

    def practice_answer(self, user_id: str, topic_id: str, is_correct: bool) -> List[Achievement]:
        self.record_answer(user_id, topic_id, is_correct)
        return self.check_achievements(user_id)

    def submit_attempt(self, user_id: str, result: AttemptResult) -> Optional[str]:
        """Persist a finished mock exam. Returns the stored attempt id."""
        row = self.db.insert_attempt(result.to_row(user_id))
        return row.get("id")
