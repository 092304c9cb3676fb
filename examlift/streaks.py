"""Daily practice streaks. Pure date arithmetic; persistence lives in examlift.progress."""
from dataclasses import replace
from datetime import date
from typing import Optional

from examlift.errors import ExamLiftError
from examlift.models import StreakRecord


class ClockSkewError(ExamLiftError):
    """'today' is earlier than the recorded last practice date."""

    def __init__(self, last_practice_date: date, today: date):
        self.last_practice_date = last_practice_date
        self.today = today
        super().__init__(f"today ({today}) precedes last practice date ({last_practice_date})")


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def evaluate_streak(previous: Optional[StreakRecord], today: date) -> StreakRecord:
    """
    Next streak record after practising on `today`.

    Same day -> the input unchanged. Next day -> streak +1. Any larger gap -> streak
    restarts at 1. longest_streak never decreases. A negative gap raises ClockSkewError.
    """
    if previous is None:
        return StreakRecord(
            current_streak=1,
            longest_streak=1,
            last_practice_date=today,
            total_practice_days=1,
        )

    diff = days_between(previous.last_practice_date, today)
    if diff < 0:
        raise ClockSkewError(previous.last_practice_date, today)
    if diff == 0:
        return previous
    if diff == 1:
        current = previous.current_streak + 1
        return replace(
            previous,
            current_streak=current,
            longest_streak=max(previous.longest_streak, current),
            last_practice_date=today,
            total_practice_days=previous.total_practice_days + 1,
        )
    return replace(
        previous,
        current_streak=1,
        last_practice_date=today,
        total_practice_days=previous.total_practice_days + 1,
    )
