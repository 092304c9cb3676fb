"""
Achievement rules: aggregate practice stats and decide which badges unlock.

Each rule is independent, so the unlocked set does not depend on catalog order;
results are still reported in catalog order so notifications are reproducible.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from engine import ACCURACY_MIN_ATTEMPTS
from examlift.models import Achievement, ConditionType, ProgressRecord, StreakRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PracticeStats:
    total_correct: int = 0
    total_attempted: int = 0
    current_streak: int = 0

    @property
    def accuracy_percent(self) -> float:
        if self.total_attempted <= 0:
            return 0.0
        return self.total_correct * 100 / self.total_attempted


def aggregate_stats(progress: Iterable[ProgressRecord], streak: Optional[StreakRecord] = None) -> PracticeStats:
    """Sum the per-topic counters into one set of user stats."""
    records = list(progress)
    return PracticeStats(
        total_correct=sum(p.questions_correct for p in records),
        total_attempted=sum(p.questions_attempted for p in records),
        current_streak=streak.current_streak if streak else 0,
    )


def is_satisfied(achievement: Achievement, stats: PracticeStats) -> bool:
    threshold = achievement.condition_value
    try:
        condition = ConditionType(achievement.condition_type)
    except ValueError:
        logger.debug("Unknown condition type %r on achievement %s", achievement.condition_type, achievement.id)
        return False

    if condition is ConditionType.QUESTIONS:
        return stats.total_correct >= threshold
    if condition is ConditionType.STREAK:
        return stats.current_streak >= threshold
    # Accuracy over a handful of answers is noise; require a minimum sample first.
    return stats.total_attempted >= ACCURACY_MIN_ATTEMPTS and stats.accuracy_percent >= threshold


def evaluate_achievements(
    stats: PracticeStats,
    catalog: Iterable[Achievement],
    unlocked_ids: Iterable[str],
) -> List[Achievement]:
    """Achievements newly satisfied by `stats`, in catalog order, each at most once."""
    seen: Set[str] = set(unlocked_ids)
    newly_unlocked = []
    for achievement in catalog:
        if achievement.id in seen:
            continue
        if is_satisfied(achievement, stats):
            seen.add(achievement.id)
            newly_unlocked.append(achievement)
    return newly_unlocked


def achievement_progress(achievement: Achievement, stats: PracticeStats) -> Tuple[int, int, float]:
    """(current, target, percent complete) for a locked badge's progress bar."""
    target = achievement.condition_value
    if achievement.condition_type == ConditionType.QUESTIONS.value:
        current = stats.total_correct
    elif achievement.condition_type == ConditionType.STREAK.value:
        current = stats.current_streak
    elif achievement.condition_type == ConditionType.ACCURACY.value:
        current = round(stats.accuracy_percent)
    else:
        current = 0
    if target <= 0:
        return current, target, 100.0
    return current, target, min(current / target * 100, 100.0)
