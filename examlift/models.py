"""Row-backed entities. Rows come from Supabase as plain dicts."""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from engine import OPTION_LABELS


class ConditionType(str, Enum):
    QUESTIONS = "questions"
    STREAK = "streak"
    ACCURACY = "accuracy"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class BadgeColor(str, Enum):
    BLUE = "blue"
    PURPLE = "purple"
    GOLD = "gold"
    ORANGE = "orange"
    GREEN = "green"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BadgeColor":
        try:
            return cls(value)
        except ValueError:
            return cls.BLUE


class AchievementIcon(str, Enum):
    TARGET = "Target"
    TROPHY = "Trophy"
    AWARD = "Award"
    CROWN = "Crown"
    FLAME = "Flame"
    ZAP = "Zap"
    STAR = "Star"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AchievementIcon":
        try:
            return cls(value)
        except ValueError:
            return cls.AWARD


def parse_date(value) -> Optional[date]:
    """Accept a date, a datetime or an ISO string ('2024-01-02' or a full timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class AuthUser:
    id: str
    email: str
    username: str
    avatar: Optional[str] = None
    is_admin: bool = False


@dataclass
class ExamType:
    id: str
    name: str
    description: str = ""

    @classmethod
    def from_row(cls, row: Dict) -> "ExamType":
        return cls(id=row["id"], name=row.get("name", ""), description=row.get("description") or "")


@dataclass
class Track:
    id: str
    name: str
    color_code: str = "blue"

    @classmethod
    def from_row(cls, row: Dict) -> "Track":
        return cls(id=row["id"], name=row.get("name", ""), color_code=row.get("color_code") or "blue")


@dataclass
class Subject:
    id: str
    name: str
    track_id: Optional[str] = None
    is_compulsory: bool = False

    @classmethod
    def from_row(cls, row: Dict) -> "Subject":
        return cls(
            id=row["id"],
            name=row.get("name", ""),
            track_id=row.get("track_id"),
            is_compulsory=bool(row.get("is_compulsory")),
        )


@dataclass
class Topic:
    id: str
    subject_id: str
    name: str
    description: Optional[str] = None
    subject_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Topic":
        subject = row.get("subject") or {}
        return cls(
            id=row["id"],
            subject_id=row.get("subject_id", ""),
            name=row.get("name", ""),
            description=row.get("description"),
            subject_name=subject.get("name"),
        )


@dataclass(frozen=True)
class Question:
    """A four-option multiple choice question. Immutable once authored."""

    id: str
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: str
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    topic_id: Optional[str] = None
    exam_type_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Question":
        return cls(
            id=str(row["id"]),
            question_text=row.get("question_text", ""),
            option_a=row.get("option_a", ""),
            option_b=row.get("option_b", ""),
            option_c=row.get("option_c", ""),
            option_d=row.get("option_d", ""),
            correct_answer=(row.get("correct_answer") or "").upper(),
            explanation=row.get("explanation"),
            difficulty=row.get("difficulty"),
            topic_id=row.get("topic_id"),
            exam_type_id=row.get("exam_type_id"),
        )

    def options(self) -> List[Tuple[str, str]]:
        texts = (self.option_a, self.option_b, self.option_c, self.option_d)
        return list(zip(OPTION_LABELS, texts))


@dataclass
class MockExam:
    id: str
    name: str
    duration_minutes: int
    total_questions: int
    exam_type_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "MockExam":
        return cls(
            id=row["id"],
            name=row.get("name", ""),
            duration_minutes=int(row.get("duration_minutes") or 0),
            total_questions=int(row.get("total_questions") or 0),
            exam_type_id=row.get("exam_type_id"),
        )

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one submitted mock exam. Persisted once, never changed."""

    mock_exam_id: str
    score: int
    total_questions: int
    time_taken_seconds: int
    answers: Dict[str, str] = field(default_factory=dict)
    auto_submitted: bool = False

    def to_row(self, user_id: str) -> Dict:
        return {
            "user_id": user_id,
            "mock_exam_id": self.mock_exam_id,
            "score": self.score,
            "total_questions": self.total_questions,
            "time_taken_seconds": self.time_taken_seconds,
            "answers": dict(self.answers),
        }

    @classmethod
    def from_row(cls, row: Dict) -> "AttemptResult":
        return cls(
            mock_exam_id=row.get("mock_exam_id", ""),
            score=int(row.get("score") or 0),
            total_questions=int(row.get("total_questions") or 0),
            time_taken_seconds=int(row.get("time_taken_seconds") or 0),
            answers=dict(row.get("answers") or {}),
        )


@dataclass
class ProgressRecord:
    user_id: str
    topic_id: str
    questions_attempted: int = 0
    questions_correct: int = 0
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "ProgressRecord":
        return cls(
            id=row.get("id"),
            user_id=row.get("user_id", ""),
            topic_id=row.get("topic_id", ""),
            questions_attempted=int(row.get("questions_attempted") or 0),
            questions_correct=int(row.get("questions_correct") or 0),
        )


@dataclass(frozen=True)
class StreakRecord:
    current_streak: int
    longest_streak: int
    last_practice_date: date
    total_practice_days: int
    user_id: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "StreakRecord":
        return cls(
            id=row.get("id"),
            user_id=row.get("user_id"),
            current_streak=int(row.get("current_streak") or 0),
            longest_streak=int(row.get("longest_streak") or 0),
            last_practice_date=parse_date(row.get("last_practice_date")),
            total_practice_days=int(row.get("total_practice_days") or 0),
        )

    def to_row(self) -> Dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_practice_date": self.last_practice_date.isoformat(),
            "total_practice_days": self.total_practice_days,
        }


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    condition_type: str
    condition_value: int
    description: str = ""
    icon: AchievementIcon = AchievementIcon.AWARD
    badge_color: BadgeColor = BadgeColor.BLUE

    @classmethod
    def from_row(cls, row: Dict) -> "Achievement":
        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            condition_type=row.get("condition_type", ""),
            condition_value=int(row.get("condition_value") or 0),
            description=row.get("description") or "",
            icon=AchievementIcon.parse(row.get("icon")),
            badge_color=BadgeColor.parse(row.get("badge_color")),
        )


@dataclass(frozen=True)
class UnlockedAchievement:
    user_id: str
    achievement_id: str
    earned_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "UnlockedAchievement":
        return cls(
            user_id=row.get("user_id", ""),
            achievement_id=str(row["achievement_id"]),
            earned_at=row.get("earned_at"),
        )


@dataclass
class ChatMessage:
    user_id: str
    message: str
    role: str
    created_at: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict) -> "ChatMessage":
        return cls(
            id=row.get("id"),
            user_id=row.get("user_id", ""),
            message=row.get("message", ""),
            role=row.get("role", "user"),
            created_at=row.get("created_at"),
        )

    def to_row(self) -> Dict:
        return {"user_id": self.user_id, "message": self.message, "role": self.role}


@dataclass
class LeaderboardEntry:
    id: str
    username: str
    rank: int
    total_correct: int = 0
    total_attempted: int = 0
    accuracy_percentage: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0

    @classmethod
    def from_row(cls, row: Dict) -> "LeaderboardEntry":
        return cls(
            id=row["id"],
            username=row.get("username", ""),
            rank=int(row.get("rank") or 0),
            total_correct=int(row.get("total_correct") or 0),
            total_attempted=int(row.get("total_attempted") or 0),
            accuracy_percentage=float(row.get("accuracy_percentage") or 0),
            current_streak=int(row.get("current_streak") or 0),
            longest_streak=int(row.get("longest_streak") or 0),
        )
