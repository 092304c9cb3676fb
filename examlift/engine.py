"""
Exam engine: countdown timer, answer tracking, scoring, and session management.
A mock exam is one ExamSession; a topic drill is one PracticeSession. No UI, no I/O.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from engine import TIMER_TICK_SECONDS, URGENT_REMAINING_SECONDS
from examlift.errors import ExamLiftError, NotFoundError
from examlift.models import AttemptResult, MockExam, Question

logger = logging.getLogger(__name__)


class SessionClosedError(ExamLiftError):
    """Raised when answering into a session that was already submitted or torn down."""


class TimerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class SessionTimer:
    """
    Countdown that loses one second per tick and fires on_expire exactly once at zero.

    Stopped is terminal: manual submission, expiry and teardown all stop the timer,
    and a stopped timer ignores further ticks. When driven by start(), stop() also
    cancels the pending sleep so nothing fires after teardown.
    """

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Optional[Callable[[], None]] = None,
        sleep: Callable = asyncio.sleep,
    ):
        if duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be positive, got {duration_seconds}")
        self.duration_seconds = int(duration_seconds)
        self.remaining = self.duration_seconds
        self.state = TimerState.RUNNING
        self.expired = False
        self._on_expire = on_expire
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.state is TimerState.RUNNING

    @property
    def elapsed(self) -> int:
        return self.duration_seconds - self.remaining

    def tick(self) -> bool:
        """Advance one second. Returns True if this tick expired the timer."""
        if not self.running:
            return False
        self.remaining -= 1
        if self.remaining > 0:
            return False
        self.remaining = 0
        self.expired = True
        self.stop()
        logger.info("Timer expired after %ds", self.duration_seconds)
        if self._on_expire is not None:
            self._on_expire()
        return True

    def advance_to(self, elapsed_seconds: int) -> bool:
        """Replay the ticks a rerun-driven UI missed. Returns True if the timer expired."""
        while self.running and self.elapsed < elapsed_seconds:
            if self.tick():
                return True
        return False

    async def run(self):
        while self.running:
            await self._sleep(TIMER_TICK_SECONDS)
            self.tick()

    def start(self) -> asyncio.Task:
        """Schedule run() on the current event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self):
        if self.state is TimerState.STOPPED:
            return
        self.state = TimerState.STOPPED
        task, self._task = self._task, None
        # The expiring tick runs inside the task itself; only a foreign caller cancels it.
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    teardown = stop


class AnswerTracker:
    """question_id -> selected option label. Keys are never removed; close() freezes it."""

    def __init__(self, question_ids: Optional[Iterable[str]] = None):
        self._allowed = set(question_ids) if question_ids is not None else None
        self._answers: Dict[str, str] = {}
        self.closed = False

    def record(self, question_id: str, label: str):
        if self.closed:
            raise SessionClosedError("Answers are closed for this session")
        if self._allowed is not None and question_id not in self._allowed:
            raise NotFoundError(f"Question {question_id} is not part of this session")
        self._answers[question_id] = label

    def get(self, question_id: str) -> Optional[str]:
        return self._answers.get(question_id)

    def close(self):
        self.closed = True

    def as_dict(self) -> Dict[str, str]:
        return dict(self._answers)

    def __contains__(self, question_id) -> bool:
        return question_id in self._answers

    def __len__(self) -> int:
        return len(self._answers)


def score_answers(questions: Sequence[Question], answers: Mapping[str, str]) -> Tuple[int, int]:
    """Count questions whose tracked answer equals the correct option. Unanswered is incorrect."""
    score = sum(1 for q in questions if answers.get(q.id) == q.correct_answer)
    return score, len(questions)


class ExamSession:
    """A single timed mock exam: answers, countdown, and one submission."""

    def __init__(
        self,
        mock_exam_id: str,
        questions: Sequence[Question],
        duration_seconds: int,
        on_submit: Optional[Callable[[AttemptResult], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_id = uuid4()
        self.mock_exam_id = mock_exam_id
        self.questions: List[Question] = list(questions)
        self.answers = AnswerTracker(q.id for q in self.questions)
        self.timer = SessionTimer(duration_seconds, on_expire=self._auto_submit)
        self.on_submit = on_submit
        self.result: Optional[AttemptResult] = None
        self.status = "in_progress"
        self.current_index = 0
        self._clock = clock
        self.started_at = clock()

    @property
    def duration_seconds(self) -> int:
        return self.timer.duration_seconds

    @property
    def remaining_seconds(self) -> int:
        return self.timer.remaining

    @property
    def is_urgent(self) -> bool:
        return self.remaining_seconds < URGENT_REMAINING_SECONDS

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    def is_answered(self, question_id: str) -> bool:
        return question_id in self.answers

    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    def go_to(self, index: int):
        self.current_index = max(0, min(index, len(self.questions) - 1))

    def answer(self, question_id: str, label: str):
        if self.status != "in_progress":
            raise SessionClosedError(f"Session {self.session_id} is {self.status}")
        self.answers.record(question_id, label)

    def sync_clock(self) -> bool:
        """Bring the countdown in line with wall time. Returns True if this expired the exam."""
        if self.status != "in_progress":
            return False
        return self.timer.advance_to(int(self._clock() - self.started_at))

    def submit(self) -> AttemptResult:
        """Score and close the session. Later calls return the same result."""
        if self.result is not None:
            return self.result
        if self.status == "abandoned":
            raise SessionClosedError(f"Session {self.session_id} was torn down")
        self.status = "submitting"
        auto = self.timer.expired
        self.timer.stop()
        self.answers.close()

        score, total = score_answers(self.questions, self.answers.as_dict())
        elapsed = min(int(self._clock() - self.started_at), self.duration_seconds)
        self.result = AttemptResult(
            mock_exam_id=self.mock_exam_id,
            score=score,
            total_questions=total,
            time_taken_seconds=elapsed,
            answers=self.answers.as_dict(),
            auto_submitted=auto,
        )
        self.status = "submitted"
        logger.info(
            "Session %s submitted (%s): score=%d/%d in %ds",
            self.session_id, "auto" if auto else "manual", score, total, elapsed,
        )
        if self.on_submit is not None:
            self.on_submit(self.result)
        return self.result

    def _auto_submit(self):
        self.submit()

    def teardown(self):
        """Navigation away: stop the countdown without submitting."""
        self.timer.stop()
        if self.result is None:
            self.status = "abandoned"
            self.answers.close()
            logger.info("Session %s abandoned", self.session_id)


def start_exam(mock: Optional[MockExam], questions: Sequence[Question], **kwargs) -> ExamSession:
    """Open a timed session for a mock exam. Raises NotFoundError if it cannot be sat."""
    if mock is None or not questions or mock.duration_seconds <= 0:
        raise NotFoundError("Mock exam not found or has no questions.")
    return ExamSession(mock.id, questions, mock.duration_seconds, **kwargs)


@dataclass(frozen=True)
class AnswerFeedback:
    is_correct: bool
    correct_answer: str
    explanation: Optional[str]


class PracticeSession:
    """Topic drill: one answer per question, immediate feedback, running score."""

    def __init__(self, topic_id: str, questions: Sequence[Question]):
        self.topic_id = topic_id
        self.questions: List[Question] = list(questions)
        self.answers = AnswerTracker(q.id for q in self.questions)
        self.current_index = 0
        self.correct = 0
        self.attempted = 0

    def current_question(self) -> Optional[Question]:
        if self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]

    def current_answer(self) -> Optional[str]:
        q = self.current_question()
        return self.answers.get(q.id) if q else None

    def answer(self, label: str) -> Optional[AnswerFeedback]:
        """Answer the current question. A second answer to the same question is ignored."""
        q = self.current_question()
        if q is None or q.id in self.answers:
            return None
        self.answers.record(q.id, label)
        is_correct = label == q.correct_answer
        self.attempted += 1
        if is_correct:
            self.correct += 1
        return AnswerFeedback(is_correct, q.correct_answer, q.explanation)

    def advance(self) -> bool:
        """Move to the next question. Returns False when the drill is finished."""
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
            return True
        self.answers.close()
        return False


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


def percentage(score: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(score / total * 100)


def performance_message(percent: int) -> str:
    if percent >= 80:
        return "Excellent! Keep up the great work!"
    if percent >= 60:
        return "Good job! A bit more practice will get you to excellence."
    if percent >= 40:
        return "Not bad! Focus on your weak areas."
    return "Keep practicing! You will improve with consistent effort."
