"""Exam engine: timer, answer tracking, scoring, exam and practice sessions."""
import asyncio

import pytest

from conftest import make_question
from examlift.engine import (
    AnswerTracker,
    ExamSession,
    PracticeSession,
    SessionClosedError,
    SessionTimer,
    TimerState,
    format_time,
    percentage,
    performance_message,
    score_answers,
    start_exam,
)
from examlift.errors import NotFoundError
from examlift.models import MockExam, Question


def questions(*correct):
    return [Question.from_row(make_question(f"q{i}", c)) for i, c in enumerate(correct, 1)]


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


# ============= Scoring =============

def test_score_counts_unanswered_and_invalid_as_wrong():
    qs = questions("A", "B", "C", "D")
    score, total = score_answers(qs, {"q1": "A", "q2": "B", "q3": "X", "q4": "D"})
    assert (score, total) == (3, 4)


def test_score_skipped_questions():
    qs = questions("A", "B", "C")
    assert score_answers(qs, {"q2": "B"}) == (1, 3)
    assert score_answers([], {}) == (0, 0)


# ============= Timer =============

def test_timer_rejects_non_positive_duration():
    with pytest.raises(ValueError):
        SessionTimer(0)


def test_one_second_timer_expires_exactly_once():
    fired = []
    timer = SessionTimer(1, on_expire=lambda: fired.append(timer.remaining))
    assert timer.tick() is True
    assert timer.tick() is False
    assert fired == [0]
    assert timer.state is TimerState.STOPPED
    assert timer.expired


def test_timer_counts_down_one_per_tick():
    timer = SessionTimer(3)
    timer.tick()
    assert timer.remaining == 2
    assert timer.elapsed == 1
    assert timer.running


def test_advance_to_replays_missed_ticks():
    fired = []
    timer = SessionTimer(10, on_expire=lambda: fired.append(1))
    assert timer.advance_to(3) is False
    assert timer.remaining == 7
    timer.advance_to(2)
    assert timer.remaining == 7
    assert timer.advance_to(50) is True
    assert timer.remaining == 0
    assert fired == [1]


def test_stopped_timer_ignores_ticks():
    fired = []
    timer = SessionTimer(2, on_expire=lambda: fired.append(1))
    timer.stop()
    assert timer.tick() is False
    assert timer.remaining == 2
    assert fired == []


def test_started_timer_runs_to_expiry():
    fired = []

    async def fast_sleep(_seconds):
        await asyncio.sleep(0)

    async def main():
        timer = SessionTimer(3, on_expire=lambda: fired.append(timer.remaining), sleep=fast_sleep)
        await timer.start()
        return timer

    timer = asyncio.run(main())
    assert fired == [0]
    assert not timer.running


def test_teardown_cancels_pending_tick():
    fired = []

    async def main():
        never = asyncio.Event()

        async def blocked_sleep(_seconds):
            await never.wait()

        timer = SessionTimer(5, on_expire=lambda: fired.append(1), sleep=blocked_sleep)
        task = timer.start()
        await asyncio.sleep(0)
        timer.teardown()
        with pytest.raises(asyncio.CancelledError):
            await task
        return timer, task

    timer, task = asyncio.run(main())
    assert task.cancelled()
    assert timer.remaining == 5
    assert fired == []


# ============= Answer tracker =============

def test_tracker_overwrites_and_freezes():
    tracker = AnswerTracker(["q1", "q2"])
    tracker.record("q1", "A")
    tracker.record("q1", "C")
    assert tracker.get("q1") == "C"
    assert len(tracker) == 1
    assert "q2" not in tracker
    tracker.close()
    with pytest.raises(SessionClosedError):
        tracker.record("q2", "B")


def test_tracker_rejects_unknown_question():
    tracker = AnswerTracker(["q1"])
    with pytest.raises(NotFoundError):
        tracker.record("nope", "A")


# ============= Exam session =============

def test_manual_submit_is_idempotent():
    clock = FakeClock()
    submitted = []
    session = ExamSession("m1", questions("A", "B"), 60, on_submit=submitted.append, clock=clock)
    session.answer("q1", "A")
    session.answer("q2", "C")
    clock.now += 42

    first = session.submit()
    second = session.submit()

    assert first is second
    assert (first.score, first.total_questions) == (1, 2)
    assert first.time_taken_seconds == 42
    assert first.answers == {"q1": "A", "q2": "C"}
    assert not first.auto_submitted
    assert submitted == [first]
    assert session.status == "submitted"
    assert not session.timer.running


def test_answering_after_submit_fails():
    session = ExamSession("m1", questions("A"), 60, clock=FakeClock())
    session.submit()
    with pytest.raises(SessionClosedError):
        session.answer("q1", "A")


def test_expiry_auto_submits_once():
    clock = FakeClock()
    submitted = []
    session = ExamSession("m1", questions("A", "B"), 60, on_submit=submitted.append, clock=clock)
    session.answer("q1", "A")
    clock.now += 75

    assert session.sync_clock() is True
    assert session.sync_clock() is False
    assert len(submitted) == 1
    result = session.result
    assert result.auto_submitted
    assert result.time_taken_seconds == 60
    assert result.score == 1
    assert session.remaining_seconds == 0


def test_one_second_exam_auto_submits_once():
    clock = FakeClock()
    submitted = []
    session = ExamSession("m1", questions("A"), 1, on_submit=submitted.append, clock=clock)
    clock.now += 1
    session.sync_clock()
    session.sync_clock()
    session.submit()
    assert len(submitted) == 1
    assert submitted[0].score == 0


def test_teardown_prevents_later_submission():
    clock = FakeClock()
    submitted = []
    session = ExamSession("m1", questions("A"), 60, on_submit=submitted.append, clock=clock)
    session.teardown()
    clock.now += 120
    assert session.sync_clock() is False
    with pytest.raises(SessionClosedError):
        session.submit()
    assert submitted == []
    assert session.status == "abandoned"


def test_teardown_after_submit_keeps_result():
    session = ExamSession("m1", questions("A"), 60, clock=FakeClock())
    result = session.submit()
    session.teardown()
    assert session.status == "submitted"
    assert session.submit() is result


def test_urgent_under_five_minutes():
    clock = FakeClock()
    session = ExamSession("m1", questions("A"), 600, clock=clock)
    assert not session.is_urgent
    clock.now += 301
    session.sync_clock()
    assert session.remaining_seconds == 299
    assert session.is_urgent


def test_navigation_is_clamped():
    session = ExamSession("m1", questions("A", "B", "C"), 60, clock=FakeClock())
    session.go_to(10)
    assert session.current_question().id == "q3"
    session.go_to(-1)
    assert session.current_index == 0
    session.answer("q2", "B")
    assert session.is_answered("q2")
    assert session.answered_count == 1


# ============= Practice session =============

def test_practice_feedback_and_counters():
    session = PracticeSession("t1", questions("A", "B"))
    feedback = session.answer("A")
    assert feedback.is_correct
    assert feedback.explanation == "Because A."
    assert session.answer("B") is None
    assert session.current_answer() == "A"

    assert session.advance() is True
    feedback = session.answer("C")
    assert not feedback.is_correct
    assert feedback.correct_answer == "B"
    assert (session.correct, session.attempted) == (1, 2)
    assert session.advance() is False


# ============= Formatting =============

def test_format_time():
    assert format_time(5400) == "90:00"
    assert format_time(125) == "2:05"
    assert format_time(-3) == "0:00"


def test_percentage_and_message():
    assert percentage(3, 4) == 75
    assert percentage(1, 0) == 0
    assert performance_message(85).startswith("Excellent")
    assert performance_message(60).startswith("Good job")
    assert performance_message(45).startswith("Not bad")
    assert performance_message(10).startswith("Keep practicing")


# ============= Starting a mock exam =============

def test_start_exam_uses_mock_duration():
    mock = MockExam(id="m1", name="JAMB Physics", duration_minutes=2, total_questions=2)
    session = start_exam(mock, questions("A", "B"), clock=FakeClock())
    assert session.mock_exam_id == "m1"
    assert session.remaining_seconds == 120


def test_start_exam_rejects_unplayable_mocks():
    qs = questions("A")
    no_duration = MockExam.from_row({"id": "m1", "name": "Draft", "duration_minutes": None, "total_questions": 1})
    zero_duration = MockExam(id="m2", name="Draft", duration_minutes=0, total_questions=1)
    ok = MockExam(id="m3", name="Ready", duration_minutes=5, total_questions=1)
    for mock, items in ((None, qs), (no_duration, qs), (zero_duration, qs), (ok, [])):
        with pytest.raises(NotFoundError, match="Mock exam not found or has no questions."):
            start_exam(mock, items)
