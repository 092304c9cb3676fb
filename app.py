"""ExamLift: multi-page exam preparation app (practice, timed mocks, AI tutor)."""
import logging
import os
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_database, get_supabase
from engine import (
    DEFAULT_MOCK_DURATION_MINUTES,
    DEFAULT_MOCK_TOTAL_QUESTIONS,
    MIN_PASSWORD_LENGTH,
    TIMER_TICK_SECONDS,
)
from importer import parse_csv
from examlift.achievements import achievement_progress
from examlift.auth import AuthError, AuthService, SessionContext
from examlift.engine import ExamSession, PracticeSession, format_time, percentage, performance_message, start_exam
from examlift.errors import NotFoundError, PersistenceError, ValidationError
from examlift.models import AchievementIcon, AttemptResult, BadgeColor
from examlift.progress import ProgressTracker
from examlift.tutor import LiftBot, TutorChat, TutorError

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title="ExamLift", layout="wide")

ICONS = {
    AchievementIcon.TARGET: "🎯",
    AchievementIcon.TROPHY: "🏆",
    AchievementIcon.AWARD: "🏅",
    AchievementIcon.CROWN: "👑",
    AchievementIcon.FLAME: "🔥",
    AchievementIcon.ZAP: "⚡",
    AchievementIcon.STAR: "⭐",
}
BADGES = {
    BadgeColor.BLUE: "🔵",
    BadgeColor.PURPLE: "🟣",
    BadgeColor.GOLD: "🟡",
    BadgeColor.ORANGE: "🟠",
    BadgeColor.GREEN: "🟢",
}
RANK_MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def get_context() -> SessionContext:
    if "auth_context" not in st.session_state:
        st.session_state["auth_context"] = SessionContext()
    return st.session_state["auth_context"]


def get_auth() -> AuthService:
    return AuthService(get_supabase(), get_context(), get_database())


def get_tracker() -> ProgressTracker:
    return ProgressTracker(get_database())


def go(page: str, **params):
    st.session_state["page"] = page
    st.session_state.update(params)
    st.rerun()


def end_exam_session():
    """Leaving the mock exam page tears the countdown down so nothing submits later."""
    session = st.session_state.pop("exam_session", None)
    if session is not None:
        session.teardown()


def save_failed(e: PersistenceError):
    st.warning(f"{e}. You can keep going, but this was not saved to your account.")


def notify_unlocks(unlocked):
    for achievement in unlocked:
        st.toast(f"🎉 Achievement Unlocked: {achievement.name}!")


try:
    context = get_context()
    if context.loading:
        get_auth().restore()
except ValueError as e:
    st.error(f"Could not connect. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
    st.stop()

st.sidebar.title("ExamLift")

# ----- Auth -----
if not context.is_authenticated:
    st.header("Welcome to ExamLift")
    st.caption("Practice topics, sit timed mock exams and get help from LiftBot.")
    tab_login, tab_signup = st.tabs(["Sign In", "Create Account"])
    with tab_login:
        with st.form("login"):
            email = st.text_input("Email", placeholder="your@email.com")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign In", type="primary"):
                try:
                    get_auth().sign_in(email, password)
                    go("Dashboard")
                except (ValidationError, AuthError) as e:
                    st.error(str(e))
    with tab_signup:
        with st.form("signup"):
            email = st.text_input("Email", placeholder="your@email.com")
            username = st.text_input("Username", placeholder="Choose a username")
            password = st.text_input("Password", type="password", placeholder=f"min {MIN_PASSWORD_LENGTH} characters")
            if st.form_submit_button("Create Account", type="primary"):
                try:
                    get_auth().sign_up(email, password, username)
                    st.success("Account created successfully!")
                    go("Track Selection")
                except (ValidationError, AuthError) as e:
                    st.error(str(e))
    st.stop()

user = context.require_user()
db = get_database()

nav_pages = ["Dashboard", "Mock Exams", "LiftBot", "Leaderboard", "Achievements"]
if context.is_admin:
    nav_pages.append("Admin")
if "page" not in st.session_state:
    st.session_state["page"] = "Dashboard"


def _on_nav():
    st.session_state["page"] = st.session_state["nav"]


st.sidebar.radio("Navigate", nav_pages, key="nav", on_change=_on_nav, label_visibility="collapsed")
st.sidebar.caption(f"Signed in as {user.username}")
if st.sidebar.button("Logout"):
    try:
        end_exam_session()
        get_auth().sign_out()
        st.session_state.clear()
        st.rerun()
    except AuthError as e:
        st.sidebar.error(str(e))

page = st.session_state["page"]
if page != "Mock Exam":
    end_exam_session()

# Redirect notices survive the rerun that performs the redirect.
flash = st.session_state.pop("flash", None)
if flash:
    st.warning(flash)

# ----- Track Selection -----
if page == "Track Selection":
    st.header("Choose your path")
    if db.get_track_selection(user.id):
        go("Dashboard")
    exam_types = db.get_exam_types()
    tracks = db.get_tracks()
    exam = st.radio("Exam", exam_types, format_func=lambda e: f"{e.name}: {e.description}", index=None)
    track = st.radio("Study track", tracks, format_func=lambda t: t.name, index=None, horizontal=True)
    if st.button("Continue", type="primary"):
        if not exam or not track:
            st.error("Please select both exam type and study track")
        else:
            try:
                db.save_track_selection(user.id, track.id, exam.id)
                st.success("Track selected successfully!")
                go("Dashboard")
            except PersistenceError as e:
                st.error(f"{e}. Please try again.")

# ----- Dashboard -----
elif page == "Dashboard":
    selection = db.get_track_selection(user.id)
    if not selection:
        go("Track Selection")
    track = db.get_track(selection["track_id"])
    st.header(f"Welcome back, {user.username}!")
    st.caption(f"{track.name if track else ''} Track · Continue your exam preparation journey")

    tracker = get_tracker()
    stats = tracker.load_stats(user.id)
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Questions answered", stats.total_attempted)
    with col2:
        st.metric("Accuracy", f"{round(stats.accuracy_percent)}%")
    with col3:
        st.metric("Day streak", stats.current_streak)
    with col4:
        st.metric("Achievements", len(db.get_unlocked_achievement_ids(user.id)))

    progress_by_topic = {p.topic_id: p for p in db.get_progress(user.id)}
    subjects = db.get_subjects_for_track(selection["track_id"])
    topics = db.get_topics([s.id for s in subjects])
    st.subheader("Your subjects")
    if not subjects:
        st.info("No subjects available for your track yet.")
    for subject in subjects:
        subject_topics = [t for t in topics if t.subject_id == subject.id]
        label = f"{subject.name}{' (compulsory)' if subject.is_compulsory else ''} · {len(subject_topics)} topics"
        with st.expander(label):
            for topic in subject_topics:
                c1, c2 = st.columns([4, 1])
                progress = progress_by_topic.get(topic.id)
                with c1:
                    st.write(f"**{topic.name}**")
                    if progress:
                        st.caption(f"{progress.questions_correct}/{progress.questions_attempted} correct")
                with c2:
                    if st.button("Practice", key=f"practice_{topic.id}"):
                        st.session_state.pop("practice_session", None)
                        go("Practice", practice_topic_id=topic.id)

# ----- Practice -----
elif page == "Practice":
    topic_id = st.session_state.get("practice_topic_id")
    topic = db.get_topic(topic_id) if topic_id else None
    if topic is None:
        st.session_state["flash"] = "Topic not found."
        go("Dashboard")

    session = st.session_state.get("practice_session")
    if session is None or session.topic_id != topic.id:
        questions = db.get_practice_questions(topic.id)
        if not questions:
            st.error("No questions available for this topic")
            if st.button("Back to Dashboard"):
                go("Dashboard")
            st.stop()
        session = PracticeSession(topic.id, questions)
        st.session_state["practice_session"] = session
        try:
            get_tracker().update_streak(user.id)
        except PersistenceError as e:
            save_failed(e)

    q = session.current_question()
    st.header(topic.name)
    st.caption(f"{topic.subject_name or ''} · Question {session.current_index + 1} of {len(session.questions)} · Score: {session.correct}/{session.attempted}")
    st.progress((session.current_index + 1) / len(session.questions))
    st.subheader(q.question_text)
    if q.difficulty:
        st.caption(f"Difficulty: {q.difficulty}")

    chosen = session.current_answer()
    if chosen is None:
        options = q.options()
        pick = st.radio(
            "Choose your answer:",
            range(len(options)),
            format_func=lambda i: f"{options[i][0]}. {options[i][1]}",
            key=f"practice_radio_{q.id}",
        )
        if st.button("Submit Answer", type="primary"):
            feedback = session.answer(options[pick][0])
            try:
                notify_unlocks(get_tracker().practice_answer(user.id, topic.id, feedback.is_correct))
            except PersistenceError as e:
                save_failed(e)
            st.rerun()
    else:
        for label, text in q.options():
            if label == q.correct_answer:
                st.success(f"✓ {label}. {text} (Correct Answer)")
            elif label == chosen:
                st.error(f"✗ {label}. {text} (Your Answer)")
            else:
                st.write(f"○ {label}. {text}")
        st.divider()
        if chosen == q.correct_answer:
            st.success("✓ Correct! Well done.")
        else:
            st.error(f"✗ Incorrect. The correct answer is {q.correct_answer}.")
        if q.explanation:
            st.info(q.explanation)

        last = session.current_index >= len(session.questions) - 1
        if st.button("Finish" if last else "Next →", type="primary"):
            if not session.advance():
                st.session_state.pop("practice_session", None)
                st.toast(f"Practice completed! Score: {session.correct}/{session.attempted}")
                go("Dashboard")
            st.rerun()

# ----- Mock Exams -----
elif page == "Mock Exams":
    st.header("Mock Exams")
    st.caption("Full-length practice exams with a real timer")
    selection = db.get_track_selection(user.id)
    mocks = db.get_mock_exams(selection["exam_type_id"] if selection else None)
    if not mocks:
        st.info("No mock exams available yet.")
    for mock in mocks:
        c1, c2 = st.columns([4, 1])
        with c1:
            st.write(f"**{mock.name}**")
            st.caption(f"{mock.total_questions} questions · {mock.duration_minutes} minutes")
        with c2:
            if st.button("Start", key=f"mock_{mock.id}"):
                go("Mock Exam", mock_id=mock.id)

# ----- Mock Exam -----
elif page == "Mock Exam":
    session = st.session_state.get("exam_session")
    if session is None:
        mock = db.get_mock_exam(st.session_state.get("mock_id", ""))
        questions = db.get_mock_exam_questions(mock.id) if mock else []
        try:
            session = start_exam(mock, questions)
        except NotFoundError as e:
            st.session_state["flash"] = str(e)
            go("Dashboard")
        st.session_state["exam_session"] = session
        st.session_state["exam_name"] = mock.name

    if session.result is not None:
        result = session.result
        st.session_state.pop("exam_session", None)
        st.session_state["last_result"] = result
        attempt_id = None
        try:
            attempt_id = get_tracker().submit_attempt(user.id, result)
        except PersistenceError as e:
            save_failed(e)
        how = "Time is up! " if result.auto_submitted else ""
        st.toast(f"{how}Mock exam completed! Score: {result.score}/{result.total_questions}")
        go("Results", attempt_id=attempt_id)

    @st.fragment(run_every=TIMER_TICK_SECONDS)
    def exam_clock(session: ExamSession):
        if session.sync_clock():
            st.rerun(scope="app")
        label = format_time(session.remaining_seconds)
        if session.is_urgent:
            st.error(f"⏰ {label}")
            st.warning("Less than 5 minutes remaining!")
        else:
            st.metric("Time left", label)

    st.header(st.session_state.get("exam_name", "Mock Exam"))
    with st.sidebar:
        exam_clock(session)
        st.caption(f"Answered: {session.answered_count}/{len(session.questions)}")
        if st.button("Exit exam"):
            go("Mock Exams")

    q = session.current_question()
    st.subheader(f"Question {session.current_index + 1} of {len(session.questions)}")
    st.write(q.question_text)
    options = q.options()
    labels = [label for label, _ in options]
    current = session.answers.get(q.id)
    pick = st.radio(
        "Choose one:",
        range(len(options)),
        format_func=lambda i: f"{options[i][0]}. {options[i][1]}",
        index=labels.index(current) if current in labels else None,
        key=f"exam_radio_{session.session_id}_{q.id}",
    )
    if pick is not None and labels[pick] != current:
        session.answer(q.id, labels[pick])

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        if st.button("Previous", disabled=session.current_index == 0):
            session.go_to(session.current_index - 1)
            st.rerun()
    with col2:
        if st.button("Next", disabled=session.current_index >= len(session.questions) - 1):
            session.go_to(session.current_index + 1)
            st.rerun()
    with col3:
        if st.button("Submit exam", type="primary"):
            session.submit()
            st.rerun()

    grid = st.columns(10)
    for i, question in enumerate(session.questions):
        mark = "●" if session.is_answered(question.id) else "○"
        if grid[i % 10].button(f"{mark} {i + 1}", key=f"jump_{i}"):
            session.go_to(i)
            st.rerun()

# ----- Results -----
elif page == "Results":
    attempt_id = st.session_state.get("attempt_id")
    row = db.get_attempt(attempt_id) if attempt_id else None
    result = AttemptResult.from_row(row) if row else st.session_state.get("last_result")
    if result is None:
        st.session_state["flash"] = "Result not found."
        go("Dashboard")

    pct = percentage(result.score, result.total_questions)
    st.header("Exam Results")
    st.subheader(f"{pct}%")
    st.write(performance_message(pct))
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Score", f"{result.score}/{result.total_questions}")
    with col2:
        mins, secs = divmod(result.time_taken_seconds, 60)
        st.metric("Time taken", f"{mins}m {secs}s")
    with col3:
        st.metric("Incorrect / skipped", result.total_questions - result.score)
    st.progress(pct / 100)
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Back to Dashboard"):
            go("Dashboard")
    with c2:
        if st.button("Get Help from LiftBot"):
            go("LiftBot")

# ----- LiftBot -----
elif page == "LiftBot":
    st.header("LiftBot AI Tutor")
    st.caption("Explanations, practice questions and study tips")
    try:
        chat = TutorChat(db, LiftBot())
    except TutorError as e:
        st.error(str(e))
        st.stop()

    for msg in chat.history(user.id):
        with st.chat_message(msg.role):
            st.write(msg.message)

    prompt = st.chat_input("Ask LiftBot anything...")
    if prompt:
        with st.chat_message("user"):
            st.write(prompt)
        with st.spinner("LiftBot is thinking..."):
            try:
                reply = chat.send(user.id, prompt)
                with st.chat_message("assistant"):
                    st.write(reply.message)
            except TutorError as e:
                st.error(f"[Code: {e.status_code}] {e}")

    with st.sidebar:
        confirm = st.checkbox("Yes, clear my chat history")
        if st.button("Clear history", disabled=not confirm):
            try:
                chat.clear(user.id)
                st.toast("Chat history cleared")
                st.rerun()
            except PersistenceError:
                st.error("Failed to clear history")

# ----- Leaderboard -----
elif page == "Leaderboard":
    st.header("Leaderboard")
    st.caption("Top performers based on correct answers and accuracy")
    entries = db.get_leaderboard()
    if not entries:
        st.info("No rankings yet. Be the first to practice and climb the leaderboard!")
    for entry in entries:
        c1, c2, c3, c4 = st.columns([1, 4, 2, 2])
        with c1:
            st.write(RANK_MEDALS.get(entry.rank, f"#{entry.rank}"))
        with c2:
            you = " (You)" if entry.id == user.id else ""
            st.write(f"**{entry.username}**{you}")
            if entry.current_streak > 0:
                st.caption(f"🔥 {entry.current_streak} day streak")
        with c3:
            st.metric("Correct", entry.total_correct)
        with c4:
            st.metric("Accuracy", f"{entry.accuracy_percentage:.0f}%")

# ----- Achievements -----
elif page == "Achievements":
    st.header("Achievements")
    catalog = db.get_achievements()
    earned = {ua.achievement_id: ua for ua in db.get_user_achievements(user.id)}
    stats = get_tracker().load_stats(user.id)
    st.caption(f"{len(earned)} of {len(catalog)} unlocked · {stats.total_correct} correct · {stats.current_streak} day streak · {round(stats.accuracy_percent)}% accuracy")
    cols = st.columns(3)
    for i, achievement in enumerate(catalog):
        with cols[i % 3]:
            with st.container(border=True):
                if achievement.id in earned:
                    st.write(f"{BADGES[achievement.badge_color]} {ICONS[achievement.icon]} **{achievement.name}**")
                    st.caption(achievement.description)
                    st.success("Unlocked")
                else:
                    st.write(f"🔒 **{achievement.name}**")
                    st.caption(achievement.description)
                    current, target, pct = achievement_progress(achievement, stats)
                    st.progress(pct / 100, text=f"{current} / {target}")

# ----- Admin -----
elif page == "Admin":
    if not context.is_admin:
        st.session_state["flash"] = "Admins only."
        go("Dashboard")
    st.header("Admin")
    counts = db.get_admin_counts()
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Questions", counts["questions"])
    col2.metric("Topics", counts["topics"])
    col3.metric("Mock exams", counts["mock_exams"])
    col4.metric("Users", counts["users"])

    topics = db.get_topics()
    exam_types = db.get_exam_types()
    tab_questions, tab_mocks = st.tabs(["Questions", "Mock Exams"])

    with tab_questions:
        topic = st.selectbox("Topic", topics, format_func=lambda t: f"{t.subject_name or ''} · {t.name}", index=None)
        if topic:
            with st.expander("Add question"):
                with st.form("add_question", clear_on_submit=True):
                    text = st.text_area("Question")
                    opts = {label: st.text_input(f"Option {label}") for label in "ABCD"}
                    correct = st.selectbox("Correct answer", list("ABCD"))
                    difficulty = st.selectbox("Difficulty", ["easy", "medium", "hard"], index=1)
                    explanation = st.text_area("Explanation (optional)")
                    exam_type = st.selectbox("Exam type", exam_types, format_func=lambda e: e.name, index=None)
                    if st.form_submit_button("Add question"):
                        if not text or not all(opts.values()):
                            st.error("Question and all four options are required")
                        else:
                            try:
                                db.insert_question({
                                    "topic_id": topic.id,
                                    "exam_type_id": exam_type.id if exam_type else None,
                                    "question_text": text,
                                    "option_a": opts["A"],
                                    "option_b": opts["B"],
                                    "option_c": opts["C"],
                                    "option_d": opts["D"],
                                    "correct_answer": correct,
                                    "explanation": explanation or None,
                                    "difficulty": difficulty,
                                })
                                st.success("Question added successfully!")
                            except PersistenceError as e:
                                st.error(str(e))

            upload = st.file_uploader("Upload CSV", type=["csv"])
            if upload is not None and st.button("Import CSV"):
                rows = parse_csv(upload.getvalue().decode("utf-8"), topic.id)
                if not rows:
                    st.error("No valid questions found in CSV")
                else:
                    try:
                        n = db.insert_questions(rows)
                        st.success(f"Successfully uploaded {n} questions!")
                    except PersistenceError as e:
                        st.error(str(e))

            for question in db.get_topic_questions(topic.id):
                c1, c2 = st.columns([5, 1])
                c1.write(f"{question.question_text} · **{question.correct_answer}**")
                if c2.button("Delete", key=f"del_{question.id}"):
                    try:
                        db.delete_question(question.id)
                        st.toast("Question deleted")
                        st.rerun()
                    except PersistenceError as e:
                        st.error(str(e))

    with tab_mocks:
        with st.form("add_mock", clear_on_submit=True):
            name = st.text_input("Name", placeholder="e.g., JAMB Physics Mock 2025")
            exam_type = st.selectbox("Exam type", exam_types, format_func=lambda e: e.name, index=None)
            duration = st.number_input("Duration (minutes)", min_value=1, value=DEFAULT_MOCK_DURATION_MINUTES)
            total = st.number_input("Total questions", min_value=1, value=DEFAULT_MOCK_TOTAL_QUESTIONS)
            if st.form_submit_button("Create mock exam"):
                if not name:
                    st.error("Name is required")
                else:
                    try:
                        db.insert_mock_exam({
                            "name": name,
                            "exam_type_id": exam_type.id if exam_type else None,
                            "duration_minutes": int(duration),
                            "total_questions": int(total),
                        })
                        st.success("Mock exam created successfully!")
                    except PersistenceError as e:
                        st.error(str(e))

        mocks = db.get_mock_exams()
        mock = st.selectbox("Assign questions to", mocks, format_func=lambda m: m.name, index=None)
        source = st.selectbox("From topic", topics, format_func=lambda t: t.name, index=None, key="mock_source_topic")
        if mock and source:
            existing = {q.id for q in db.get_mock_exam_questions(mock.id)}
            candidates = [q for q in db.get_topic_questions(source.id) if q.id not in existing]
            picked = st.multiselect("Questions", candidates, format_func=lambda q: q.question_text[:80])
            if st.button("Add to mock exam") and picked:
                try:
                    db.add_mock_questions(mock.id, [q.id for q in picked], start_order=len(existing) + 1)
                    st.success(f"Added {len(picked)} questions to {mock.name}")
                except PersistenceError as e:
                    st.error(str(e))
