"""Exam simulator front-end: dashboard, timed exam, result page."""
import logging
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_engine
from exam_session.errors import AttemptClosed, ExamSessionError, NotFound
from exam_session.models import AttemptState

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

st.set_page_config(page_title="Exam Simulator", layout="wide")
st.sidebar.title("Exam Simulator")

engine = get_engine()


@st.cache_resource
def get_outcomes() -> dict:
    """Submission outcomes by attempt id, filled from the engine's notification channel (any thread)."""
    outcomes = {}
    engine.subscribe(lambda outcome: outcomes.__setitem__(outcome.session_id, outcome))
    return outcomes


outcomes = get_outcomes()


def format_time(seconds: int) -> str:
    m, s = divmod(max(0, seconds), 60)
    return f"{m:02d}:{s:02d}"


def go(page: str, **params) -> None:
    st.query_params.clear()
    st.query_params["page"] = page
    for k, v in params.items():
        st.query_params[k] = v
    st.rerun()


# The identity provider is outside this app; the user id is taken as given.
user_id = st.sidebar.text_input("User ID", value=st.session_state.get("user_id", ""))
st.session_state["user_id"] = user_id.strip()
if not st.session_state["user_id"]:
    st.info("Enter your user ID in the sidebar to continue.")
    st.stop()

page = st.query_params.get("page", "Dashboard")

# ----- Dashboard -----
if page == "Dashboard":
    st.header("Dashboard")
    try:
        exams = engine.list_exams()
    except ExamSessionError as e:
        st.error(f"Could not load exams. Check DB and .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()
    if not exams:
        st.warning("No active exams.")
    for exam in exams:
        with st.container(border=True):
            st.subheader(exam.title)
            st.write(exam.description)
            st.caption(f"{exam.duration_minutes} min · pass mark {exam.passing_score if exam.passing_score is not None else '-'}%")
            if st.button("Start / resume", key=f"start_{exam.id}", type="primary"):
                go("Exam", exam=exam.id)

# ----- Exam -----
elif page == "Exam":
    exam_id = st.query_params.get("exam")
    attempt_key = f"attempt_{exam_id}"
    known = st.session_state.get(attempt_key)
    if known in outcomes:
        st.session_state.pop(attempt_key, None)
        st.toast(outcomes[known].message)
        go("Result", session=known)
    try:
        view = engine.view(known) if known else engine.start(exam_id, st.session_state["user_id"])
        st.session_state[attempt_key] = view.session_id
    except NotFound as e:
        st.error(f"Exam not available: {e}")
        if st.button("Back to dashboard"):
            go("Dashboard")
        st.stop()
    except ExamSessionError as e:
        st.error(f"Failed to initialize exam: {e}")
        st.stop()

    session_id = view.session_id
    if view.resumed and st.session_state.get("resumed_notice") != session_id:
        st.session_state["resumed_notice"] = session_id
        st.toast(f"Resumed your attempt with {format_time(view.remaining_seconds)} left")

    @st.fragment(run_every=1)
    def clock():
        current = engine.view(session_id)
        label = format_time(current.remaining_seconds)
        if current.low_time:
            st.sidebar.error(f"Time left {label}")
        else:
            st.sidebar.metric("Time left", label)
        if session_id in outcomes:
            st.rerun(scope="app")
        if current.expired and current.state == AttemptState.ACTIVE:
            # Countdown already fired but its submit failed; retry it here.
            try:
                engine.submit(session_id, auto_submit=True)
            except ExamSessionError as e:
                st.sidebar.error(f"Auto-submit failed, retrying: {e}")
            st.rerun(scope="app")

    clock()

    n = len(view.questions)
    st.sidebar.progress(view.answered_count / n if n else 0)
    st.sidebar.caption(f"{view.answered_count}/{n} answered")

    idx_key = f"current_q_{session_id}"
    idx = st.session_state.get(idx_key, 0)
    try:
        q = engine.question_at(session_id, idx)
    except ExamSessionError:
        idx = 0
        q = engine.question_at(session_id, idx)
    st.session_state[idx_key] = idx

    st.subheader(f"Question {idx + 1} of {n}")
    st.write(q.question)
    option_labels = "ABCDEFGHIJ"
    saved = view.answers.get(q.id)
    choice = st.radio(
        "Choose one:",
        list(range(len(q.options))),
        format_func=lambda i: f"{option_labels[i]}. {q.options[i]}",
        index=saved,
        key=f"radio_{session_id}_{q.id}",
    )
    if choice is not None and choice != saved:
        try:
            engine.answer(session_id, q.id, choice)
        except AttemptClosed:
            st.warning("This attempt has already been submitted.")

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        if st.button("Previous", disabled=idx == 0):
            st.session_state[idx_key] = idx - 1
            st.rerun()
    with col2:
        if st.button("Next", disabled=idx >= n - 1):
            st.session_state[idx_key] = idx + 1
            st.rerun()
    with col3:
        if view.unanswered_count:
            st.caption(f"{view.unanswered_count} question(s) unanswered")
        if st.button("Submit exam", type="primary"):
            try:
                engine.submit(session_id)
            except ExamSessionError as e:
                st.error(f"Failed to submit exam: {e}")
            else:
                st.rerun()

# ----- Result -----
elif page == "Result":
    session_id = st.query_params.get("session")
    try:
        rv = engine.result(session_id, st.session_state["user_id"])
    except ExamSessionError as e:
        st.error(f"Failed to fetch exam results: {e}")
        if st.button("Back to dashboard"):
            go("Dashboard")
        st.stop()

    result = rv.result
    st.header("Congratulations!" if result.passed else "Keep Trying!")
    st.subheader(rv.exam_title)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Final score", f"{result.score}%")
    col2.metric("Correct answers", f"{result.correct_answers}/{result.total_questions}")
    col3.metric("Minutes used", result.time_taken_minutes)
    col4.metric("Required to pass", f"{rv.passing_score}%")

    st.subheader("Performance breakdown")
    for item in rv.questions:
        text = f"Question {item.index + 1}: {item.question}  \nYour answer: {item.your_answer or 'Not answered'}"
        if item.is_correct:
            st.success(text)
        else:
            st.error(f"{text}  \nCorrect answer: {item.correct_answer}")

    with st.expander("By category"):
        for cat, stats in rv.category_breakdown.items():
            st.write(f"{cat}: {stats['correct']}/{stats['total']}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Back to dashboard"):
            go("Dashboard")
    with col2:
        if st.button("Retake exam"):
            go("Exam", exam=result.exam_id)
