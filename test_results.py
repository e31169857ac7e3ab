"""Tests for the result view and retakes."""
import pytest

from conftest import EXAM_ID, USER_ID, answer_correctly
from exam_session.errors import InvalidArgument, NotFound


def test_result_view_after_submit(engine, clock):
    view = engine.start(EXAM_ID, USER_ID)
    answer_correctly(engine, view, 8)
    clock.advance(900)
    engine.submit(view.session_id)

    result_view = engine.result(view.session_id, USER_ID)

    assert result_view.exam_title == "Sample Exam"
    assert result_view.passing_score == 70
    assert result_view.result.score == 80
    assert result_view.result.time_taken_minutes == 15
    assert len(result_view.questions) == 10
    assert sum(1 for q in result_view.questions if q.is_correct) == 8
    assert [q.question_id for q in result_view.questions] == [q.id for q in view.questions]
    assert result_view.questions[9].your_answer == "wrong a"
    totals = result_view.category_breakdown
    assert sum(c["total"] for c in totals.values()) == 10
    assert sum(c["correct"] for c in totals.values()) == 8


def test_result_is_private_to_its_owner(engine):
    view = engine.start(EXAM_ID, USER_ID)
    engine.submit(view.session_id)

    with pytest.raises(NotFound):
        engine.result(view.session_id, "someone-else")


def test_no_result_before_submission(engine):
    view = engine.start(EXAM_ID, USER_ID)
    with pytest.raises(NotFound):
        engine.result(view.session_id, USER_ID)


def test_result_requires_identifiers(engine):
    with pytest.raises(InvalidArgument):
        engine.result("", USER_ID)


def test_result_survives_missing_exam(engine, store):
    view = engine.start(EXAM_ID, USER_ID)
    engine.submit(view.session_id)
    store.exams.clear()

    result_view = engine.result(view.session_id, USER_ID)
    assert result_view.exam_title == ""
    assert result_view.passing_score == 70


def test_retake_opens_a_fresh_attempt(engine, store):
    first = engine.start(EXAM_ID, USER_ID)
    answer_correctly(engine, first, 10)
    engine.submit(first.session_id)

    retake = engine.start(EXAM_ID, USER_ID)

    assert retake.session_id != first.session_id
    assert not retake.resumed
    assert retake.answers == {}
    assert retake.remaining_seconds == 1800
    assert len(store.sessions) == 2
    assert engine.result(first.session_id, USER_ID).result.score == 100


def test_list_exams_shows_only_active(engine, store):
    from conftest import make_exam

    store.add_exam(make_exam(id="retired", title="Old", is_active=False))
    store.add_exam(make_exam(id="another", title="Another"))
    assert [e.id for e in engine.list_exams()] == ["another", EXAM_ID]
