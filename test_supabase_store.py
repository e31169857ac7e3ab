"""Tests for SupabaseStore against a scripted stand-in for the Supabase query builder."""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from conftest import EXAM_ID, USER_ID, make_questions
from exam_session import database
from exam_session.database import SupabaseStore
from exam_session.errors import DuplicateRecordError, StorageError
from exam_session.models import ExamResult, ExamSession
from exam_session.schema import SCHEMA_SQL, statements


class FakeQuery:
    """Records the chained builder calls; ``execute`` pops the next scripted response."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls = []

    def __getattr__(self, name):
        def chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return chain

    def execute(self):
        self.client.executed.append(self)
        outcome = self.client.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(data=outcome)


class FakeClient:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def unique_violation():
    return APIError({"message": "duplicate key value", "code": "23505", "hint": None, "details": None})


def exam_row(**overrides):
    row = {
        "id": EXAM_ID,
        "title": "Sample Exam",
        "description": None,
        "duration_minutes": 30,
        "total_questions": 10,
        "passing_score": 70,
        "is_active": True,
    }
    row.update(overrides)
    return row


def session_row(**overrides):
    attempt = ExamSession(exam_id=EXAM_ID, user_id=USER_ID, questions=make_questions(3))
    row = attempt.model_dump(mode="json")
    row.update(overrides)
    return row


def test_find_incomplete_attempt_filters_open_rows():
    row = session_row()
    client = FakeClient([row])
    store = SupabaseStore(client=client)

    attempt = store.find_incomplete_attempt(EXAM_ID, USER_ID)

    assert attempt.id == row["id"]
    assert [q.id for q in attempt.questions] == ["q00", "q01", "q02"]
    query = client.executed[0]
    assert query.table == "exam_sessions"
    assert ("eq", ("is_completed", False), {}) in query.calls
    assert ("eq", ("user_id", USER_ID), {}) in query.calls
    assert ("order", ("started_at",), {"desc": True}) in query.calls


def test_reads_are_retried_once():
    client = FakeClient(RuntimeError("connection reset"), [exam_row()])
    store = SupabaseStore(client=client, read_retries=1)

    exam = store.get_exam(EXAM_ID)

    assert exam.title == "Sample Exam"
    assert exam.description == ""
    assert len(client.executed) == 2


def test_read_failure_after_retry_raises_storage_error():
    client = FakeClient(RuntimeError("timeout"), RuntimeError("timeout"))
    store = SupabaseStore(client=client, read_retries=1)

    with pytest.raises(StorageError) as excinfo:
        store.get_attempt("s1")
    assert excinfo.value.retryable
    assert client.responses == []


def test_missing_rows_return_none():
    store = SupabaseStore(client=FakeClient([], [], []))
    assert store.get_exam("nope") is None
    assert store.get_attempt("nope") is None
    assert store.get_result_for_session("nope") is None


def test_null_duration_falls_back_to_default():
    store = SupabaseStore(client=FakeClient([exam_row(duration_minutes=None)]))
    exam = store.get_exam(EXAM_ID)
    assert exam.duration_minutes == database.config.DEFAULT_DURATION_MINUTES


def test_list_active_exams_filters_and_orders():
    client = FakeClient([exam_row(id="a", title="Alpha"), exam_row(id="b", title="Beta")])
    store = SupabaseStore(client=client)

    assert [e.id for e in store.list_active_exams()] == ["a", "b"]
    calls = client.executed[0].calls
    assert ("eq", ("is_active", True), {}) in calls
    assert ("order", ("title",), {}) in calls


def test_question_pool_is_paged(monkeypatch):
    monkeypatch.setattr(database, "PAGE_SIZE", 2)
    rows = [q.model_dump() for q in make_questions(5)]
    client = FakeClient(rows[0:2], rows[2:4], rows[4:])
    store = SupabaseStore(client=client)

    questions = store.list_active_questions()

    assert [q.id for q in questions] == ["q00", "q01", "q02", "q03", "q04"]
    ranges = [c for q in client.executed for c in q.calls if c[0] == "range"]
    assert [c[1] for c in ranges] == [(0, 1), (2, 3), (4, 5)]


def test_malformed_row_is_a_storage_error():
    store = SupabaseStore(client=FakeClient([{"id": "q1", "question": "?", "options": ["a", "b"], "correct_option": 5}]))
    with pytest.raises(StorageError):
        store.list_active_questions()


def test_create_attempt_maps_unique_violation():
    client = FakeClient(unique_violation())
    store = SupabaseStore(client=client)
    attempt = ExamSession(exam_id=EXAM_ID, user_id=USER_ID, questions=make_questions(2))

    with pytest.raises(DuplicateRecordError) as excinfo:
        store.create_attempt(attempt)
    assert not excinfo.value.retryable
    assert len(client.executed) == 1


def test_writes_are_not_retried():
    client = FakeClient(RuntimeError("timeout"), [{"id": "unused"}])
    store = SupabaseStore(client=client, read_retries=3)

    with pytest.raises(StorageError):
        store.update_answers("s1", {"q00": 1})
    assert len(client.executed) == 1
    assert len(client.responses) == 1


def test_other_api_errors_are_storage_errors():
    error = APIError({"message": "permission denied", "code": "42501", "hint": None, "details": None})
    store = SupabaseStore(client=FakeClient(error))
    with pytest.raises(StorageError) as excinfo:
        store.update_answers("s1", {})
    assert not isinstance(excinfo.value, DuplicateRecordError)


def test_conditional_updates_report_whether_a_row_changed():
    client = FakeClient([{"id": "s1"}], [], [])
    store = SupabaseStore(client=client)
    when = datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)

    assert store.update_answers("s1", {"q00": 1}) is True
    assert store.update_answers("s1", {"q00": 2}) is False
    assert store.complete_attempt("s1", {"q00": 2}, 50, when) is False

    for query in client.executed:
        assert ("eq", ("is_completed", False), {}) in query.calls
    closing = client.executed[2].calls[0]
    assert closing[0] == "update"
    assert closing[1][0]["submitted_at"] == when.isoformat()
    assert closing[1][0]["is_completed"] is True


def test_insert_result_round_trip_and_duplicate():
    result = ExamResult(
        exam_session_id="s1",
        user_id=USER_ID,
        exam_id=EXAM_ID,
        score=80,
        total_questions=10,
        correct_answers=8,
        time_taken_minutes=15,
        passed=True,
    )
    client = FakeClient([result.model_dump(mode="json")], unique_violation())
    store = SupabaseStore(client=client)

    assert store.insert_result(result).id == result.id
    assert client.executed[0].table == "exam_results"
    with pytest.raises(DuplicateRecordError):
        store.insert_result(result)


def test_client_requires_credentials(monkeypatch):
    monkeypatch.setattr(database.config, "SUPABASE_URL", None)
    monkeypatch.setattr(database.config, "SUPABASE_KEY", None)
    with pytest.raises(ValueError):
        database.create_supabase_client(url="", key="")


def test_schema_carries_uniqueness_guards():
    assert "uq_exam_sessions_open" in SCHEMA_SQL
    assert "WHERE NOT is_completed" in SCHEMA_SQL
    assert "exam_session_id TEXT NOT NULL UNIQUE" in SCHEMA_SQL
    assert len([s for s in statements() if "CREATE TABLE" in s]) == 4
