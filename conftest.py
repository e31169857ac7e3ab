"""Shared fixtures: a controllable clock, a seeded in-memory store, and an engine with hand-driven countdowns."""
import random
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import pytest

from exam_session.clock import Clock
from exam_session.engine import ExamEngine
from exam_session.memory_store import InMemoryStore
from exam_session.models import Exam, Question
from exam_session.scheduler import CountdownScheduler

EXAM_ID = "exam-1"
USER_ID = "user-1"


class FakeClock(Clock):
    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self._now = start
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds


class ImmediateExecutor(Executor):
    """Runs submitted work inline so answer persistence is deterministic in tests."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def make_questions(n: int, prefix: str = "q") -> list:
    """n questions, four options each, correct option 0; categories alternate."""
    return [
        Question(
            id=f"{prefix}{i:02d}",
            question=f"Question {i}?",
            options=["right", "wrong a", "wrong b", "wrong c"],
            correct_option=0,
            category="alpha" if i % 2 == 0 else "beta",
        )
        for i in range(n)
    ]


def make_exam(**overrides) -> Exam:
    fields = dict(
        id=EXAM_ID,
        title="Sample Exam",
        description="Thirty minutes, ten questions.",
        duration_minutes=30,
        total_questions=10,
        passing_score=70,
        is_active=True,
    )
    fields.update(overrides)
    return Exam(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore(exams=[make_exam()], questions=make_questions(15))


@pytest.fixture
def scheduler(clock):
    return CountdownScheduler(clock=clock, autostart=False)


@pytest.fixture
def make_engine(store, clock, scheduler):
    engines = []

    def factory(**kwargs):
        options = dict(
            clock=clock,
            scheduler=scheduler,
            questions_per_attempt=10,
            rng=random.Random(7),
            executor=ImmediateExecutor(),
        )
        options.update(kwargs)
        engine = ExamEngine(store, store, **options)
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.shutdown()


@pytest.fixture
def engine(make_engine):
    return make_engine()


def answer_correctly(engine, view, count: int) -> None:
    """Answer the first ``count`` questions right and the rest wrong."""
    for i, q in enumerate(view.questions):
        engine.answer(view.session_id, q.id, 0 if i < count else 1).result()
