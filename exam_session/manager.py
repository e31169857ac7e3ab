"""
Session manager: creates or resumes attempts and applies answer updates.

The store is the system of record. The manager keeps one ``AttemptRuntime``
per open attempt it has touched and releases it once the attempt is
submitted. During an active run its answer mapping is authoritative and is
pushed to the store in the background, in order.
"""
import logging
import random
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from exam_session import config
from exam_session.clock import Clock
from exam_session.errors import (
    AttemptClosed,
    DuplicateRecordError,
    ExamSessionError,
    InvalidArgument,
    NoContentError,
    NotFound,
    StorageError,
)
from exam_session.models import (
    AttemptState,
    AttemptView,
    Exam,
    ExamSession,
    Question,
    QuestionView,
    SubmissionOutcome,
)
from exam_session.scheduler import CountdownScheduler
from exam_session.store import ExamCatalog, SessionStore

logger = logging.getLogger(__name__)


def sample_questions(pool: List[Question], size: int, rng: random.Random) -> List[Question]:
    """Uniform sample without replacement. The returned order is the attempt's frozen order."""
    if size <= 0:
        raise InvalidArgument("questions per attempt must be positive", size=size)
    if len(pool) < size:
        logger.warning(f"Only {len(pool)} questions available, need {size}; using all of them")
        size = len(pool)
    return rng.sample(pool, size)


def _require_id(name: str, value) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{name} is required")
    return str(value)


class AttemptRuntime:
    """In-memory owner of one attempt: its record, exam and lifecycle state."""

    def __init__(self, attempt: ExamSession, exam: Exam, state: AttemptState = AttemptState.CREATED):
        self.attempt = attempt
        self.exam = exam
        self.state = state
        self.resumed = False
        self.outcome: Optional[SubmissionOutcome] = None
        self.lock = threading.Lock()  # state and answers
        self.submit_lock = threading.Lock()  # one submission sequence at a time

    @property
    def session_id(self) -> str:
        return self.attempt.id

    @property
    def budget_seconds(self) -> int:
        return self.exam.budget_seconds

    def answers_snapshot(self) -> Dict[str, int]:
        with self.lock:
            return dict(self.attempt.answers)


class SessionManager:
    def __init__(
        self,
        catalog: ExamCatalog,
        store: SessionStore,
        clock: Optional[Clock] = None,
        scheduler: Optional[CountdownScheduler] = None,
        questions_per_attempt: int = config.QUESTIONS_PER_ATTEMPT,
        rng: Optional[random.Random] = None,
        executor: Optional[Executor] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.clock = clock or Clock()
        self.scheduler = scheduler or CountdownScheduler(clock=self.clock)
        self.questions_per_attempt = questions_per_attempt
        self.rng = rng or random.Random(config.QUESTION_SAMPLE_SEED)
        # Single worker keeps answer writes in the order they were recorded.
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="answer-persist")
        self._runtimes: Dict[str, AttemptRuntime] = {}
        self._lock = threading.Lock()
        self._expiry_handler: Optional[Callable[[str], None]] = None

    def set_expiry_handler(self, handler: Callable[[str], None]) -> None:
        self._expiry_handler = handler

    # ============= Create / resume =============

    def create_or_resume(self, exam_id: str, user_id: str) -> AttemptView:
        """
        Return the user's open attempt for this exam, creating one if none exists.

        Resuming reuses the stored question list and answers and recomputes the
        remaining time from ``started_at``. Creating draws a fresh question
        subset, persists the attempt, and starts its countdown.
        """
        exam_id = _require_id("exam_id", exam_id)
        user_id = _require_id("user_id", user_id)

        exam = self.catalog.get_exam(exam_id)
        if exam is None or not exam.is_active:
            raise NotFound("exam not found or inactive", exam_id=exam_id)

        existing = self.store.find_incomplete_attempt(exam_id, user_id)
        if existing is not None:
            runtime = self._activate(existing, exam, resumed=True)
            return self.view(runtime.session_id)

        pool = self.catalog.list_active_questions()
        if not pool:
            raise NoContentError("no active questions available", exam_id=exam_id)

        attempt = ExamSession(
            exam_id=exam_id,
            user_id=user_id,
            questions=sample_questions(pool, self.questions_per_attempt, self.rng),
            answers={},
            started_at=self.clock.now(),
        )
        try:
            stored = self.store.create_attempt(attempt)
        except DuplicateRecordError:
            # Another client opened an attempt for this (exam, user) first; join it.
            logger.warning(f"Concurrent attempt creation for exam {exam_id}, user {user_id}; resuming the winner")
            stored = self.store.find_incomplete_attempt(exam_id, user_id)
            if stored is None:
                raise StorageError("attempt creation conflicted but no open attempt found", exam_id=exam_id)
            runtime = self._activate(stored, exam, resumed=True)
            return self.view(runtime.session_id)

        runtime = self._activate(stored, exam, resumed=False)
        logger.info(
            f"Attempt {runtime.session_id} created: exam={exam_id}, user={user_id}, "
            f"{len(stored.questions)} questions, {exam.budget_seconds}s"
        )
        return self.view(runtime.session_id)

    def _activate(self, attempt: ExamSession, exam: Exam, resumed: bool) -> AttemptRuntime:
        with self._lock:
            runtime = self._runtimes.get(attempt.id)
            if runtime is None or runtime.state == AttemptState.SUBMITTED:
                runtime = AttemptRuntime(attempt, exam)
                self._runtimes[attempt.id] = runtime
            # An existing active runtime keeps its in-memory answers; they may be ahead of the store.

        with runtime.lock:
            runtime.exam = exam
            runtime.resumed = resumed
            if runtime.state == AttemptState.CREATED:
                runtime.state = AttemptState.ACTIVE
            active = runtime.state == AttemptState.ACTIVE

        remaining = self.remaining_seconds(runtime)
        if active:
            self.scheduler.arm(runtime.session_id, remaining, self._on_expire)
        if resumed:
            logger.info(f"Attempt {runtime.session_id} resumed with {remaining}s remaining")
        return runtime

    def _on_expire(self, session_id: str) -> None:
        if self._expiry_handler is None:
            logger.warning(f"Attempt {session_id} expired but no expiry handler is set")
            return
        self._expiry_handler(session_id)

    # ============= Lookup =============

    def get_runtime(self, session_id: str) -> AttemptRuntime:
        """The runtime for an attempt, loading it from the store if this process has not seen it."""
        session_id = _require_id("session_id", session_id)
        with self._lock:
            runtime = self._runtimes.get(session_id)
        if runtime is not None:
            return runtime

        attempt = self.store.get_attempt(session_id)
        if attempt is None:
            raise NotFound("attempt not found", session_id=session_id)
        exam = self.catalog.get_exam(attempt.exam_id)
        if exam is None:
            raise NotFound("exam not found", exam_id=attempt.exam_id)
        if attempt.is_completed:
            # Not registered: completed attempts are served from the store each time.
            return AttemptRuntime(attempt, exam, state=AttemptState.SUBMITTED)
        return self._activate(attempt, exam, resumed=True)

    def release(self, session_id: str) -> None:
        """Forget a submitted attempt. Later lookups read it back from the store."""
        with self._lock:
            self._runtimes.pop(session_id, None)
        self.scheduler.forget(session_id)
        logger.debug(f"Released attempt {session_id}")

    def remaining_seconds(self, runtime: AttemptRuntime) -> int:
        return self.clock.remaining_seconds(runtime.attempt.started_at, runtime.budget_seconds)

    def view(self, session_id: str) -> AttemptView:
        runtime = self.get_runtime(session_id)
        remaining = self.remaining_seconds(runtime)
        with runtime.lock:
            return AttemptView(
                session_id=runtime.session_id,
                exam_id=runtime.attempt.exam_id,
                user_id=runtime.attempt.user_id,
                state=runtime.state,
                resumed=runtime.resumed,
                remaining_seconds=remaining,
                budget_seconds=runtime.budget_seconds,
                answers=dict(runtime.attempt.answers),
                questions=[QuestionView.from_question(q) for q in runtime.attempt.questions],
                low_time=remaining < config.LOW_TIME_WARNING_SECONDS,
            )

    def question_at(self, session_id: str, index: int) -> QuestionView:
        runtime = self.get_runtime(session_id)
        questions = runtime.attempt.questions
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(questions):
            raise InvalidArgument("question index out of range", index=index, count=len(questions))
        return QuestionView.from_question(questions[index])

    # ============= Answers =============

    def record_answer(self, session_id: str, question_id: str, option_index: int) -> Future:
        """
        Record (or overwrite) the answer for one question.

        The in-memory mapping is updated immediately; the returned future
        completes when the store write finishes. A failed write is logged and
        surfaces on the future, but the in-memory answer stands.
        """
        runtime = self.get_runtime(session_id)
        self._require_active(runtime)
        question = runtime.attempt.find_question(question_id)
        if question is None:
            raise InvalidArgument("question is not part of this attempt", question_id=question_id)
        if isinstance(option_index, bool) or not isinstance(option_index, int):
            raise InvalidArgument("option index must be an integer", option_index=option_index)
        if not 0 <= option_index < len(question.options):
            raise InvalidArgument(
                "option index out of range", option_index=option_index, options=len(question.options)
            )

        with runtime.lock:
            # Re-checked here: a submission may have started since the first check.
            if runtime.state != AttemptState.ACTIVE:
                raise AttemptClosed("attempt is no longer accepting answers", session_id=runtime.session_id)
            runtime.attempt.answers[question.id] = option_index
            snapshot = dict(runtime.attempt.answers)

        return self.executor.submit(self._persist_answers, runtime.session_id, snapshot)

    @staticmethod
    def _require_active(runtime: AttemptRuntime) -> None:
        if runtime.state != AttemptState.ACTIVE:
            raise AttemptClosed("attempt is no longer accepting answers", session_id=runtime.session_id)

    def _persist_answers(self, session_id: str, answers: Dict[str, int]) -> bool:
        try:
            saved = self.store.update_answers(session_id, answers)
        except ExamSessionError as e:
            logger.warning(f"Could not persist answers for attempt {session_id}: {e}")
            raise
        if not saved:
            logger.warning(f"Answers for attempt {session_id} not saved: attempt already completed")
        return saved

    def shutdown(self) -> None:
        self.scheduler.shutdown()
        self.executor.shutdown(wait=True)
