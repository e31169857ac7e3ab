"""
Exam session engine: the entry points a front-end calls.

Wires the catalog, store, clock, countdown scheduler, session manager,
submission coordinator and result service together. The current user is
passed in on every call; nothing here reads ambient auth state.
"""
import logging
import random
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional

from exam_session import config
from exam_session.clock import Clock
from exam_session.manager import SessionManager
from exam_session.models import AttemptView, Exam, QuestionView, ResultView, SubmissionOutcome
from exam_session.results import ResultService
from exam_session.scheduler import CountdownScheduler
from exam_session.store import ExamCatalog, SessionStore
from exam_session.submission import FailureListener, OutcomeListener, SubmissionCoordinator

logger = logging.getLogger(__name__)


class ExamEngine:
    def __init__(
        self,
        catalog: ExamCatalog,
        store: SessionStore,
        clock: Optional[Clock] = None,
        scheduler: Optional[CountdownScheduler] = None,
        questions_per_attempt: int = config.QUESTIONS_PER_ATTEMPT,
        default_passing_score: int = config.DEFAULT_PASSING_SCORE,
        rng: Optional[random.Random] = None,
        executor: Optional[Executor] = None,
    ):
        self.clock = clock or Clock()
        self.catalog = catalog
        self.store = store
        self.scheduler = scheduler or CountdownScheduler(clock=self.clock)
        self.sessions = SessionManager(
            catalog,
            store,
            clock=self.clock,
            scheduler=self.scheduler,
            questions_per_attempt=questions_per_attempt,
            rng=rng,
            executor=executor,
        )
        self.submissions = SubmissionCoordinator(
            self.sessions,
            store,
            self.scheduler,
            clock=self.clock,
            default_passing_score=default_passing_score,
        )
        self.results = ResultService(catalog, store, default_passing_score=default_passing_score)
        self.sessions.set_expiry_handler(self.submissions.handle_expiry)

    def list_exams(self) -> List[Exam]:
        return self.catalog.list_active_exams()

    def start(self, exam_id: str, user_id: str) -> AttemptView:
        return self.sessions.create_or_resume(exam_id, user_id)

    def view(self, session_id: str) -> AttemptView:
        return self.sessions.view(session_id)

    def question_at(self, session_id: str, index: int) -> QuestionView:
        return self.sessions.question_at(session_id, index)

    def answer(self, session_id: str, question_id: str, option_index: int) -> Future:
        return self.sessions.record_answer(session_id, question_id, option_index)

    def submit(self, session_id: str, auto_submit: bool = False) -> SubmissionOutcome:
        return self.submissions.submit(session_id, auto_submit=auto_submit)

    def result(self, session_id: str, user_id: str) -> ResultView:
        return self.results.get_result(session_id, user_id)

    def subscribe(
        self, listener: OutcomeListener, on_failure: Optional[FailureListener] = None
    ) -> Callable[[], None]:
        return self.submissions.subscribe(listener, on_failure)

    def shutdown(self) -> None:
        self.sessions.shutdown()
        logger.info("Exam engine stopped")


def build_engine(backend: str = config.STORE_BACKEND, **kwargs) -> ExamEngine:
    """Engine over the configured store backend ("supabase" or "memory")."""
    if backend == "memory":
        from exam_session.memory_store import InMemoryStore
        from exam_session.sample_data import SAMPLE_EXAM, SAMPLE_QUESTIONS

        store = InMemoryStore(exams=[SAMPLE_EXAM], questions=SAMPLE_QUESTIONS)
    elif backend == "supabase":
        from exam_session.database import SupabaseStore

        store = SupabaseStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")
    logger.info(f"Exam engine using {backend} store")
    return ExamEngine(store, store, **kwargs)
