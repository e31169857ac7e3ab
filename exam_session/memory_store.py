"""In-process catalog and session store with the same guards as the Supabase schema."""
import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from exam_session.errors import DuplicateRecordError, NotFound
from exam_session.models import Exam, ExamResult, ExamSession, Question
from exam_session.store import ExamCatalog, SessionStore

logger = logging.getLogger(__name__)


class InMemoryStore(ExamCatalog, SessionStore):
    """
    Dict-backed store for tests and offline runs.

    Enforces one open attempt per (exam, user) and one result per attempt,
    and makes answer/complete writes conditional on the attempt being open.
    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self, exams: Iterable[Exam] = (), questions: Iterable[Question] = ()):
        self._lock = threading.Lock()
        self.exams: Dict[str, Exam] = {e.id: e for e in exams}
        self.questions: Dict[str, Question] = {q.id: q for q in questions}
        self.sessions: Dict[str, ExamSession] = {}
        self.results: Dict[str, ExamResult] = {}

    # --- Catalog ---

    def add_exam(self, exam: Exam) -> None:
        with self._lock:
            self.exams[exam.id] = exam

    def add_questions(self, questions: Iterable[Question]) -> None:
        with self._lock:
            for q in questions:
                self.questions[q.id] = q

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        with self._lock:
            exam = self.exams.get(exam_id)
            return exam.model_copy() if exam else None

    def list_active_exams(self) -> List[Exam]:
        with self._lock:
            return sorted((e.model_copy() for e in self.exams.values() if e.is_active), key=lambda e: e.title)

    def list_active_questions(self) -> List[Question]:
        with self._lock:
            return [q.model_copy() for q in sorted(self.questions.values(), key=lambda q: q.id)]

    # --- Sessions ---

    def find_incomplete_attempt(self, exam_id: str, user_id: str) -> Optional[ExamSession]:
        with self._lock:
            for s in self.sessions.values():
                if s.exam_id == exam_id and s.user_id == user_id and not s.is_completed:
                    return s.model_copy(deep=True)
        return None

    def get_attempt(self, session_id: str) -> Optional[ExamSession]:
        with self._lock:
            s = self.sessions.get(session_id)
            return s.model_copy(deep=True) if s else None

    def create_attempt(self, attempt: ExamSession) -> ExamSession:
        with self._lock:
            if attempt.id in self.sessions:
                raise DuplicateRecordError("attempt id already exists", session_id=attempt.id)
            for s in self.sessions.values():
                if s.exam_id == attempt.exam_id and s.user_id == attempt.user_id and not s.is_completed:
                    raise DuplicateRecordError(
                        "open attempt already exists", exam_id=attempt.exam_id, user_id=attempt.user_id
                    )
            self.sessions[attempt.id] = attempt.model_copy(deep=True)
            return attempt.model_copy(deep=True)

    def update_answers(self, session_id: str, answers: Dict[str, int]) -> bool:
        with self._lock:
            s = self.sessions.get(session_id)
            if s is None:
                raise NotFound("attempt not found", session_id=session_id)
            if s.is_completed:
                return False
            s.answers = dict(answers)
            return True

    def complete_attempt(
        self, session_id: str, answers: Dict[str, int], score: int, submitted_at: datetime
    ) -> bool:
        with self._lock:
            s = self.sessions.get(session_id)
            if s is None:
                raise NotFound("attempt not found", session_id=session_id)
            if s.is_completed:
                return False
            s.answers = dict(answers)
            s.score = score
            s.submitted_at = submitted_at
            s.is_completed = True
            return True

    # --- Results ---

    def insert_result(self, result: ExamResult) -> ExamResult:
        with self._lock:
            if any(r.exam_session_id == result.exam_session_id for r in self.results.values()):
                raise DuplicateRecordError("result already exists", session_id=result.exam_session_id)
            self.results[result.id] = result.model_copy()
            return result.model_copy()

    def get_result_for_session(self, session_id: str) -> Optional[ExamResult]:
        with self._lock:
            for r in self.results.values():
                if r.exam_session_id == session_id:
                    return r.model_copy()
        return None
