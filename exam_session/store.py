"""
Collaborator interfaces: the read-only exam/question catalog and the
session store (system of record for attempts and results).

Implementations translate their own failures into ``StorageError`` and
uniqueness violations into ``DuplicateRecordError``.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from exam_session.models import Exam, ExamResult, ExamSession, Question


class ExamCatalog(ABC):
    @abstractmethod
    def get_exam(self, exam_id: str) -> Optional[Exam]:
        ...

    @abstractmethod
    def list_active_exams(self) -> List[Exam]:
        ...

    @abstractmethod
    def list_active_questions(self) -> List[Question]:
        """The pool attempts draw their questions from."""


class SessionStore(ABC):
    @abstractmethod
    def find_incomplete_attempt(self, exam_id: str, user_id: str) -> Optional[ExamSession]:
        ...

    @abstractmethod
    def get_attempt(self, session_id: str) -> Optional[ExamSession]:
        ...

    @abstractmethod
    def create_attempt(self, attempt: ExamSession) -> ExamSession:
        """Insert a new attempt. Raises DuplicateRecordError if an open attempt already exists for (exam, user)."""

    @abstractmethod
    def update_answers(self, session_id: str, answers: Dict[str, int]) -> bool:
        """Overwrite the answer mapping of an open attempt. Returns False if the attempt is already completed."""

    @abstractmethod
    def insert_result(self, result: ExamResult) -> ExamResult:
        """Insert a result. Raises DuplicateRecordError if the attempt already has one."""

    @abstractmethod
    def get_result_for_session(self, session_id: str) -> Optional[ExamResult]:
        ...

    @abstractmethod
    def complete_attempt(
        self, session_id: str, answers: Dict[str, int], score: int, submitted_at: datetime
    ) -> bool:
        """Mark an open attempt completed. Returns False if it was already completed (conditional write)."""
