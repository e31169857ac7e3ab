"""
Supabase-backed catalog and session store.
Handles reads of exams/questions and CRUD for exam_sessions and exam_results.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import Client, ClientOptions, create_client

from exam_session import config
from exam_session.errors import DuplicateRecordError, StorageError
from exam_session.models import Exam, ExamResult, ExamSession, Question
from exam_session.store import ExamCatalog, SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"
PAGE_SIZE = 1000


def create_supabase_client(
    url: Optional[str] = None,
    key: Optional[str] = None,
    timeout: int = config.STORE_TIMEOUT_SECONDS,
) -> Client:
    url = url or config.SUPABASE_URL
    key = key or config.SUPABASE_KEY
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key, options=ClientOptions(postgrest_client_timeout=timeout))


class SupabaseStore(ExamCatalog, SessionStore):
    """Wrapper around a Supabase client with exam-session specific operations."""

    def __init__(self, client: Optional[Client] = None, read_retries: int = config.READ_RETRIES):
        self.client: Client = client or create_supabase_client()
        self.read_retries = read_retries

    # ============= Plumbing =============

    def _read(self, op: str, fn: Callable[[], T]) -> T:
        """Run an idempotent read, retrying on failure."""
        attempts = self.read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except Exception as e:
                if attempt < attempts:
                    logger.warning(f"{op} failed (attempt {attempt}/{attempts}), retrying: {e}")
                    continue
                logger.error(f"{op} failed: {e}")
                raise StorageError(f"{op} failed", cause=e) from e

    def _write(self, op: str, fn: Callable[[], T]) -> T:
        """Run a write once. Writes are never retried here."""
        try:
            return fn()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateRecordError(f"{op} rejected by uniqueness guard", cause=e.message) from e
            logger.error(f"{op} failed: {e}")
            raise StorageError(f"{op} failed", cause=e.message) from e
        except Exception as e:
            logger.error(f"{op} failed: {e}")
            raise StorageError(f"{op} failed", cause=e) from e

    @staticmethod
    def _parse(model, row: dict):
        try:
            return model.model_validate(row)
        except ValidationError as e:
            raise StorageError(f"Malformed {model.__name__} row", row_id=row.get("id"), cause=e) from e

    def _exam_from_row(self, row: dict) -> Exam:
        row = dict(row)
        if not row.get("duration_minutes"):
            row["duration_minutes"] = config.DEFAULT_DURATION_MINUTES
        if row.get("description") is None:
            row["description"] = ""
        return self._parse(Exam, row)

    # ============= Catalog =============

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        response = self._read(
            "get_exam",
            lambda: self.client.table("exams").select("*").eq("id", exam_id).limit(1).execute(),
        )
        rows = response.data or []
        return self._exam_from_row(rows[0]) if rows else None

    def list_active_exams(self) -> List[Exam]:
        response = self._read(
            "list_active_exams",
            lambda: self.client.table("exams").select("*").eq("is_active", True).order("title").execute(),
        )
        return [self._exam_from_row(row) for row in response.data or []]

    def list_active_questions(self) -> List[Question]:
        """Fetch the whole question pool in pages (PostgREST caps rows per request)."""
        rows: List[dict] = []
        offset = 0
        while True:
            start = offset
            response = self._read(
                "list_active_questions",
                lambda: self.client.table("questions")
                .select("*")
                .order("id")
                .range(start, start + PAGE_SIZE - 1)
                .execute(),
            )
            data = response.data or []
            rows.extend(data)
            if len(data) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        logger.debug(f"Loaded {len(rows)} questions from catalog")
        return [self._parse(Question, row) for row in rows]

    # ============= Sessions =============

    def find_incomplete_attempt(self, exam_id: str, user_id: str) -> Optional[ExamSession]:
        response = self._read(
            "find_incomplete_attempt",
            lambda: self.client.table("exam_sessions")
            .select("*")
            .eq("exam_id", exam_id)
            .eq("user_id", user_id)
            .eq("is_completed", False)
            .order("started_at", desc=True)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        return self._parse(ExamSession, rows[0]) if rows else None

    def get_attempt(self, session_id: str) -> Optional[ExamSession]:
        response = self._read(
            "get_attempt",
            lambda: self.client.table("exam_sessions").select("*").eq("id", session_id).limit(1).execute(),
        )
        rows = response.data or []
        return self._parse(ExamSession, rows[0]) if rows else None

    def create_attempt(self, attempt: ExamSession) -> ExamSession:
        row = attempt.model_dump(mode="json")
        response = self._write(
            "create_attempt",
            lambda: self.client.table("exam_sessions").insert(row).execute(),
        )
        if not response.data:
            raise StorageError("create_attempt returned no row", session_id=attempt.id)
        return self._parse(ExamSession, response.data[0])

    def update_answers(self, session_id: str, answers: Dict[str, int]) -> bool:
        response = self._write(
            "update_answers",
            lambda: self.client.table("exam_sessions")
            .update({"answers": answers})
            .eq("id", session_id)
            .eq("is_completed", False)
            .execute(),
        )
        return bool(response.data)

    def complete_attempt(
        self, session_id: str, answers: Dict[str, int], score: int, submitted_at: datetime
    ) -> bool:
        update_data = {
            "is_completed": True,
            "submitted_at": submitted_at.isoformat(),
            "answers": answers,
            "score": score,
        }
        response = self._write(
            "complete_attempt",
            lambda: self.client.table("exam_sessions")
            .update(update_data)
            .eq("id", session_id)
            .eq("is_completed", False)
            .execute(),
        )
        return bool(response.data)

    # ============= Results =============

    def insert_result(self, result: ExamResult) -> ExamResult:
        row = result.model_dump(mode="json")
        response = self._write(
            "insert_result",
            lambda: self.client.table("exam_results").insert(row).execute(),
        )
        if not response.data:
            raise StorageError("insert_result returned no row", session_id=result.exam_session_id)
        return self._parse(ExamResult, response.data[0])

    def get_result_for_session(self, session_id: str) -> Optional[ExamResult]:
        response = self._read(
            "get_result_for_session",
            lambda: self.client.table("exam_results")
            .select("*")
            .eq("exam_session_id", session_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        return self._parse(ExamResult, rows[0]) if rows else None
