"""Read-only result view for a completed attempt."""
import logging

from exam_session import config, scoring
from exam_session.errors import InvalidArgument, NotFound
from exam_session.models import ResultView
from exam_session.store import ExamCatalog, SessionStore

logger = logging.getLogger(__name__)


class ResultService:
    def __init__(
        self,
        catalog: ExamCatalog,
        store: SessionStore,
        default_passing_score: int = config.DEFAULT_PASSING_SCORE,
    ):
        self.catalog = catalog
        self.store = store
        self.default_passing_score = default_passing_score

    def get_result(self, session_id: str, user_id: str) -> ResultView:
        """
        Result of one attempt with its per-question breakdown.

        Only the attempt's owner can read it; anyone else gets NotFound, the
        same as for an attempt with no result yet.
        """
        if not session_id or not user_id:
            raise InvalidArgument("session_id and user_id are required")

        result = self.store.get_result_for_session(session_id)
        if result is None or result.user_id != user_id:
            raise NotFound("result not found", session_id=session_id)

        attempt = self.store.get_attempt(session_id)
        if attempt is None:
            raise NotFound("attempt not found", session_id=session_id)

        exam = self.catalog.get_exam(result.exam_id)
        if exam is None:
            logger.warning(f"Exam {result.exam_id} missing from catalog; showing result without exam details")

        return ResultView(
            result=result,
            exam_title=exam.title if exam else "",
            exam_description=exam.description if exam else "",
            passing_score=scoring.passing_threshold(exam, self.default_passing_score),
            questions=scoring.review(attempt.questions, attempt.answers),
            category_breakdown=scoring.category_breakdown(attempt.questions, attempt.answers),
        )
