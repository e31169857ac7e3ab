"""
Submission coordinator.

Runs the submission sequence for an attempt as one idempotent operation:
stop the countdown, score the frozen questions against the current answers,
write the result, close the attempt. Manual submits and timer expiry go
through the same path; a second or racing call returns the first outcome
instead of writing another result.
"""
import logging
import threading
from typing import Callable, List, Optional, Tuple

from exam_session import config, scoring
from exam_session.clock import Clock
from exam_session.errors import DuplicateRecordError, ExamSessionError, NotFound, StorageError, SubmissionError
from exam_session.manager import AttemptRuntime, SessionManager
from exam_session.models import AttemptState, ExamResult, SubmissionOutcome
from exam_session.scheduler import CountdownScheduler
from exam_session.store import SessionStore

logger = logging.getLogger(__name__)

AUTO_SUBMIT_MESSAGE = "Exam auto-submitted due to time expiry"
MANUAL_SUBMIT_MESSAGE = "Exam submitted successfully"

OutcomeListener = Callable[[SubmissionOutcome], None]
FailureListener = Callable[[str, bool, ExamSessionError], None]


class SubmissionCoordinator:
    def __init__(
        self,
        manager: SessionManager,
        store: SessionStore,
        scheduler: CountdownScheduler,
        clock: Optional[Clock] = None,
        default_passing_score: int = config.DEFAULT_PASSING_SCORE,
    ):
        self.manager = manager
        self.store = store
        self.scheduler = scheduler
        self.clock = clock or Clock()
        self.default_passing_score = default_passing_score
        self._listeners: List[Tuple[OutcomeListener, Optional[FailureListener]]] = []
        self._listeners_lock = threading.Lock()

    # ============= Notification channel =============

    def subscribe(self, listener: OutcomeListener, on_failure: Optional[FailureListener] = None) -> Callable[[], None]:
        """Register for submission outcomes. Returns an unsubscribe function."""
        entry = (listener, on_failure)
        with self._listeners_lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def _notify(self, outcome: SubmissionOutcome) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener, _ in listeners:
            try:
                listener(outcome)
            except Exception:
                logger.exception(f"Submission listener failed for attempt {outcome.session_id}")

    def _notify_failure(self, session_id: str, auto_submit: bool, error: ExamSessionError) -> None:
        with self._listeners_lock:
            handlers = [on_failure for _, on_failure in self._listeners if on_failure is not None]
        for handler in handlers:
            try:
                handler(session_id, auto_submit, error)
            except Exception:
                logger.exception(f"Submission failure listener failed for attempt {session_id}")

    # ============= Submission =============

    def submit(self, session_id: str, auto_submit: bool = False) -> SubmissionOutcome:
        """
        Submit an attempt.

        Args:
            session_id: Attempt to submit.
            auto_submit: True when triggered by countdown expiry.

        Returns:
            SubmissionOutcome. ``created`` is False when the attempt had
            already been submitted and this call changed nothing.

        Raises:
            SubmissionError: storing the result or closing the attempt failed;
                the attempt is active again and the call can be retried.
        """
        runtime = self.manager.get_runtime(session_id)
        with runtime.submit_lock:
            if runtime.state == AttemptState.SUBMITTED:
                return self._already_submitted(runtime, auto_submit)

            with runtime.lock:
                runtime.state = AttemptState.SUBMITTING
            # No answer can land once SUBMITTING is set, so this is the final mapping.
            answers = runtime.answers_snapshot()

            self.scheduler.cancel(runtime.session_id)
            try:
                outcome = self._run(runtime, answers, auto_submit)
            except StorageError as e:
                self._reopen(runtime)
                logger.error(f"Submission of attempt {runtime.session_id} failed: {e}")
                error = SubmissionError("submission failed", session_id=runtime.session_id, cause=e)
                self._notify_failure(runtime.session_id, auto_submit, error)
                raise error from e
            except Exception:
                self._reopen(runtime)
                raise
            runtime.outcome = outcome

        self.manager.release(runtime.session_id)
        self._notify(outcome)
        return outcome

    def _run(self, runtime: AttemptRuntime, answers, auto_submit: bool) -> SubmissionOutcome:
        attempt = runtime.attempt
        remaining = self.manager.remaining_seconds(runtime)
        card = scoring.score(attempt.questions, answers)
        passing_score = scoring.passing_threshold(runtime.exam, self.default_passing_score)

        result = ExamResult(
            exam_session_id=attempt.id,
            user_id=attempt.user_id,
            exam_id=attempt.exam_id,
            score=card.percentage,
            total_questions=card.total,
            correct_answers=card.correct,
            time_taken_minutes=scoring.time_taken_minutes(runtime.budget_seconds, remaining),
            passed=scoring.is_passed(card.percentage, passing_score),
        )

        created = True
        try:
            stored = self.store.insert_result(result)
        except DuplicateRecordError:
            # Result already written: an earlier try that failed to close the attempt, or another client.
            stored = self.store.get_result_for_session(attempt.id)
            if stored is None:
                raise StorageError("result guard tripped but no result found", session_id=attempt.id)
            created = False
            logger.warning(f"Result for attempt {attempt.id} already existed; reusing it")

        submitted_at = self.clock.now()
        closed = self.store.complete_attempt(attempt.id, answers, stored.score, submitted_at)
        if not closed:
            logger.warning(f"Attempt {attempt.id} was already marked completed in the store")

        with runtime.lock:
            attempt.answers = answers
            attempt.score = stored.score
            attempt.submitted_at = submitted_at
            attempt.is_completed = True
            runtime.state = AttemptState.SUBMITTED

        logger.info(
            f"Attempt {attempt.id} {'auto-submitted' if auto_submit else 'submitted'}: "
            f"score={stored.score} ({stored.correct_answers}/{stored.total_questions}), passed={stored.passed}"
        )
        return SubmissionOutcome(
            session_id=attempt.id,
            auto_submit=auto_submit,
            created=created,
            message=AUTO_SUBMIT_MESSAGE if auto_submit else MANUAL_SUBMIT_MESSAGE,
            result=stored,
        )

    def _reopen(self, runtime: AttemptRuntime) -> None:
        with runtime.lock:
            if runtime.state == AttemptState.SUBMITTING:
                runtime.state = AttemptState.ACTIVE

    def _already_submitted(self, runtime: AttemptRuntime, auto_submit: bool) -> SubmissionOutcome:
        logger.warning(f"Attempt {runtime.session_id} already submitted; ignoring repeated submit")
        if runtime.outcome is not None:
            return runtime.outcome.model_copy(update={"created": False})
        result = self.store.get_result_for_session(runtime.session_id)
        if result is None:
            raise NotFound("attempt is completed but has no result", session_id=runtime.session_id)
        outcome = SubmissionOutcome(
            session_id=runtime.session_id,
            auto_submit=auto_submit,
            created=False,
            message=AUTO_SUBMIT_MESSAGE if auto_submit else MANUAL_SUBMIT_MESSAGE,
            result=result,
        )
        runtime.outcome = outcome
        return outcome

    def handle_expiry(self, session_id: str) -> None:
        """Countdown expiry hook. Failures are logged; the attempt stays active and resumable."""
        try:
            self.submit(session_id, auto_submit=True)
        except ExamSessionError as e:
            logger.error(f"Auto-submit of attempt {session_id} failed, attempt left resumable: {e}")
