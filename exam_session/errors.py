"""
Error taxonomy for the exam session engine.

Every error carries ``retryable`` so callers can tell a transient storage
problem (retry the same operation) from a terminal one (redirect the user).
"""


class ExamSessionError(Exception):
    """Base class for all engine errors."""

    retryable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class InvalidArgument(ExamSessionError, ValueError):
    """Bad identifiers or out-of-range indices. No state was changed."""


class StorageError(ExamSessionError):
    """The catalog or session store is unreachable or rejected the call."""

    retryable = True


class DuplicateRecordError(StorageError):
    """A uniqueness guard in the store rejected the write."""

    retryable = False


class NotFound(ExamSessionError):
    """Missing exam, attempt or result."""


class NoContentError(NotFound):
    """The catalog has no active questions to draw from."""


class AttemptClosed(ExamSessionError):
    """Mutation attempted after submission began."""


class SubmissionError(ExamSessionError):
    """The submission sequence failed; the attempt stays active and can be resubmitted."""

    retryable = True
