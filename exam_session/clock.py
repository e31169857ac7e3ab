"""Time source for attempts: wall-clock for persisted timestamps, monotonic for countdown deadlines."""
import math
import time
from datetime import datetime, timezone


class Clock:
    """System clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    def elapsed_seconds(self, started_at: datetime) -> float:
        """Seconds since ``started_at``. Naive timestamps are taken as UTC."""
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=timezone.utc)
        return max(0.0, (self.now() - started_at).total_seconds())

    def remaining_seconds(self, started_at: datetime, budget_seconds: int) -> int:
        """Whole seconds left in the budget, floored at zero."""
        left = budget_seconds - self.elapsed_seconds(started_at)
        return max(0, int(math.ceil(left)))
