"""
Countdown scheduling for active attempts.

One ``Countdown`` per attempt. It is anchored to a monotonic deadline, ticks
once per interval on a daemon thread, and fires its expiry callback at most
once. ``CountdownScheduler`` owns the countdowns by attempt id so a resumed
attempt replaces its previous countdown instead of running two, and remembers
which attempts already expired so a recreated countdown never fires twice.
"""
import logging
import math
import threading
from typing import Callable, Dict, Optional, Set

from exam_session import config
from exam_session.clock import Clock

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[str], None]


class Countdown:
    """Single-shot countdown handle. Once ``cancel()`` returns True, no expiry can fire."""

    def __init__(
        self,
        attempt_id: str,
        remaining_seconds: int,
        on_expire: ExpiryCallback,
        clock: Optional[Clock] = None,
        interval: float = config.TICK_INTERVAL_SECONDS,
    ):
        self.attempt_id = attempt_id
        self.clock = clock or Clock()
        self.interval = interval
        self.initial_seconds = max(0, int(remaining_seconds))
        self.deadline = self.clock.monotonic() + self.initial_seconds
        self._on_expire = on_expire
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self.expired = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def remaining_seconds(self) -> int:
        left = self.deadline - self.clock.monotonic()
        return max(0, int(math.ceil(left)))

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"countdown-{self.attempt_id[:8]}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval):
            self.tick()
            if self.expired.is_set():
                break

    def tick(self) -> bool:
        """Check the deadline. Returns True only on the tick that fired the expiry callback."""
        with self._lock:
            if self._cancelled.is_set() or self.expired.is_set():
                return False
            if self.clock.monotonic() < self.deadline:
                return False
            self.expired.set()
        logger.info(f"Countdown for attempt {self.attempt_id} reached zero")
        try:
            self._on_expire(self.attempt_id)
        except Exception:
            # Runs on the countdown thread; there is no caller to hand this to.
            logger.exception(f"Expiry handler failed for attempt {self.attempt_id}")
        return True

    def cancel(self) -> bool:
        """
        Stop the countdown.

        Returns True only when the expiry can no longer fire. Returns False if
        the countdown was already cancelled or its expiry already fired.
        """
        with self._lock:
            if self._cancelled.is_set():
                return False
            self._cancelled.set()
            if self.expired.is_set():
                return False
        logger.debug(f"Countdown for attempt {self.attempt_id} cancelled")
        return True


class CountdownScheduler:
    """Registry of live countdowns, at most one per attempt."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        interval: float = config.TICK_INTERVAL_SECONDS,
        autostart: bool = True,
    ):
        self.clock = clock or Clock()
        self.interval = interval
        self.autostart = autostart
        self._lock = threading.Lock()
        self._countdowns: Dict[str, Countdown] = {}
        self._fired: Set[str] = set()

    def arm(self, attempt_id: str, remaining_seconds: int, on_expire: ExpiryCallback) -> Countdown:
        """
        Start (or restart) the countdown for an attempt.

        Any previous countdown for the same attempt is cancelled first. If the
        attempt already expired under this scheduler, the returned countdown is
        marked expired and never calls ``on_expire`` again.
        """
        with self._lock:
            previous = self._countdowns.pop(attempt_id, None)
        if previous is not None:
            previous.cancel()

        countdown = Countdown(
            attempt_id,
            remaining_seconds,
            self._once(on_expire),
            clock=self.clock,
            interval=self.interval,
        )
        with self._lock:
            if attempt_id in self._fired:
                countdown.expired.set()
                countdown.cancel()
                return countdown
            self._countdowns[attempt_id] = countdown
        if self.autostart:
            countdown.start()
        logger.debug(f"Armed countdown for attempt {attempt_id}: {countdown.initial_seconds}s")
        return countdown

    def _once(self, on_expire: ExpiryCallback) -> ExpiryCallback:
        def fire(attempt_id: str) -> None:
            with self._lock:
                if attempt_id in self._fired:
                    logger.warning(f"Ignoring repeated expiry for attempt {attempt_id}")
                    return
                self._fired.add(attempt_id)
                self._countdowns.pop(attempt_id, None)
            on_expire(attempt_id)

        return fire

    def get(self, attempt_id: str) -> Optional[Countdown]:
        with self._lock:
            return self._countdowns.get(attempt_id)

    def has_fired(self, attempt_id: str) -> bool:
        with self._lock:
            return attempt_id in self._fired

    def tick(self, attempt_id: str) -> bool:
        """Drive one tick by hand (used when ``autostart`` is off)."""
        countdown = self.get(attempt_id)
        return countdown.tick() if countdown is not None else False

    def cancel(self, attempt_id: str) -> bool:
        with self._lock:
            countdown = self._countdowns.pop(attempt_id, None)
        if countdown is None:
            return False
        return countdown.cancel()

    def forget(self, attempt_id: str) -> None:
        """Drop everything held for a finished attempt."""
        with self._lock:
            countdown = self._countdowns.pop(attempt_id, None)
            self._fired.discard(attempt_id)
        if countdown is not None:
            countdown.cancel()

    def shutdown(self) -> None:
        with self._lock:
            countdowns = list(self._countdowns.values())
            self._countdowns.clear()
        for countdown in countdowns:
            countdown.cancel()
