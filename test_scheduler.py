"""Tests for Countdown and CountdownScheduler."""
import threading

from conftest import FakeClock
from exam_session import scheduler as scheduler_module
from exam_session.scheduler import Countdown, CountdownScheduler


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, attempt_id):
        self.calls.append(attempt_id)


def test_countdown_fires_once_at_deadline():
    clock = FakeClock()
    fired = Recorder()
    countdown = Countdown("a1", 3, fired, clock=clock)

    assert countdown.remaining_seconds == 3
    assert countdown.tick() is False
    clock.advance(2)
    assert countdown.tick() is False
    assert countdown.remaining_seconds == 1
    clock.advance(1)
    assert countdown.tick() is True
    assert countdown.tick() is False
    clock.advance(10)
    assert countdown.tick() is False

    assert fired.calls == ["a1"]
    assert countdown.expired.is_set()
    assert countdown.remaining_seconds == 0


def test_cancel_prevents_expiry():
    clock = FakeClock()
    fired = Recorder()
    countdown = Countdown("a1", 1, fired, clock=clock)

    assert countdown.cancel() is True
    assert countdown.cancel() is False
    clock.advance(5)
    assert countdown.tick() is False
    assert fired.calls == []
    assert countdown.cancelled


def test_negative_start_is_clamped_to_zero():
    clock = FakeClock()
    fired = Recorder()
    countdown = Countdown("a1", -30, fired, clock=clock)
    assert countdown.initial_seconds == 0
    assert countdown.tick() is True
    assert fired.calls == ["a1"]


def test_rearm_replaces_previous_countdown():
    clock = FakeClock()
    scheduler = CountdownScheduler(clock=clock, autostart=False)
    fired = Recorder()

    first = scheduler.arm("a1", 100, fired)
    second = scheduler.arm("a1", 50, fired)

    assert first.cancelled
    assert scheduler.get("a1") is second
    clock.advance(50)
    assert scheduler.tick("a1") is True
    assert first.tick() is False
    assert fired.calls == ["a1"]


def test_expiry_fires_at_most_once_across_recreations():
    clock = FakeClock()
    scheduler = CountdownScheduler(clock=clock, autostart=False)
    fired = Recorder()

    for remaining in (30, 20, 10):
        scheduler.arm("a1", remaining, fired)
    clock.advance(10)
    assert scheduler.tick("a1") is True
    assert scheduler.has_fired("a1")

    # Resume after expiry recreates the countdown with zero remaining; it must stay silent.
    again = scheduler.arm("a1", 0, fired)
    assert again.expired.is_set()
    assert again.tick() is False
    assert scheduler.tick("a1") is False
    assert fired.calls == ["a1"]


def test_scheduler_cancel_and_shutdown():
    clock = FakeClock()
    scheduler = CountdownScheduler(clock=clock, autostart=False)
    fired = Recorder()

    a = scheduler.arm("a1", 5, fired)
    b = scheduler.arm("a2", 5, fired)
    assert scheduler.cancel("a1") is True
    assert scheduler.cancel("a1") is False
    assert a.cancelled

    scheduler.shutdown()
    assert b.cancelled
    clock.advance(10)
    assert scheduler.tick("a2") is False
    assert fired.calls == []


def test_expiry_callback_errors_are_contained():
    clock = FakeClock()

    def boom(attempt_id):
        raise RuntimeError("store down")

    countdown = Countdown("a1", 0, boom, clock=clock)
    assert countdown.tick() is True
    assert countdown.expired.is_set()


def test_background_thread_fires_once():
    done = threading.Event()
    calls = []

    def on_expire(attempt_id):
        calls.append(attempt_id)
        done.set()

    scheduler = CountdownScheduler(interval=0.01)
    countdown = scheduler.arm("a1", 0, on_expire)
    try:
        assert done.wait(2.0)
        assert countdown.expired.wait(1.0)
        assert calls == ["a1"]
    finally:
        scheduler.shutdown()


def test_background_thread_stops_on_cancel():
    calls = []
    scheduler = CountdownScheduler(interval=0.01)
    countdown = scheduler.arm("a1", 3600, calls.append)
    assert countdown.running
    scheduler.cancel("a1")
    countdown._thread.join(1.0)
    assert not countdown.running
    assert calls == []


def test_cancel_during_expiry_reports_the_expiry_won(monkeypatch):
    clock = FakeClock()
    fired = Recorder()
    countdown = Countdown("a1", 0, fired, clock=clock)
    cancel_results = []

    # Cancel lands after the tick decided to fire but before the callback runs.
    monkeypatch.setattr(scheduler_module.logger, "info", lambda *a, **k: cancel_results.append(countdown.cancel()))

    assert countdown.tick() is True
    assert cancel_results == [False]
    assert fired.calls == ["a1"]
    assert countdown.cancelled


def test_forget_clears_fired_attempt():
    clock = FakeClock()
    scheduler = CountdownScheduler(clock=clock, autostart=False)
    fired = Recorder()

    scheduler.arm("a1", 0, fired)
    assert scheduler.tick("a1") is True
    scheduler.forget("a1")

    assert not scheduler.has_fired("a1")
    assert scheduler.get("a1") is None
