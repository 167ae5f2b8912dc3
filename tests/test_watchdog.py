"""Tests for stalled polling loop detection."""

import threading

from conftest import FakeClock

from hwpoll.core.watchdog import WatchdogMonitor, WatchdogState


class PollClock:
    """Holds the last successful poll time the watchdog observes."""
    
    def __init__(self, value=None):
        self.value = value
    
    def __call__(self):
        return self.value


def make_watchdog(clock, last_success, sink, recover=None, **kwargs):
    calls = []
    watchdog = WatchdogMonitor(
        last_success=last_success,
        recover=recover or (lambda: calls.append(clock.now)),
        threshold=1.5,
        sink=sink,
        clock=clock,
        **kwargs,
    )
    return watchdog, calls


def test_healthy_while_polls_land(clock, sink):
    last = PollClock(clock.now)
    watchdog, calls = make_watchdog(clock, last, sink)
    
    for _ in range(5):
        clock.advance(1.0)
        last.value = clock.now
        assert watchdog.tick() is False
    
    assert calls == []
    assert watchdog.state == WatchdogState.HEALTHY


def test_one_recovery_per_stall_episode(clock, sink):
    last = PollClock(clock.now)
    watchdog, calls = make_watchdog(clock, last, sink)
    
    clock.advance(2.0)
    assert watchdog.tick() is True
    clock.advance(1.0)
    assert watchdog.tick() is False
    clock.advance(1.0)
    assert watchdog.tick() is False
    
    assert len(calls) == 1
    assert watchdog.state == WatchdogState.STALLED
    assert watchdog.last_observed_poll_time == 100.0


def test_successful_poll_ends_episode(clock, sink):
    last = PollClock(clock.now)
    watchdog, calls = make_watchdog(clock, last, sink)
    
    clock.advance(2.0)
    watchdog.tick()
    
    last.value = clock.now
    clock.advance(0.5)
    assert watchdog.tick() is False
    assert watchdog.state == WatchdogState.HEALTHY
    
    clock.advance(2.0)
    assert watchdog.tick() is True
    assert len(calls) == 2


def test_stale_but_newer_poll_starts_new_episode(clock, sink):
    last = PollClock(clock.now)
    watchdog, calls = make_watchdog(clock, last, sink)
    
    clock.advance(2.0)
    watchdog.tick()
    last.value = clock.now
    clock.advance(3.0)
    
    assert watchdog.tick() is True
    assert len(calls) == 2


def test_rearms_after_cooldown(clock, sink):
    last = PollClock(clock.now)
    watchdog, calls = make_watchdog(clock, last, sink, restart_cooldown=10.0)
    
    clock.advance(2.0)
    watchdog.tick()
    for _ in range(9):
        clock.advance(1.0)
        watchdog.tick()
    assert len(calls) == 1
    
    clock.advance(1.0)
    assert watchdog.tick() is True
    assert len(calls) == 2
    assert watchdog.recoveries == 2


def test_no_poll_yet_measures_from_start(clock, sink):
    watchdog, calls = make_watchdog(clock, PollClock(None), sink)
    
    clock.advance(1.0)
    assert watchdog.tick() is False
    clock.advance(1.0)
    assert watchdog.tick() is True


def test_recovery_errors_are_reported(clock, sink):
    def broken():
        raise RuntimeError("timer gone")
    
    watchdog, _ = make_watchdog(clock, PollClock(clock.now), sink, recover=broken)
    clock.advance(2.0)
    
    assert watchdog.tick() is True
    assert sink.contexts() == ["Watchdog recovery"]


def test_background_thread_ticks_after_start_delay(sink):
    clock = FakeClock()
    fired = threading.Event()
    watchdog = WatchdogMonitor(
        last_success=lambda: 0.0,
        recover=fired.set,
        threshold=1.5,
        sink=sink,
        start_delay=0.01,
        tick_interval=0.01,
        clock=clock,
    )
    watchdog.start()
    try:
        assert fired.wait(5)
        assert watchdog.running
    finally:
        watchdog.stop(timeout=5)
    assert not watchdog.running
