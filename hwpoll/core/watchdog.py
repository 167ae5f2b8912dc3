"""
Polling loop watchdog.

Runs on its own thread, independent of the poll driver. When no poll has
succeeded for longer than the stall threshold it fires a recovery action
once per stall episode. It only reads the coordinator's clock; recovery is
left entirely to the callback.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from .log import ErrorSink


logger = logging.getLogger(__name__)


class WatchdogState(str, Enum):
    HEALTHY = "healthy"
    STALLED = "stalled"


class WatchdogMonitor:
    """
    Detects a stalled polling loop and triggers recovery.
    
    ``last_success`` returns the clock value of the last successful poll
    (or None before the first one). ``recover`` is called on entering the
    stalled state, typically restarting the driver timer and requesting an
    immediate poll. If the loop is still stalled ``restart_cooldown`` seconds
    after a recovery, the watchdog fires once more.
    """
    
    def __init__(
        self,
        last_success: Callable[[], Optional[float]],
        recover: Callable[[], None],
        threshold: float,
        sink: ErrorSink,
        start_delay: float = 2.0,
        tick_interval: float = 1.0,
        restart_cooldown: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._last_success = last_success
        self._recover = recover
        self.threshold = threshold
        self._sink = sink
        self.start_delay = start_delay
        self.tick_interval = tick_interval
        self.restart_cooldown = restart_cooldown
        self._clock = clock
        
        self.state = WatchdogState.HEALTHY
        self.last_observed_poll_time: Optional[float] = None
        self.recoveries = 0
        self._created_at = clock()
        self._episode_poll_time: Optional[float] = None
        self._last_recovery_at: Optional[float] = None
        
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
    
    def tick(self) -> bool:
        """Evaluate liveness once. Returns True if recovery was fired."""
        now = self._clock()
        observed = self._last_success()
        if observed is None:
            observed = self._created_at
        self.last_observed_poll_time = observed
        
        if now - observed <= self.threshold:
            if self.state == WatchdogState.STALLED:
                logger.info("Polling loop recovered")
            self.state = WatchdogState.HEALTHY
            return False
        
        if self.state == WatchdogState.STALLED and observed == self._episode_poll_time:
            if now - self._last_recovery_at < self.restart_cooldown:
                return False
            logger.warning(f"Polling loop still stalled after {now - observed:.1f}s, retrying recovery")
        else:
            logger.warning(f"Polling loop stalled: no successful poll for {now - observed:.1f}s")
            self.state = WatchdogState.STALLED
            self._episode_poll_time = observed
        
        self._last_recovery_at = now
        self.recoveries += 1
        try:
            self._recover()
        except Exception as e:
            self._sink.error("Watchdog recovery", str(e), e)
        return True
    
    def start(self):
        """Start ticking on a background thread after the start delay."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="hwpoll-watchdog", daemon=True)
        self._thread.start()
    
    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
    
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
    
    def _run(self):
        if self._stop.wait(self.start_delay):
            return
        logger.debug(f"Watchdog started (threshold {self.threshold:.2f}s)")
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                self._sink.error("Watchdog tick", str(e), e)
            self._stop.wait(self.tick_interval)
