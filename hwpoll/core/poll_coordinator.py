"""
Poll scheduling.

Decides whether a poll may run now, how deep it should scan, and makes
sure only one poll runs at a time. Requests that arrive while a poll is
running are dropped, never queued.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .hardware_cache import HardwareCache
from .log import ErrorSink
from .models import Skipped, SkipReason, Snapshot
from .scanner import ScanExecutor
from .sensor_reader import SensorReader


logger = logging.getLogger(__name__)


@dataclass
class PollState:
    """Mutable scheduling state. Only touched with the coordinator lock held."""
    
    last_started: Optional[float] = None
    last_success: Optional[float] = None
    in_flight: bool = False
    disposed: bool = False
    completed: int = 0
    skipped: int = 0
    failed: int = 0


class PollCoordinator:
    """
    Single-flight poll execution with throttling and depth selection.
    
    A poll runs only when forced or when ``min_poll_interval`` seconds have
    passed since the previous poll started. It is thorough when forced or
    when the last successful poll is older than ``thorough_after`` seconds;
    a thorough poll refreshes some categories twice and then drops the
    handle cache so hardware changes are picked up.
    """
    
    def __init__(
        self,
        scanner: ScanExecutor,
        cache: HardwareCache,
        reader: SensorReader,
        sink: ErrorSink,
        min_poll_interval: float = 0.75,
        thorough_after: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._scanner = scanner
        self._cache = cache
        self._reader = reader
        self._sink = sink
        self._min_poll_interval = min_poll_interval
        self._thorough_after = thorough_after
        self._clock = clock
        self._cond = threading.Condition()
        self._state = PollState()
    
    @property
    def last_successful_poll_time(self) -> Optional[float]:
        """Clock value at which the last successful poll finished."""
        with self._cond:
            return self._state.last_success
    
    @property
    def in_flight(self) -> bool:
        with self._cond:
            return self._state.in_flight
    
    @property
    def stats(self) -> dict:
        with self._cond:
            return {
                "completed": self._state.completed,
                "skipped": self._state.skipped,
                "failed": self._state.failed,
            }
    
    def _begin(self, force_thorough: bool) -> Union[bool, Skipped]:
        """Claim the poll slot. Returns the depth to scan at, or a Skipped."""
        with self._cond:
            state = self._state
            if state.disposed:
                return Skipped(SkipReason.DISPOSED)
            if state.in_flight:
                state.skipped += 1
                return Skipped(SkipReason.IN_FLIGHT)
            
            now = self._clock()
            if (
                not force_thorough
                and state.last_started is not None
                and now - state.last_started < self._min_poll_interval
            ):
                state.skipped += 1
                return Skipped(SkipReason.THROTTLED)
            
            thorough = (
                force_thorough
                or state.last_success is None
                or now - state.last_success > self._thorough_after
            )
            state.in_flight = True
            state.last_started = now
            return thorough
    
    def poll(self, force_thorough: bool = False) -> Union[Snapshot, Skipped]:
        """Run one poll if allowed and return its snapshot."""
        claim = self._begin(force_thorough)
        if isinstance(claim, Skipped):
            logger.debug(f"Poll skipped: {claim.reason.value}")
            return claim
        thorough = claim
        
        started = time.perf_counter()
        snapshot = None
        try:
            self._scanner.scan(thorough)
            if thorough:
                self._cache.invalidate()
            snapshot = self._read_snapshot(thorough, started)
        except Exception as e:
            self._sink.error("Update failed", str(e), e)
        finally:
            with self._cond:
                if snapshot is None:
                    self._state.failed += 1
                else:
                    self._state.last_success = self._clock()
                    self._state.completed += 1
                self._state.in_flight = False
                self._cond.notify_all()

        if snapshot is None:
            return Skipped(SkipReason.FAILED)
        return snapshot
    
    def _read_snapshot(self, thorough: bool, started: float) -> Snapshot:
        reader = self._reader
        cpu_temperature = reader.cpu_temperature()
        memory_temperature, estimated = reader.memory_temperature(cpu_temperature)
        
        return Snapshot(
            cpu_temperature=cpu_temperature,
            cpu_load=reader.cpu_load(),
            gpu_temperature=reader.gpu_temperature(),
            gpu_load=reader.gpu_load(),
            gpu_fan_speed=reader.gpu_fan_speed(),
            memory_temperature=memory_temperature,
            memory_temperature_estimated=estimated,
            disk_temperatures=reader.disk_temperatures(),
            thorough=thorough,
            collection_duration_ms=(time.perf_counter() - started) * 1000,
        )
    
    def close(self, timeout: Optional[float] = None) -> bool:
        """
        Refuse new polls and wait for a running one to finish.
        
        Returns False if the running poll did not finish within ``timeout``.
        """
        with self._cond:
            self._state.disposed = True
            return self._cond.wait_for(lambda: not self._state.in_flight, timeout)
