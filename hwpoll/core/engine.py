"""
Polling engine.

Owns the hardware tree for its whole lifetime: opens it on construction,
polls it through the coordinator and closes it exactly once on dispose.
"""

import logging
import threading
import time
from typing import Callable, Optional, Union

from .config import Config
from .errors import EngineDisposedError, EngineInitError
from .hardware_cache import HardwareCache
from .log import ErrorSink, LoggingErrorSink
from .models import Skipped, Snapshot
from .poll_coordinator import PollCoordinator
from .scanner import ScanExecutor
from .sensor_reader import SensorReader
from ..collectors.base import HardwareTree


logger = logging.getLogger(__name__)


class HardwareEngine:
    """
    Facade over the polling components.
    
    Construction fails with EngineInitError when the hardware tree cannot
    be opened. Every other hardware failure is contained and reported to
    the error sink.
    """
    
    def __init__(
        self,
        tree: HardwareTree,
        config: Optional[Config] = None,
        sink: Optional[ErrorSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or Config()
        self.sink = sink or LoggingErrorSink()
        self.clock = clock
        self._tree = tree
        self._disposed = False
        self._dispose_lock = threading.Lock()
        self._warmup_stop = threading.Event()
        self._warmup_thread: Optional[threading.Thread] = None
        
        try:
            tree.open()
        except EngineInitError:
            self._close_quietly()
            raise
        except Exception as e:
            self._close_quietly()
            raise EngineInitError(f"Failed to open hardware tree: {e}") from e
        
        polling = self.config.polling
        self.cache = HardwareCache(tree)
        self.scanner = ScanExecutor(tree, self.sink)
        self.reader = SensorReader(
            tree,
            self.cache,
            self.sink,
            estimate_memory_from_cpu=polling.estimate_memory_from_cpu,
            memory_estimate_offset=polling.memory_estimate_offset,
        )
        self.coordinator = PollCoordinator(
            self.scanner,
            self.cache,
            self.reader,
            self.sink,
            min_poll_interval=polling.min_poll_interval_ms / 1000,
            thorough_after=polling.thorough_after_ms / 1000,
            clock=clock,
        )
        
        # Basic thorough update so the first reads have data
        self.coordinator.poll(force_thorough=True)
        logger.info("Hardware engine ready")
    
    def _close_quietly(self):
        try:
            self._tree.close()
        except Exception as e:
            self.sink.error("Close after failed open", str(e), e)
    
    @property
    def tree(self) -> HardwareTree:
        return self._tree

    @property
    def disposed(self) -> bool:
        return self._disposed
    
    @property
    def last_successful_poll_time(self) -> Optional[float]:
        return self.coordinator.last_successful_poll_time
    
    def poll(self, force_thorough: bool = False) -> Union[Snapshot, Skipped]:
        """Poll the hardware. Never raises for hardware failures."""
        return self.coordinator.poll(force_thorough)
    
    def start_warmup(self):
        """
        Schedule repeated thorough scans shortly after startup.
        
        Some sensor chips report nothing until they have been read a few
        times; the scan count and spacing come from ``config.warmup``.
        """
        if self._disposed:
            raise EngineDisposedError("Engine has been disposed")
        warmup = self.config.warmup
        if not warmup.enabled or warmup.scans <= 0 or self._warmup_thread is not None:
            return
        
        self._warmup_thread = threading.Thread(
            target=self._run_warmup, name="hwpoll-warmup", daemon=True
        )
        self._warmup_thread.start()
    
    def _run_warmup(self):
        warmup = self.config.warmup
        if self._warmup_stop.wait(warmup.delay_seconds):
            return
        for i in range(warmup.scans):
            if self._warmup_stop.is_set():
                return
            result = self.poll(force_thorough=True)
            logger.debug(f"Warm-up scan {i + 1}/{warmup.scans}: {'ok' if result else result}")
            if self._warmup_stop.wait(warmup.spacing_seconds):
                return
    
    def dispose(self, timeout: Optional[float] = None):
        """
        Stop polling and close the hardware tree.
        
        Safe to call more than once. Waits for a running poll to finish
        before closing; errors from closing the tree propagate.
        """
        with self._dispose_lock:
            if self._disposed:
                return
            self._disposed = True
        
        self._warmup_stop.set()
        if not self.coordinator.close(timeout):
            logger.warning("Disposing while a poll is still running")
        if self._warmup_thread is not None and self._warmup_thread is not threading.current_thread():
            self._warmup_thread.join(timeout)
        
        self.cache.invalidate()
        self._tree.close()
        logger.info("Hardware engine disposed")
    
    def __enter__(self) -> "HardwareEngine":
        return self
    
    def __exit__(self, exc_type, exc, tb):
        self.dispose()
