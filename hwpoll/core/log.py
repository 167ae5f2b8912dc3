"""
Logging setup and the error sink injected into the polling engine.

The engine never logs failures through a global; it reports them to an
``ErrorSink`` so callers and tests can substitute their own.
"""

import logging
import logging.handlers
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from .config import LoggingConfig


logger = logging.getLogger(__name__)


class ErrorSink(Protocol):
    """Receives ``(context, message, cause)`` reports. Must never raise."""
    
    def error(self, context: str, message: str, cause: Optional[BaseException] = None) -> None: ...


class LoggingErrorSink:
    """Error sink that writes to a standard library logger."""
    
    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logging.getLogger("hwpoll.errors")
    
    def error(self, context: str, message: str, cause: Optional[BaseException] = None) -> None:
        try:
            self._logger.error(f"ERROR in {context}: {message}", exc_info=cause)
        except Exception:
            # Reporting must never raise into the poll path
            pass


class RecordingErrorSink:
    """Error sink that keeps every report in memory."""
    
    def __init__(self):
        self._lock = threading.Lock()
        self.records: List[Tuple[str, str, Optional[BaseException]]] = []
    
    def error(self, context: str, message: str, cause: Optional[BaseException] = None) -> None:
        with self._lock:
            self.records.append((context, message, cause))
    
    def contexts(self) -> List[str]:
        with self._lock:
            return [context for context, _, _ in self.records]
    
    def __len__(self) -> int:
        with self._lock:
            return len(self.records)


def setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger from a LoggingConfig."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))
    formatter = logging.Formatter(config.format)
    
    for handler in list(root.handlers):
        root.removeHandler(handler)
    
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    
    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        logger.info(f"Logging to {config.file_path}")
