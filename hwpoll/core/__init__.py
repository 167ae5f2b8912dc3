"""Core module containing data models, configuration and error types."""

from .models import (
    HardwareCategory,
    SensorKind,
    SensorReading,
    Skipped,
    SkipReason,
    Snapshot,
)
from .config import Config
from .errors import EngineInitError, EngineDisposedError, HardwareAccessError

__all__ = [
    "HardwareCategory",
    "SensorKind",
    "SensorReading",
    "Skipped",
    "SkipReason",
    "Snapshot",
    "Config",
    "EngineInitError",
    "EngineDisposedError",
    "HardwareAccessError",
]
