"""
Data models for hardware telemetry.

These types describe the hardware tree categories, individual sensor
readings and the snapshot produced by one poll cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional


UNAVAILABLE = "N/A"


class HardwareCategory(str, Enum):
    """Category of a hardware node in the tree."""
    
    CPU = "cpu"
    GPU_NVIDIA = "gpu_nvidia"
    GPU_AMD = "gpu_amd"
    MEMORY = "memory"
    MOTHERBOARD = "motherboard"
    STORAGE = "storage"
    
    @property
    def is_gpu(self) -> bool:
        return self in (HardwareCategory.GPU_NVIDIA, HardwareCategory.GPU_AMD)
    
    @property
    def needs_second_pass(self) -> bool:
        """Categories whose sensors settle only after a repeated refresh."""
        return self.is_gpu or self in (HardwareCategory.CPU, HardwareCategory.MOTHERBOARD)


class SensorKind(str, Enum):
    """Kind of value a sensor reports."""
    
    TEMPERATURE = "temperature"
    LOAD = "load"
    FAN = "fan"


@dataclass(frozen=True)
class SensorReading:
    """A single sensor value. ``value`` is None when nothing could be read."""
    
    kind: SensorKind
    name: str
    value: Optional[float] = None
    
    @property
    def is_available(self) -> bool:
        return self.value is not None


class SkipReason(str, Enum):
    """Why a poll request did not produce a snapshot."""
    
    IN_FLIGHT = "in_flight"
    THROTTLED = "throttled"
    DISPOSED = "disposed"
    FAILED = "failed"


@dataclass(frozen=True)
class Skipped:
    """Outcome of a poll request that did not run the scan to completion."""
    
    reason: SkipReason
    
    def __bool__(self) -> bool:
        return False


UNITS = {
    SensorKind.TEMPERATURE: "°C",
    SensorKind.LOAD: "%",
    SensorKind.FAN: "RPM",
}


def format_value(value: Optional[float], kind: SensorKind = SensorKind.TEMPERATURE) -> str:
    """Render a reading for display, using an explicit marker for absent values."""
    if value is None:
        return UNAVAILABLE
    if kind == SensorKind.FAN:
        return f"{value:.0f} {UNITS[kind]}"
    return f"{value:.1f} {UNITS[kind]}"


@dataclass(frozen=True)
class Snapshot:
    """
    Readings produced by one successful poll.
    
    Any field may be None, meaning the sensor was unavailable during this
    poll. ``disk_temperatures`` keeps the order in which drives were found.
    """
    
    cpu_temperature: Optional[float] = None
    cpu_load: Optional[float] = None
    gpu_temperature: Optional[float] = None
    gpu_load: Optional[float] = None
    gpu_fan_speed: Optional[float] = None
    memory_temperature: Optional[float] = None
    memory_temperature_estimated: bool = False
    disk_temperatures: Mapping[str, Optional[float]] = field(default_factory=dict)
    thorough: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    collection_duration_ms: float = 0.0
    
    def __post_init__(self):
        # Read-only copy, detached from the caller's dict
        object.__setattr__(self, "disk_temperatures", MappingProxyType(dict(self.disk_temperatures)))
    
    def __bool__(self) -> bool:
        return True
    
    def display_rows(self) -> Dict[str, str]:
        """Get label -> formatted value rows for a text display."""
        memory = format_value(self.memory_temperature)
        if self.memory_temperature_estimated and self.memory_temperature is not None:
            memory += " (est.)"
        
        rows = {
            "CPU Temperature": format_value(self.cpu_temperature),
            "CPU Load": format_value(self.cpu_load, SensorKind.LOAD),
            "GPU Temperature": format_value(self.gpu_temperature),
            "GPU Load": format_value(self.gpu_load, SensorKind.LOAD),
            "GPU Fan": format_value(self.gpu_fan_speed, SensorKind.FAN),
            "Memory Temperature": memory,
        }
        for name, value in self.disk_temperatures.items():
            rows[f"Disk {name}"] = format_value(value)
        return rows
    
    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "cpu": {
                "temperature_celsius": self.cpu_temperature,
                "load_percent": self.cpu_load,
            },
            "gpu": {
                "temperature_celsius": self.gpu_temperature,
                "load_percent": self.gpu_load,
                "fan_rpm": self.gpu_fan_speed,
            },
            "memory": {
                "temperature_celsius": self.memory_temperature,
                "estimated": self.memory_temperature_estimated,
            },
            "disks": dict(self.disk_temperatures),
            "thorough": self.thorough,
            "timestamp": self.timestamp.isoformat(),
            "collection_duration_ms": round(self.collection_duration_ms, 2),
        }
