"""
Hardware access interface.

A hardware backend exposes a tree of container nodes. Each node can be
asked to refresh itself and reports its sensors; sensors are leaves and
are only read, never refreshed directly.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..core.models import HardwareCategory, SensorKind, SensorReading


class Sensor:
    """
    A leaf sensor on a hardware node.
    
    ``read`` returns the current value or None; it may raise when the
    underlying device misbehaves.
    """
    
    def __init__(self, kind: SensorKind, name: str, read: Callable[[], Optional[float]]):
        self.kind = kind
        self.name = name
        self._read = read
    
    @property
    def value(self) -> Optional[float]:
        return self._read()
    
    def reading(self) -> SensorReading:
        """Read the sensor into a SensorReading, raising on failure."""
        return SensorReading(kind=self.kind, name=self.name, value=self.value)
    
    def __repr__(self) -> str:
        return f"Sensor({self.kind.value}, {self.name!r})"


class HardwareNode(ABC):
    """A container node in the hardware tree."""
    
    name: str
    category: HardwareCategory
    
    @abstractmethod
    def refresh(self) -> None:
        """Re-read the hardware so that sensor values are current."""
    
    def children(self) -> List["HardwareNode"]:
        """Sub-hardware containers of this node."""
        return []
    
    @abstractmethod
    def sensors(self) -> List[Sensor]:
        """Sensors reported by this node as of its last refresh."""
    
    def sensors_of_kind(self, kind: SensorKind, name_filter: Optional[str] = None) -> List[Sensor]:
        found = [s for s in self.sensors() if s.kind == kind]
        if name_filter:
            found = [s for s in found if name_filter in s.name]
        return found
    
    def readings(self) -> List[SensorReading]:
        """Current value of every sensor. A failing read gives an absent value."""
        result = []
        for sensor in self.sensors():
            try:
                result.append(sensor.reading())
            except Exception:
                result.append(SensorReading(kind=sensor.kind, name=sensor.name))
        return result
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.category.value}, {self.name!r})"


class HardwareTree(ABC):
    """Root of a hardware backend. Opened once and closed once."""
    
    @abstractmethod
    def open(self) -> None:
        """Open the backend. Raises EngineInitError when no hardware is reachable."""
    
    @abstractmethod
    def close(self) -> None:
        """Release the backend and every node handle it gave out."""
    
    @abstractmethod
    def roots(self) -> List[HardwareNode]:
        """Top level hardware nodes in discovery order."""
    
    def enumerate(self, category: HardwareCategory) -> List[HardwareNode]:
        return [node for node in self.roots() if node.category == category]
