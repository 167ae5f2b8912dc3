"""
Sensor selection.

Resolves each snapshot field from the cached hardware handles. Every read
is isolated: a failing sensor yields None for its own field only.
"""

import logging
from typing import Dict, Optional, Tuple

from .disk_namer import unique_display_names
from .hardware_cache import HardwareCache
from .log import ErrorSink
from .models import HardwareCategory, SensorKind
from ..collectors.base import HardwareNode, HardwareTree


logger = logging.getLogger(__name__)


MEMORY_SENSOR_NAMES = ("Memory", "RAM")


def first_value(
    node: Optional[HardwareNode],
    kind: SensorKind,
    name_filter: Optional[str] = None,
) -> Optional[float]:
    """Value of the first matching sensor on a node, or None."""
    if node is None:
        return None
    for sensor in node.sensors_of_kind(kind, name_filter):
        return sensor.value
    return None


class SensorReader:
    """Reads snapshot fields through a HardwareCache."""
    
    def __init__(
        self,
        tree: HardwareTree,
        cache: HardwareCache,
        sink: ErrorSink,
        estimate_memory_from_cpu: bool = True,
        memory_estimate_offset: float = 5.0,
    ):
        self._tree = tree
        self._cache = cache
        self._sink = sink
        self._estimate_memory = estimate_memory_from_cpu
        self._memory_offset = memory_estimate_offset
    
    def _value(
        self,
        category: HardwareCategory,
        kind: SensorKind,
        name_filter: Optional[str] = None,
    ) -> Optional[float]:
        try:
            return first_value(self._cache.lookup(category), kind, name_filter)
        except Exception as e:
            logger.debug(f"{category.value} {kind.value} unavailable: {e}")
            return None
    
    def cpu_temperature(self) -> Optional[float]:
        return self._value(HardwareCategory.CPU, SensorKind.TEMPERATURE)
    
    def cpu_load(self) -> Optional[float]:
        return self._value(HardwareCategory.CPU, SensorKind.LOAD, "Total")
    
    def gpu_temperature(self) -> Optional[float]:
        value = self._value(HardwareCategory.GPU_NVIDIA, SensorKind.TEMPERATURE)
        if value is None:
            value = self._value(HardwareCategory.GPU_AMD, SensorKind.TEMPERATURE)
        return value
    
    def gpu_load(self) -> Optional[float]:
        value = self._value(HardwareCategory.GPU_NVIDIA, SensorKind.LOAD, "Core")
        if value is None:
            value = self._value(HardwareCategory.GPU_AMD, SensorKind.LOAD)
        return value
    
    def gpu_fan_speed(self) -> Optional[float]:
        value = self._value(HardwareCategory.GPU_NVIDIA, SensorKind.FAN)
        if value is None:
            value = self._value(HardwareCategory.GPU_AMD, SensorKind.FAN)
        return value
    
    def memory_temperature(self, cpu_temperature: Optional[float] = None) -> Tuple[Optional[float], bool]:
        """
        Get the memory temperature and whether it is an estimate.
        
        Tries the memory node, then memory/RAM sensors on the motherboard
        and its sub-hardware. When nothing is found the value is estimated
        from the CPU temperature, if enabled.
        """
        value = self._value(HardwareCategory.MEMORY, SensorKind.TEMPERATURE)
        if value is not None:
            return value, False
        
        try:
            motherboard = self._cache.lookup(HardwareCategory.MOTHERBOARD)
            if motherboard is not None:
                for node in [motherboard] + motherboard.children():
                    for sensor in node.sensors_of_kind(SensorKind.TEMPERATURE):
                        if any(name in sensor.name for name in MEMORY_SENSOR_NAMES):
                            value = sensor.value
                            if value is not None:
                                return value, False
        except Exception as e:
            self._sink.error("Memory temperature", str(e), e)
        
        if self._estimate_memory and cpu_temperature is not None:
            return cpu_temperature - self._memory_offset, True
        return None, False
    
    def disk_temperatures(self) -> Dict[str, Optional[float]]:
        """Get display name -> temperature for every storage device."""
        try:
            drives = self._tree.enumerate(HardwareCategory.STORAGE)
        except Exception as e:
            self._sink.error("Disk temperatures", str(e), e)
            return {}
        
        names = unique_display_names(drive.name for drive in drives)

        result: Dict[str, Optional[float]] = {}
        for name, drive in zip(names, drives):
            try:
                result[name] = first_value(drive, SensorKind.TEMPERATURE)
            except Exception as e:
                logger.debug(f"Disk {name} temperature unavailable: {e}")
                result[name] = None
        return result
