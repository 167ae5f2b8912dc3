"""Collectors module exposing hardware backends."""

from .base import HardwareNode, HardwareTree, Sensor
from .local_collector import LocalHardwareTree

__all__ = [
    "HardwareNode",
    "HardwareTree",
    "Sensor",
    "LocalHardwareTree",
]
