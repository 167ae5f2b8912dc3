"""Shared fixtures: fake hardware trees, a manual clock and a recording sink."""

import threading
from typing import Callable, List, Optional

import pytest

from hwpoll.collectors.base import HardwareNode, HardwareTree, Sensor
from hwpoll.core.config import Config
from hwpoll.core.errors import HardwareAccessError
from hwpoll.core.log import RecordingErrorSink
from hwpoll.core.models import HardwareCategory, SensorKind


class FakeClock:
    """Monotonic clock advanced by hand."""
    
    def __init__(self, start: float = 100.0):
        self.now = start
    
    def __call__(self) -> float:
        return self.now
    
    def advance(self, seconds: float):
        self.now += seconds


def constant(value: Optional[float]) -> Callable[[], Optional[float]]:
    return lambda: value


def failing(message: str = "sensor read failed") -> Callable[[], Optional[float]]:
    def read():
        raise OSError(message)
    return read


class FakeNode(HardwareNode):
    """Hardware node with scripted sensors and refresh behaviour."""
    
    def __init__(
        self,
        category: HardwareCategory,
        name: str,
        sensors: Optional[List[Sensor]] = None,
        children: Optional[List[HardwareNode]] = None,
        fail_refresh: bool = False,
        on_refresh: Optional[Callable[[], None]] = None,
    ):
        self.category = category
        self.name = name
        self._sensors = sensors or []
        self._children = children or []
        self.fail_refresh = fail_refresh
        self.on_refresh = on_refresh
        self.refresh_count = 0
    
    def refresh(self) -> None:
        self.refresh_count += 1
        if self.on_refresh is not None:
            self.on_refresh()
        if self.fail_refresh:
            raise HardwareAccessError(self.name, "device not responding")
    
    def children(self) -> List[HardwareNode]:
        return list(self._children)
    
    def sensors(self) -> List[Sensor]:
        return list(self._sensors)


class FakeTree(HardwareTree):
    """Hardware tree over a mutable list of root nodes."""
    
    def __init__(self, nodes: Optional[List[HardwareNode]] = None, fail_open: Optional[Exception] = None):
        self.nodes = nodes or []
        self.fail_open = fail_open
        self.fail_roots: Optional[Exception] = None
        self.open_count = 0
        self.close_count = 0
        self.enumerate_count = 0
    
    def open(self) -> None:
        self.open_count += 1
        if self.fail_open is not None:
            raise self.fail_open
    
    def close(self) -> None:
        self.close_count += 1
    
    def roots(self) -> List[HardwareNode]:
        if self.fail_roots is not None:
            raise self.fail_roots
        return list(self.nodes)
    
    def enumerate(self, category: HardwareCategory) -> List[HardwareNode]:
        self.enumerate_count += 1
        return super().enumerate(category)


def cpu_node(temp: Optional[float] = 45.2, load: Optional[float] = 12.5, **kwargs) -> FakeNode:
    return FakeNode(
        HardwareCategory.CPU,
        "Fake CPU",
        sensors=[
            Sensor(SensorKind.TEMPERATURE, "CPU Package", constant(temp)),
            Sensor(SensorKind.LOAD, "CPU Core #1", constant(99.0)),
            Sensor(SensorKind.LOAD, "CPU Total", constant(load)),
        ],
        **kwargs,
    )


def disk_node(name: str, temp: Optional[float]) -> FakeNode:
    return FakeNode(
        HardwareCategory.STORAGE,
        name,
        sensors=[Sensor(SensorKind.TEMPERATURE, "Composite", constant(temp))],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingErrorSink()


@pytest.fixture
def config():
    config = Config()
    config.warmup.enabled = False
    return config


@pytest.fixture
def tree():
    return FakeTree([
        cpu_node(),
        FakeNode(
            HardwareCategory.GPU_NVIDIA,
            "Fake RTX",
            sensors=[
                Sensor(SensorKind.TEMPERATURE, "GPU Core", constant(61.0)),
                Sensor(SensorKind.LOAD, "GPU Memory", constant(5.0)),
                Sensor(SensorKind.LOAD, "GPU Core", constant(33.0)),
            ],
        ),
        FakeNode(
            HardwareCategory.MEMORY,
            "Memory",
            sensors=[Sensor(SensorKind.TEMPERATURE, "DIMM 1", constant(40.5))],
        ),
        FakeNode(HardwareCategory.MOTHERBOARD, "Fake Board"),
        disk_node("Disk", 35.0),
        disk_node("Disk", 37.0),
    ])


def run_in_thread(target, *args):
    """Run target on a thread and return (thread, result holder)."""
    result = {}
    
    def runner():
        result["value"] = target(*args)
    
    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    return thread, result
