"""End-to-end tests for the hardware engine facade."""

import threading

import pytest
from conftest import FakeTree, cpu_node, disk_node, run_in_thread

from hwpoll.core.engine import HardwareEngine
from hwpoll.core.errors import EngineDisposedError, EngineInitError
from hwpoll.core.models import Skipped, SkipReason, Snapshot


def test_end_to_end_snapshot(config, sink, clock):
    tree = FakeTree([cpu_node(temp=45.2, load=12.5), disk_node("Disk", 33.0), disk_node("Disk", 36.5)])
    engine = HardwareEngine(tree, config, sink, clock=clock)
    
    snapshot = engine.poll(force_thorough=True)
    assert isinstance(snapshot, Snapshot)
    assert snapshot.cpu_temperature == 45.2
    assert snapshot.cpu_load == 12.5
    assert snapshot.disk_temperatures == {"Disk": 33.0, "Disk #2": 36.5}
    assert snapshot.gpu_temperature is None
    engine.dispose()


def test_construction_runs_initial_poll(tree, config, sink, clock):
    engine = HardwareEngine(tree, config, sink, clock=clock)
    
    assert engine.last_successful_poll_time == clock.now
    assert engine.poll() == Skipped(SkipReason.THROTTLED)
    engine.dispose()


def test_open_failure_raises_init_error(config, sink):
    tree = FakeTree(fail_open=PermissionError("driver not loaded"))
    
    with pytest.raises(EngineInitError, match="driver not loaded"):
        HardwareEngine(tree, config, sink)
    assert tree.close_count == 1


def test_dispose_is_idempotent(tree, config, sink, clock):
    engine = HardwareEngine(tree, config, sink, clock=clock)
    engine.dispose()
    engine.dispose()
    
    assert tree.close_count == 1
    assert engine.disposed
    assert engine.poll(force_thorough=True) == Skipped(SkipReason.DISPOSED)


def test_context_manager_disposes(tree, config, sink, clock):
    with HardwareEngine(tree, config, sink, clock=clock) as engine:
        assert isinstance(engine.poll(force_thorough=True), Snapshot)
    assert tree.close_count == 1


def test_dispose_waits_for_running_poll(config, sink, clock):
    entered = threading.Event()
    release = threading.Event()
    blocking = {"on": False}
    
    def block():
        if blocking["on"]:
            entered.set()
            release.wait(5)
    
    tree = FakeTree([cpu_node(on_refresh=block)])
    engine = HardwareEngine(tree, config, sink, clock=clock)
    blocking["on"] = True
    poller, result = run_in_thread(engine.poll, True)
    assert entered.wait(5)
    
    disposer, _ = run_in_thread(engine.dispose)
    disposer.join(0.1)
    assert disposer.is_alive()
    assert tree.close_count == 0
    
    release.set()
    poller.join(5)
    disposer.join(5)
    assert isinstance(result["value"], Snapshot)
    assert tree.close_count == 1


def test_warmup_runs_configured_scans(tree, config, sink, clock):
    config.warmup.enabled = True
    config.warmup.delay_seconds = 0.0
    config.warmup.spacing_seconds = 0.0
    config.warmup.scans = 3
    engine = HardwareEngine(tree, config, sink, clock=clock)
    
    engine.start_warmup()
    engine._warmup_thread.join(5)
    assert engine.coordinator.stats["completed"] == 4
    engine.dispose()


def test_warmup_after_dispose_is_rejected(tree, config, sink, clock):
    engine = HardwareEngine(tree, config, sink, clock=clock)
    engine.dispose()
    with pytest.raises(EngineDisposedError):
        engine.start_warmup()
