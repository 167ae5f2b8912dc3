"""Tests for the hardware tree refresh walk."""

import pytest
from conftest import FakeNode, FakeTree

from hwpoll.core.models import HardwareCategory
from hwpoll.core.scanner import ScanExecutor


def make_tree():
    sub = FakeNode(HardwareCategory.MOTHERBOARD, "Super I/O")
    nodes = {
        "cpu": FakeNode(HardwareCategory.CPU, "CPU"),
        "nvidia": FakeNode(HardwareCategory.GPU_NVIDIA, "NVIDIA"),
        "amd": FakeNode(HardwareCategory.GPU_AMD, "AMD"),
        "board": FakeNode(HardwareCategory.MOTHERBOARD, "Board", children=[sub]),
        "memory": FakeNode(HardwareCategory.MEMORY, "Memory"),
        "disk": FakeNode(HardwareCategory.STORAGE, "Disk"),
        "sub": sub,
    }
    roots = [nodes[key] for key in ("cpu", "nvidia", "amd", "board", "memory", "disk")]
    return FakeTree(roots), nodes


def test_fast_scan_refreshes_every_node_once(sink):
    tree, nodes = make_tree()
    stats = ScanExecutor(tree, sink).scan(thorough=False)
    
    assert all(node.refresh_count == 1 for node in nodes.values())
    assert stats.refreshed == 7
    assert stats.failed == 0


def test_thorough_scan_refreshes_unstable_categories_twice(sink):
    tree, nodes = make_tree()
    ScanExecutor(tree, sink).scan(thorough=True)
    
    for key in ("cpu", "nvidia", "amd", "board", "sub"):
        assert nodes[key].refresh_count == 2, key
    for key in ("memory", "disk"):
        assert nodes[key].refresh_count == 1, key


def test_failing_node_does_not_stop_siblings_or_children(sink):
    tree, nodes = make_tree()
    nodes["board"].fail_refresh = True
    stats = ScanExecutor(tree, sink).scan(thorough=False)
    
    assert stats.failed == 1
    assert nodes["sub"].refresh_count == 1
    assert nodes["memory"].refresh_count == 1
    assert nodes["disk"].refresh_count == 1
    assert sink.contexts() == ["Refresh Board"]


def test_root_listing_failure_propagates(sink):
    tree, _ = make_tree()
    tree.fail_roots = RuntimeError("tree closed")
    with pytest.raises(RuntimeError, match="tree closed"):
        ScanExecutor(tree, sink).scan()
