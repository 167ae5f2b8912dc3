"""
Hardware tree refresh.

Walks the tree depth first and refreshes every container node. In a
thorough scan, CPU, motherboard and GPU nodes are refreshed twice because
a single refresh can leave their package sensors at zero.
"""

import logging
from dataclasses import dataclass

from .log import ErrorSink
from ..collectors.base import HardwareNode, HardwareTree


logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    """Counts from one scan."""
    
    refreshed: int = 0
    failed: int = 0


class ScanExecutor:
    """Refreshes every node of a hardware tree."""
    
    def __init__(self, tree: HardwareTree, sink: ErrorSink):
        self._tree = tree
        self._sink = sink
    
    def scan(self, thorough: bool = False) -> ScanStats:
        """
        Refresh the whole tree.
        
        A node that fails to refresh is reported and skipped; its siblings
        and children are still visited. Errors raised while listing the root
        nodes propagate to the caller.
        """
        stats = ScanStats()
        for node in self._tree.roots():
            self._visit(node, thorough, stats)
        
        logger.debug(
            f"{'Thorough' if thorough else 'Fast'} scan: "
            f"{stats.refreshed} refreshed, {stats.failed} failed"
        )
        return stats
    
    def _visit(self, node: HardwareNode, thorough: bool, stats: ScanStats):
        try:
            node.refresh()
            if thorough and node.category.needs_second_pass:
                node.refresh()
            stats.refreshed += 1
        except Exception as e:
            stats.failed += 1
            self._sink.error(f"Refresh {node.name}", str(e), e)
        
        try:
            children = node.children()
        except Exception as e:
            self._sink.error(f"Sub-hardware of {node.name}", str(e), e)
            return
        
        for child in children:
            self._visit(child, thorough, stats)
