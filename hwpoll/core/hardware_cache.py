"""
Per-category cache of hardware node handles.

Only container handles are cached. Sensor values are always read from the
node after the latest refresh.
"""

import logging
import threading
from typing import Dict, Optional

from .models import HardwareCategory
from ..collectors.base import HardwareNode, HardwareTree


logger = logging.getLogger(__name__)


class HardwareCache:
    """Memoizes the first root node discovered for each hardware category."""
    
    def __init__(self, tree: HardwareTree):
        self._tree = tree
        self._handles: Dict[HardwareCategory, HardwareNode] = {}
        self._lock = threading.Lock()
    
    def lookup(self, category: HardwareCategory) -> Optional[HardwareNode]:
        """Get the handle for a category, discovering it on first use."""
        with self._lock:
            node = self._handles.get(category)
            if node is not None:
                return node
            
            node = next(iter(self._tree.enumerate(category)), None)
            if node is not None:
                self._handles[category] = node
                logger.debug(f"Cached {category.value} handle: {node.name}")
            return node
    
    def invalidate(self):
        """Drop every cached handle so the next lookup re-enumerates."""
        with self._lock:
            self._handles.clear()
    
    def __contains__(self, category: HardwareCategory) -> bool:
        with self._lock:
            return category in self._handles
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
