"""
Bijou Pricing - Theme variant-selection events

Bounded in-memory buffer of storefront variant selections, kept for
analytics. The store is owned by the app and handed to the handlers that
need it; events are copied on the way in and on the way out.
"""

import copy
import threading
from collections import deque
from typing import Any, Dict, List

MAX_STORED_EVENTS = 500


class VariantSelectionStore:
    def __init__(self, capacity: int = MAX_STORED_EVENTS):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._events = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, event: Dict[str, Any]) -> None:
        if not isinstance(event, dict):
            return
        with self._lock:
            self._events.append(copy.deepcopy(event))

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(event) for event in self._events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self):
        return len(self._events)
