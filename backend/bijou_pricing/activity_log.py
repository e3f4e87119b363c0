"""
Bijou Pricing - Activity log

Append-only admin log, capped (oldest entries evicted). Every entry is also
written to the process log at a matching level.
"""

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import List, Optional

from .models import LogEntry, Scope

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 200

LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "silent": logging.DEBUG,
}


class ActivityLog:
    def __init__(self, capacity: int = MAX_LOG_ENTRIES):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def log(self, message: str, scope, level: str = "info") -> LogEntry:
        entry = LogEntry(
            id=str(uuid.uuid4()),
            message=message,
            scope=Scope(scope),
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level if level in LEVELS else "info",
        )
        with self._lock:
            self._entries.append(entry)
        logger.log(LEVELS[entry.level], f"[{entry.scope.value}] {message}")
        return entry

    def entries(self, scope: Optional[Scope] = None) -> List[LogEntry]:
        """Newest first"""
        with self._lock:
            items = list(reversed(self._entries))
        if scope is not None:
            items = [entry for entry in items if entry.scope == Scope(scope)]
        return items

    def __len__(self):
        return len(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()
