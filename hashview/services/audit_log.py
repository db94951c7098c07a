"""
Suspicious Activity Recorder - bounded in-memory audit trail

Holds every flagged or blocked signal so admins can inspect recent
abuse. It is a ring buffer: the oldest entry is evicted once capacity
is reached, and nothing survives a restart. Persisted reviews and
coupons are the system of record, not this log.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from hashview.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SuspiciousActivityLogEntry:
    user_id: Optional[int]
    event_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event_type": self.event_type,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat() + "Z",
        }


class SuspiciousActivityRecorder:
    """Thread-safe ring buffer of suspicious activity entries"""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._entries: Deque[SuspiciousActivityLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(
        self,
        user_id: Optional[int],
        event_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None
    ) -> SuspiciousActivityLogEntry:
        entry = SuspiciousActivityLogEntry(
            user_id=user_id,
            event_type=event_type,
            metadata=dict(metadata or {}),
            timestamp=timestamp or datetime.utcnow(),
        )
        with self._lock:
            self._entries.append(entry)

        logger.warning(f"Suspicious activity: user={user_id} type={event_type} metadata={entry.metadata}")
        return entry

    def query(
        self,
        user_id: Optional[int] = None,
        event_type: Optional[str] = None,
        limit: int = 100
    ) -> List[SuspiciousActivityLogEntry]:
        """Newest entries first, optionally filtered by user and type."""
        with self._lock:
            snapshot = list(self._entries)

        results = []
        for entry in reversed(snapshot):
            if user_id is not None and entry.user_id != user_id:
                continue
            if event_type is not None and entry.event_type != event_type:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Process-wide default, injected into the pipeline by the API layer
suspicious_activity_log = SuspiciousActivityRecorder(settings.SUSPICIOUS_LOG_CAPACITY)
