"""
Memory Store

In-process record storage for completed requests and system events.

DESIGN RULES:
- Best-effort: callers must never depend on reads for control flow
- No persistence - data lives only in process memory
- Thread-safe for concurrent access
"""

import logging
import random
import string
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta
from threading import Lock
from typing import Dict, List, Optional

from memory.types import MemoryQuery, MemoryRecord, MemoryType

logger = logging.getLogger(__name__)

TYPE_IMPORTANCE: Dict[MemoryType, float] = {
    MemoryType.USER_MESSAGE: 0.7,
    MemoryType.ASSISTANT_RESPONSE: 0.6,
    MemoryType.AGENT_COLLABORATION: 0.8,
    MemoryType.SYSTEM_EVENT: 0.4,
}
BASE_IMPORTANCE = 0.5
TAG_IMPORTANCE: Dict[str, float] = {"error": 0.2, "success": 0.1, "critical": 0.3}


def calculate_importance(record: MemoryRecord) -> float:
    """
    Score a record in [0, 1] from its type, content length and tags.
    """
    importance = TYPE_IMPORTANCE.get(record.type, BASE_IMPORTANCE)

    if isinstance(record.content, str):
        if len(record.content) > 500:
            importance += 0.1
        if len(record.content) < 50:
            importance -= 0.1

    for tag, bonus in TAG_IMPORTANCE.items():
        if tag in record.tags:
            importance += bonus

    return min(max(importance, 0.0), 1.0)


def _generate_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"mem_{int(time.time() * 1000)}_{suffix}"


class MemoryStore(ABC):
    """Collaborator interface the engine writes to."""

    @abstractmethod
    def put(self, record: MemoryRecord) -> str:
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[MemoryRecord]:
        pass

    @abstractmethod
    def query(self, query: MemoryQuery) -> List[MemoryRecord]:
        pass

    @abstractmethod
    def count(self) -> int:
        pass


class InMemoryMemoryStore(MemoryStore):
    """
    Dictionary-backed memory store.

    Query results are newest first. Archived records are kept aside and no
    longer returned by get/query.
    """

    CONSOLIDATION_AGE = timedelta(days=7)
    CONSOLIDATION_MIN_IMPORTANCE = 0.3

    def __init__(self):
        self._records: Dict[str, MemoryRecord] = {}
        self._archive: Dict[str, MemoryRecord] = {}
        self._lock = Lock()

    def put(self, record: MemoryRecord) -> str:
        record_id = record.id or _generate_id()
        importance = record.importance if record.importance is not None else calculate_importance(record)
        stored = replace(record, id=record_id, importance=importance)
        with self._lock:
            self._records[record_id] = stored
        logger.debug(f"Stored memory {record_id} ({record.type.value})")
        return record_id

    def get(self, record_id: str) -> Optional[MemoryRecord]:
        return self._records.get(record_id)

    def query(self, query: MemoryQuery) -> List[MemoryRecord]:
        with self._lock:
            records = list(self._records.values())

        matches = [r for r in records if self._matches(r, query)]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:query.limit]

    @staticmethod
    def _matches(record: MemoryRecord, query: MemoryQuery) -> bool:
        if query.type is not None and record.type != query.type:
            return False
        if query.tags and not set(query.tags) & set(record.tags):
            return False
        if query.start is not None and record.timestamp < query.start:
            return False
        if query.end is not None and record.timestamp > query.end:
            return False
        if query.content_search and query.content_search.lower() not in str(record.content).lower():
            return False
        return True

    def consolidate(
        self,
        older_than: Optional[timedelta] = None,
        min_importance: Optional[float] = None,
    ) -> int:
        """
        Archive old, low-importance records.

        Returns:
            Number of records archived
        """
        cutoff = datetime.now() - (older_than or self.CONSOLIDATION_AGE)
        threshold = min_importance if min_importance is not None else self.CONSOLIDATION_MIN_IMPORTANCE

        with self._lock:
            stale = [
                record_id for record_id, record in self._records.items()
                if record.timestamp <= cutoff and (record.importance or 0.0) < threshold
            ]
            for record_id in stale:
                self._archive[record_id] = self._records.pop(record_id)

        logger.info(f"Memory consolidation archived {len(stale)} record(s)")
        return len(stale)

    def count(self) -> int:
        """Get count of live (non-archived) records."""
        with self._lock:
            return len(self._records)

    def archived_count(self) -> int:
        with self._lock:
            return len(self._archive)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._archive.clear()
