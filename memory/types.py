"""
Memory Types

Data structures for the engine's memory store.

DESIGN RULES:
- Immutable records
- No business logic beyond formatting
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class MemoryType(str, Enum):
    USER_MESSAGE = "user_message"
    ASSISTANT_RESPONSE = "assistant_response"
    AGENT_COLLABORATION = "agent_collaboration"
    FINE_TUNING_JOB = "fine_tuning_job"
    SYSTEM_EVENT = "system_event"


@dataclass(frozen=True)
class MemoryRecord:
    """
    One stored memory.

    `id` and `importance` are filled in by the store when left unset.
    """
    type: MemoryType
    content: Any
    tags: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    importance: Optional[float] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "tags": list(self.tags),
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "importance": self.importance,
        }


@dataclass(frozen=True)
class MemoryQuery:
    """
    Filter for MemoryStore.query.

    All given criteria must match; tags match when any tag overlaps.
    """
    type: Optional[MemoryType] = None
    tags: Tuple[str, ...] = ()
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    content_search: Optional[str] = None
    limit: int = 10
