# Memory Package
from memory.types import MemoryQuery, MemoryRecord, MemoryType
from memory.store import InMemoryMemoryStore, MemoryStore, calculate_importance

__all__ = [
    "MemoryQuery",
    "MemoryRecord",
    "MemoryType",
    "MemoryStore",
    "InMemoryMemoryStore",
    "calculate_importance",
]
