from typing import List
from unittest.mock import MagicMock

import pytest

from agents.registry import AgentRegistry
from memory.store import InMemoryMemoryStore
from observability.collector import TraceCollector
from orchestration.engine import ExecutionEngine
from schemas.agent import AgentRef

from helpers import make_agent


@pytest.fixture
def agents() -> List[AgentRef]:
    return [make_agent("alpha"), make_agent("beta"), make_agent("gamma")]


@pytest.fixture
def registry(agents) -> AgentRegistry:
    return AgentRegistry(agents)


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def trace_sink() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_engine(registry, memory_store, trace_sink):
    """Build an engine around a given fake client."""
    def _make(client) -> ExecutionEngine:
        return ExecutionEngine(
            client=client,
            registry=registry,
            memory_store=memory_store,
            trace_collector=TraceCollector(sink=trace_sink, enabled=True),
        )
    return _make
