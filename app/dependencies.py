"""
FastAPI Dependencies

All object creation happens here, not per request.
This module provides dependency injection for the engine.

RULE: FastAPI routes delegate to exactly one ExecutionEngine instance.
"""

from functools import lru_cache

from agents.registry import bootstrap_agents
from agents.validator_agent import ValidatorAgent
from app.core.config import settings
from llm.client import LangChainGenerationClient
from memory.store import InMemoryMemoryStore
from observability.collector import TraceCollector
from observability.sink import ConsoleTraceSink
from orchestration.engine import ExecutionEngine
from retrieval.documents import SAMPLE_DOCUMENTS, KeywordRetriever


@lru_cache(maxsize=1)
def get_engine() -> ExecutionEngine:
    """
    Create and cache the ExecutionEngine singleton.

    All components are wired here:
    - LangChainGenerationClient: the generator
    - AgentRegistry: predefined roster from agents.yaml
    - InMemoryMemoryStore: one record per returned result (if enabled)
    - TraceCollector: console traces (if enabled)
    - KeywordRetriever: seeded with the sample documents

    Returns:
        ExecutionEngine: the single entry point for execution.
    """
    return ExecutionEngine(
        client=LangChainGenerationClient(),
        registry=bootstrap_agents(),
        memory_store=InMemoryMemoryStore() if settings.enable_memory else None,
        trace_collector=TraceCollector(
            sink=ConsoleTraceSink(verbose=False),
            enabled=settings.enable_tracing,
        ),
        retriever=KeywordRetriever(SAMPLE_DOCUMENTS),
    )


@lru_cache(maxsize=1)
def get_validator() -> ValidatorAgent:
    return ValidatorAgent()
