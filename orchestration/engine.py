import logging
import random
import string
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from agents.registry import AgentRegistry
from app.core.config import settings
from llm.client import GenerationClient
from memory.store import MemoryStore
from memory.types import MemoryRecord, MemoryType
from observability.collector import TraceCollector
from observability.sink import ConsoleTraceSink
from orchestration.collaboration import CollaborationRunner
from orchestration.errors import ConfigurationError
from orchestration.reasoning import ReasoningStrategyRunner
from orchestration.state import (
    STRATEGY_ALIASES,
    ExecutionMode,
    ExecutionResult,
    Strategy,
    Topology,
)
from orchestration.stats import StatsAggregator
from retrieval.documents import (
    NO_CONTEXT_ANSWER,
    RAG_SYSTEM_PROMPT,
    KeywordRetriever,
    build_context_prompt,
    extract_sources,
)
from schemas.agent import AgentRef
from schemas.request import ExecuteRequest, FineTuningRequest
from schemas.result import DocumentAnswer, FineTuningJob, PerformanceMetrics, SystemInfo

logger = logging.getLogger(__name__)

ENGINE_VERSION = "0.1.0"


class ExecutionEngine:
    """
    The Engine.

    Dispatches a request by mode:
    1. reasoning      -> ReasoningStrategyRunner
    2. collaboration  -> CollaborationRunner (agents resolved from the registry)

    After every executed request (returned or raised):
    - statistics are updated exactly once
    - an execution trace is emitted

    Returned results are also written to the memory store. Memory and
    tracing are best-effort and never fail a request.
    """

    RAG_MAX_TOKENS = 1000
    RAG_TEMPERATURE = 0.3

    def _safe_execute(self, func: Callable, default: Any = None, error_msg: str = "Safe execution failed") -> Any:
        """Execute a function safely, returning default on error."""
        try:
            return func()
        except Exception as e:
            logger.warning(f"{error_msg}: {e}")
            return default

    def __init__(
        self,
        client: GenerationClient,
        registry: AgentRegistry,
        memory_store: Optional[MemoryStore] = None,
        trace_collector: Optional[TraceCollector] = None,
        retriever: Optional[KeywordRetriever] = None,
        reasoning_runner: Optional[ReasoningStrategyRunner] = None,
        collaboration_runner: Optional[CollaborationRunner] = None,
    ):
        """
        Initialize the engine.

        Args:
            client: Generator used by every runner
            registry: Agent specifications for collaboration
            memory_store: Optional store receiving one record per returned result
            trace_collector: Trace emission; defaults to a console collector
            retriever: Document search for query_documents
            reasoning_runner: Override the default strategy runner
            collaboration_runner: Override the default topology runner
        """
        self.client = client
        self.registry = registry
        self.memory_store = memory_store
        self.retriever = retriever or KeywordRetriever()
        self.reasoning = reasoning_runner or ReasoningStrategyRunner(client)
        self.collaboration = collaboration_runner or CollaborationRunner(client, registry)

        self._trace_collector = trace_collector or TraceCollector(
            sink=ConsoleTraceSink(verbose=False),
            enabled=settings.enable_tracing,
        )

        # Process-wide and per-mode aggregates
        self.stats = StatsAggregator()
        self.mode_stats: Dict[ExecutionMode, StatsAggregator] = {
            mode: StatsAggregator() for mode in ExecutionMode
        }

    async def execute(self, request: ExecuteRequest) -> ExecutionResult:
        """
        Run one request to completion.

        Raises:
            ConfigurationError: unknown agent / strategy / topology, empty agent list
            GenerationFailure: strategy failure or a failed synthesis call
        """
        request_id = str(uuid.uuid4())
        started_at = datetime.now()
        start_time = time.time()
        label = request.strategy if request.mode == ExecutionMode.REASONING else request.topology
        fanout = 1 if request.mode == ExecutionMode.REASONING else len(request.agent_ids)

        logger.info(f"Request {request_id[:8]} started: mode={request.mode.value} label={label}")

        try:
            if request.mode == ExecutionMode.REASONING:
                result = await self.reasoning.run(
                    request.input,
                    strategy=request.strategy,
                    max_tokens=request.max_tokens,
                    temperature=request.temperature,
                    request_id=request_id,
                    context=request.context,
                )
            else:
                result = await self.collaboration.run(
                    request.input,
                    request.agent_ids,
                    topology=request.topology,
                    request_id=request_id,
                )

        except ConfigurationError as e:
            # Rejected before any generation; not an executed request
            logger.warning(f"Request {request_id[:8]} rejected: {e}")
            self._trace_collector.capture_failure(
                request_id=request_id,
                mode=request.mode.value,
                label=label or "",
                started_at=started_at,
                error=str(e),
                metadata={"rejected": True},
            )
            raise

        except Exception as e:
            # GenerationFailure, or a generator breaking its contract
            latency_ms = (time.time() - start_time) * 1000
            self._record(request.mode, latency_ms, 0, fanout, False)
            logger.error(f"Request {request_id[:8]} failed after {latency_ms:.0f}ms: {e}")
            self._trace_collector.capture_failure(
                request_id=request_id,
                mode=request.mode.value,
                label=label or "",
                started_at=started_at,
                error=str(e),
                metadata={"error_type": type(e).__name__},
            )
            raise

        latency_ms = (time.time() - start_time) * 1000
        self._record(request.mode, latency_ms, result.tokens_used, fanout, result.success)

        self._safe_execute(
            lambda: self._remember(request, result),
            error_msg="Memory write failed",
        )
        self._trace_collector.capture(result, started_at)

        logger.info(
            f"Request {request_id[:8]} finished in {latency_ms:.0f}ms: "
            f"success={result.success} steps={len(result.steps)} tokens={result.tokens_used}"
        )
        return result

    def _record(self, mode: ExecutionMode, latency_ms: float, tokens: int, fanout: int, success: bool) -> None:
        self.stats.record(latency_ms, tokens, fanout, success)
        self.mode_stats[mode].record(latency_ms, tokens, fanout, success)

    def _remember(self, request: ExecuteRequest, result: ExecutionResult) -> None:
        if self.memory_store is None:
            return

        if result.mode == ExecutionMode.REASONING:
            record_type = MemoryType.ASSISTANT_RESPONSE
            label = result.strategy.value
        else:
            record_type = MemoryType.AGENT_COLLABORATION
            label = result.topology.value

        self.memory_store.put(MemoryRecord(
            type=record_type,
            content=result.final_text,
            tags=(
                result.mode.value,
                label,
                "success" if result.success else "error",
                f"request:{result.request_id}",
            ),
            metadata={
                "request_id": result.request_id,
                "input": request.input,
                "agent_ids": list(request.agent_ids),
                "confidence": result.confidence,
                "tokens_used": result.tokens_used,
                "step_count": len(result.steps),
                "duration_ms": result.total_duration_ms,
            },
        ))

    async def query_documents(
        self,
        query: str,
        collection: str = "general",
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> DocumentAnswer:
        """
        Answer a question from retrieved documents, citing them by number.

        With no matching document the generator is not called.
        """
        retrieval_start = time.time()
        scored = self.retriever.search(query, collection=collection, top_k=top_k, filter=filter)
        retrieval_ms = (time.time() - retrieval_start) * 1000

        documents = [s.document for s in scored]
        if not documents:
            logger.info(f"No documents matched query in '{collection}'")
            return DocumentAnswer(query=query, answer=NO_CONTEXT_ANSWER, retrieval_ms=retrieval_ms)

        generation = await self.client.generate(
            RAG_SYSTEM_PROMPT,
            build_context_prompt(query, documents),
            self.RAG_MAX_TOKENS,
            self.RAG_TEMPERATURE,
        )

        return DocumentAnswer(
            query=query,
            documents=scored,
            answer=generation.text,
            sources=extract_sources(documents),
            retrieval_ms=retrieval_ms,
            generation_ms=generation.latency_ms,
            tokens_used=generation.tokens_used,
        )

    def start_fine_tuning(self, request: FineTuningRequest) -> FineTuningJob:
        """
        Issue a fine-tuning job id and hand it off.

        No training happens here; the job stays queued.
        """
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        job = FineTuningJob(
            job_id=f"ft-{int(time.time() * 1000)}-{suffix}",
            base_model=request.base_model,
            hyperparameters=request.hyperparameters,
        )

        if self.memory_store is not None:
            self._safe_execute(
                lambda: self.memory_store.put(MemoryRecord(
                    type=MemoryType.FINE_TUNING_JOB,
                    content=job.job_id,
                    tags=("fine_tuning", job.status),
                    metadata=job.model_dump(mode="json"),
                )),
                error_msg="Memory write failed",
            )

        logger.info(f"Fine-tuning job {job.job_id} queued for {job.base_model}")
        return job

    def register_agent(self, agent: AgentRef) -> AgentRef:
        self.registry.register(agent)
        return agent

    def list_agents(self) -> List[AgentRef]:
        return self.registry.list_all()

    def performance_metrics(self) -> PerformanceMetrics:
        memory_records = 0
        if self.memory_store is not None:
            memory_records = self._safe_execute(self.memory_store.count, default=0, error_msg="Memory count failed")
        return PerformanceMetrics(
            overall=self.stats.snapshot(),
            by_mode={mode.value: agg.snapshot() for mode, agg in self.mode_stats.items()},
            memory_records=memory_records,
            registered_agents=len(self.registry),
        )

    def system_info(self) -> SystemInfo:
        components = ["ReasoningStrategyRunner", "CollaborationRunner", "AgentRegistry", "StatsAggregator"]
        if self.memory_store is not None:
            components.append("MemoryStore")
        components.append("KeywordRetriever")
        return SystemInfo(
            service=settings.service_name,
            version=ENGINE_VERSION,
            environment=settings.environment,
            components=components,
            strategies=[s.value for s in Strategy],
            strategy_aliases={alias: s.value for alias, s in STRATEGY_ALIASES.items()},
            topologies=[t.value for t in Topology],
            agents=[agent.id for agent in self.registry.list_all()],
        )

    def reset_stats(self) -> None:
        """Zero all aggregates (tests)."""
        self.stats.reset()
        for agg in self.mode_stats.values():
            agg.reset()
