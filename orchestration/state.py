from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from orchestration.errors import ErrorKind, UnknownStrategy
from schemas.agent import AgentRef


class ExecutionMode(str, Enum):
    REASONING = "reasoning"
    COLLABORATION = "collaboration"


class Strategy(str, Enum):
    """Single-agent reasoning strategies (closed set)."""
    DIRECT = "direct"
    ITERATIVE = "iterative"
    BRANCH_SELECT = "branch-select"
    DRAFT_CRITIQUE_REVISE = "draft-critique-revise"


class Topology(str, Enum):
    """Multi-agent collaboration topologies (closed set)."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    HIERARCHICAL = "hierarchical"


class StrategyPhase(str, Enum):
    """Actor label for steps produced by a reasoning strategy."""
    REASONING = "reasoning"
    ITERATION = "iteration"
    CANDIDATE = "candidate"
    FINAL_ANSWER = "final_answer"
    DRAFT = "draft"
    CRITIQUE = "critique"
    REVISION = "revision"


# Confidence model
STEP_CONFIDENCE = 0.8
UNPARSED_STEP_CONFIDENCE = 0.7
EMPTY_TRACE_CONFIDENCE = 0.5
COMPLEXITY_BONUS_PER_STEP = 0.05
COMPLEXITY_BONUS_CAP = 0.2


class StepTrace(BaseModel):
    """
    One recorded unit of work.

    Ordering is significant: step_number is assigned at dispatch time,
    never from completion order.
    """
    model_config = ConfigDict(frozen=True)

    step_number: int = Field(..., ge=1)
    actor: Union[AgentRef, StrategyPhase]
    input: str
    output: str
    started_at: datetime
    duration_ms: float = 0.0
    success: bool = True
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    confidence: float = Field(default=STEP_CONFIDENCE, ge=0.0, le=1.0)
    tokens_used: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def actor_name(self) -> str:
        if isinstance(self.actor, AgentRef):
            return self.actor.id
        return self.actor.value


def complexity_confidence(steps: Sequence[StepTrace]) -> float:
    """Mean step confidence plus a bonus for longer traces, capped at 1.0."""
    if not steps:
        return EMPTY_TRACE_CONFIDENCE
    mean = sum(step.confidence for step in steps) / len(steps)
    bonus = min(COMPLEXITY_BONUS_PER_STEP * len(steps), COMPLEXITY_BONUS_CAP)
    return min(mean + bonus, 1.0)


def derive_confidence(
    steps: Sequence[StepTrace],
    strategy: Optional[Strategy] = None,
    topology: Optional[Topology] = None,
) -> float:
    """
    Project a result confidence from its steps.

    - direct / iterative: complexity_confidence
    - branch-select / draft-critique-revise: confidence of the final step
    - collaboration: mean step confidence (failed steps carry 0.0)
    """
    if not steps:
        return 0.0 if topology is not None else EMPTY_TRACE_CONFIDENCE
    if strategy in (Strategy.DIRECT, Strategy.ITERATIVE):
        return complexity_confidence(steps)
    if strategy is not None:
        return steps[-1].confidence
    return sum(step.confidence for step in steps) / len(steps)


class ExecutionResult(BaseModel):
    """
    Uniform result envelope returned by the engine.

    Created once per request and immutable after return. `confidence` is a
    projection of `steps`, never stored.
    """
    model_config = ConfigDict(frozen=True)

    request_id: Optional[str] = None
    mode: ExecutionMode
    strategy: Optional[Strategy] = None
    topology: Optional[Topology] = None
    steps: Tuple[StepTrace, ...] = ()
    final_text: str = ""
    success: bool = True
    total_duration_ms: float = 0.0
    overhead_tokens: int = Field(default=0, description="Tokens spent on calls not recorded as steps")

    @computed_field  # type: ignore[misc]
    @property
    def confidence(self) -> float:
        return derive_confidence(self.steps, self.strategy, self.topology)

    @computed_field  # type: ignore[misc]
    @property
    def tokens_used(self) -> int:
        return sum(step.tokens_used for step in self.steps) + self.overhead_tokens


class RunningStats(BaseModel):
    """Snapshot of aggregate statistics."""
    model_config = ConfigDict(frozen=True)

    sample_count: int = Field(default=0, ge=0)
    mean_latency: float = 0.0
    mean_tokens: float = 0.0
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    mean_fanout: float = 0.0


STRATEGY_ALIASES: Dict[str, Strategy] = {
    "chain-of-thought": Strategy.DIRECT,
    "react": Strategy.ITERATIVE,
    "tree-of-thoughts": Strategy.BRANCH_SELECT,
    "self-reflection": Strategy.DRAFT_CRITIQUE_REVISE,
}


def resolve_strategy(name: Union[str, Strategy, None]) -> Strategy:
    """Map a strategy name or alias onto the closed Strategy set."""
    if isinstance(name, Strategy):
        return name
    if name is None:
        return Strategy.DIRECT
    key = name.strip().lower().replace("_", "-")
    if key in STRATEGY_ALIASES:
        return STRATEGY_ALIASES[key]
    try:
        return Strategy(key)
    except ValueError:
        raise UnknownStrategy(name) from None


def resolve_topology(name: Union[str, Topology, None]) -> Topology:
    if isinstance(name, Topology):
        return name
    if name is None:
        return Topology.SEQUENTIAL
    try:
        return Topology(name.strip().lower())
    except ValueError:
        raise UnknownStrategy(name, kind="topology") from None


@dataclass
class RunnerOutcome:
    """What a single strategy or topology hands back to its runner."""
    steps: List[StepTrace] = field(default_factory=list)
    final_text: str = ""
    success: bool = True
    overhead_tokens: int = 0
