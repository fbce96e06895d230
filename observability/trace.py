"""
Execution Trace Model

One record per engine request, returned or raised.
Pure data: built by the collector, consumed by sinks.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class StepSummary:
    """Per-step line of a trace. Step text is deliberately left out."""
    step: int
    actor: str
    success: bool
    duration_ms: float
    tokens: int
    error: Optional[str] = None


@dataclass(frozen=True)
class ExecutionTrace:
    """
    Immutable trace of a single request.

    `label` is the strategy (reasoning) or topology (collaboration) as
    requested; it may be an unresolved name for rejected requests.
    """

    request_id: str
    mode: str
    label: str
    success: bool
    started_at: datetime
    finished_at: datetime
    steps: Tuple[StepSummary, ...] = ()
    tokens_used: int = 0
    confidence: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def latency_ms(self) -> int:
        delta = self.finished_at - self.started_at
        return int(delta.total_seconds() * 1000)

    @property
    def failed_steps(self) -> List[int]:
        return [s.step for s in self.steps if not s.success]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging/export."""
        return {
            "request_id": self.request_id,
            "mode": self.mode,
            "label": self.label,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "latency_ms": self.latency_ms,
            "tokens_used": self.tokens_used,
            "confidence": self.confidence,
            "steps": [asdict(s) for s in self.steps],
            "failed_steps": self.failed_steps,
            "metadata": self.metadata,
            "error": self.error,
        }
