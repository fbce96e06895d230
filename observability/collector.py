"""
Trace Collector

Builds an ExecutionTrace for every engine request and hands it to a sink.

DESIGN RULES:
- Never throw exceptions
- Can be disabled at runtime
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from observability.sink import ConsoleTraceSink, TraceSink
from observability.trace import ExecutionTrace, StepSummary
from orchestration.state import ExecutionResult, StepTrace

logger = logging.getLogger(__name__)


def summarize_step(step: StepTrace) -> StepSummary:
    return StepSummary(
        step=step.step_number,
        actor=step.actor_name,
        success=step.success,
        duration_ms=round(step.duration_ms, 1),
        tokens=step.tokens_used,
        error=step.error.value if step.error else None,
    )


class TraceCollector:
    """Turns results and failures into traces; swallows sink errors."""

    def __init__(self, sink: Optional[TraceSink] = None, enabled: bool = True):
        """
        Args:
            sink: Destination for traces. Defaults to ConsoleTraceSink.
            enabled: Whether tracing is enabled. Can be toggled at runtime.
        """
        self._sink = sink or ConsoleTraceSink()
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def capture(self, result: ExecutionResult, started_at: datetime) -> None:
        """
        Trace a returned result.

        Note: This method NEVER throws. Failures are logged and ignored.
        """
        if not self._enabled:
            return

        try:
            label = result.strategy or result.topology
            trace = ExecutionTrace(
                request_id=result.request_id or "unknown",
                mode=result.mode.value,
                label=label.value if label else "",
                success=result.success,
                started_at=started_at,
                finished_at=datetime.now(),
                steps=tuple(summarize_step(step) for step in result.steps),
                tokens_used=result.tokens_used,
                confidence=result.confidence,
                metadata={"overhead_tokens": result.overhead_tokens},
            )
            self._emit(trace)
        except Exception as e:
            logger.warning(f"Failed to build trace: {e}")

    def capture_failure(
        self,
        request_id: str,
        mode: str,
        label: str,
        started_at: datetime,
        error: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Trace a request that raised instead of returning.

        Args:
            request_id: Unique identifier for this request
            mode: Requested execution mode
            label: Requested strategy or topology name
            started_at: When execution started
            error: Error message
            metadata: Extra context (error type, rejection flag)
        """
        if not self._enabled:
            return

        try:
            trace = ExecutionTrace(
                request_id=request_id,
                mode=mode,
                label=label,
                success=False,
                started_at=started_at,
                finished_at=datetime.now(),
                metadata=metadata or {},
                error=error,
            )
            self._emit(trace)
        except Exception as e:
            logger.warning(f"Failed to build failure trace: {e}")

    def _emit(self, trace: ExecutionTrace) -> None:
        try:
            self._sink.emit(trace)
        except Exception as e:
            logger.warning(f"Trace sink {type(self._sink).__name__} failed for {trace.request_id[:8]}: {e}")
