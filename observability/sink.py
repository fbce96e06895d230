"""
Trace Sinks

Where finished traces go. A sink is side-effect only and must not raise;
the collector still guards every emit.
"""

import json
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO

from observability.trace import ExecutionTrace


class TraceSink(ABC):
    """Destination for execution traces."""

    @abstractmethod
    def emit(self, trace: ExecutionTrace) -> None:
        pass


class ConsoleTraceSink(TraceSink):
    """
    Human-readable block per request.

    verbose=False prints the header only; verbose=True adds one line per step.
    """

    def __init__(self, verbose: bool = True, stream: Optional[TextIO] = None):
        self._verbose = verbose
        self._stream = stream

    def emit(self, trace: ExecutionTrace) -> None:
        out = self._stream or sys.stdout
        status = "OK" if trace.success else "FAILED"

        lines = [
            f"[TRACE] {trace.request_id[:8]} {trace.mode}/{trace.label} {status}",
            f"  latency={trace.latency_ms}ms tokens={trace.tokens_used} steps={len(trace.steps)}",
        ]
        if trace.confidence is not None:
            lines[-1] += f" confidence={trace.confidence:.2f}"
        if trace.error:
            lines.append(f"  error: {trace.error}")

        if self._verbose:
            for step in trace.steps:
                mark = "+" if step.success else "x"
                line = f"  {mark} {step.step:>2} {step.actor:<20} {step.duration_ms:>8.1f}ms {step.tokens:>6} tok"
                if step.error:
                    line += f" [{step.error}]"
                lines.append(line)

        print("\n".join(lines), file=out)


class JsonTraceSink(TraceSink):
    """One JSON object per line, for log aggregation."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def emit(self, trace: ExecutionTrace) -> None:
        out = self._stream or sys.stdout
        out.write(json.dumps(trace.to_dict(), default=str) + "\n")
        out.flush()
