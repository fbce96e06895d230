# Observability Package
from observability.trace import ExecutionTrace, StepSummary
from observability.sink import TraceSink, ConsoleTraceSink, JsonTraceSink
from observability.collector import TraceCollector

__all__ = ["ExecutionTrace", "StepSummary", "TraceSink", "ConsoleTraceSink", "JsonTraceSink", "TraceCollector"]
