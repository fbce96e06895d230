"""
Engine Errors

Typed failures raised across the engine boundary.

TAXONOMY:
    EngineError
    ├── ConfigurationError      (never retried, surfaced before any generation)
    │   ├── UnknownAgent
    │   ├── EmptyAgentSet
    │   └── UnknownStrategy
    └── GenerationFailure       (fatal to the step)
        ├── GenerationTimeout
        ├── GenerationRateLimited
        ├── GenerationTransportError
        └── GenerationInvalidResponse
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure label recorded on a StepTrace."""
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class EngineError(Exception):
    """Base class for everything the engine raises on purpose."""


class ConfigurationError(EngineError):
    """The request cannot be executed as specified."""


class UnknownAgent(ConfigurationError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class EmptyAgentSet(ConfigurationError):
    def __init__(self):
        super().__init__("No agents provided for collaboration")


class UnknownStrategy(ConfigurationError):
    def __init__(self, name: Optional[str], kind: str = "strategy"):
        super().__init__(f"Unknown {kind}: {name}")
        self.name = name
        self.kind = kind


class GenerationFailure(EngineError):
    """A single generator call did not produce usable text."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class GenerationTimeout(GenerationFailure):
    kind = ErrorKind.TIMEOUT


class GenerationRateLimited(GenerationFailure):
    kind = ErrorKind.RATE_LIMITED


class GenerationTransportError(GenerationFailure):
    kind = ErrorKind.TRANSPORT


class GenerationInvalidResponse(GenerationFailure):
    kind = ErrorKind.INVALID_RESPONSE


def error_kind(error: BaseException) -> ErrorKind:
    """Classify an exception for step trace bookkeeping."""
    if isinstance(error, GenerationFailure):
        return error.kind
    return ErrorKind.UNKNOWN
