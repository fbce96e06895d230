from typing import List, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelParams(BaseModel):
    """Generation parameters an agent is invoked with."""
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1000, gt=0)


class AgentRef(BaseModel):
    """
    Named agent specification.

    Owned by the AgentRegistry. Collaboration topologies only ever hold a
    read-only reference resolved per request, so the model is frozen.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique, immutable registry key")
    name: str = Field(default="", description="Human-readable agent name")
    role: str = Field(..., description="Role the agent plays in a collaboration")
    capabilities: Tuple[str, ...] = Field(default_factory=tuple, description="Capability tags")
    model_params: ModelParams = Field(default_factory=ModelParams)
    system_instructions: str = Field(default="", description="System prompt for every invocation")
    tools: Tuple[str, ...] = Field(default_factory=tuple, description="Advertised tool names (informational)")

    @field_validator("capabilities", "tools", mode="before")
    @classmethod
    def _dedupe(cls, value):
        # Set semantics, but keep first-seen order so prompts stay deterministic
        if value is None:
            return ()
        seen: List[str] = []
        for item in value:
            if item not in seen:
                seen.append(item)
        return tuple(seen)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def roster_line(self) -> str:
        """One-line description used when presenting the agent to a leader."""
        return f"- {self.id}: {self.display_name} ({self.role}): {', '.join(self.capabilities)}"
