from typing import List, Optional
from pydantic import BaseModel, Field

from agents.validator_agent import ValidationVerdict
from orchestration.state import ExecutionResult


class ExecuteResponse(BaseModel):
    """
    API response model for POST /v1/execute.

    A result with success=False is still a normal response; failed steps
    carry their own diagnostics.
    """
    result: ExecutionResult
    validation: Optional[ValidationVerdict] = Field(default=None, description="Verdict on final_text, if requested")


class AgentSummary(BaseModel):
    id: str
    name: str
    role: str
    capabilities: List[str] = Field(default_factory=list)
