from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from orchestration.state import ExecutionMode


class ExecuteRequest(BaseModel):
    """
    Engine request.

    `strategy` and `topology` are free-form names so that aliases and unknown
    values are resolved by the engine (UnknownStrategy), not by the schema.
    """
    input: str = Field(..., min_length=1, description="Question or task")
    mode: ExecutionMode = Field(default=ExecutionMode.REASONING)
    strategy: Optional[str] = Field(default=None, description="Reasoning strategy or alias (reasoning mode)")
    topology: Optional[str] = Field(default=None, description="Collaboration topology (collaboration mode)")
    agent_ids: List[str] = Field(default_factory=list, description="Ordered agent ids (collaboration mode)")
    context: Optional[Dict[str, Any]] = Field(default=None, description="Structured context rendered into the direct reasoning prompt")
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    validate_output: bool = Field(default=True, description="Run the content validator on final_text")


class DocumentQueryRequest(BaseModel):
    query: str = Field(..., min_length=1)
    collection: str = "general"
    top_k: int = Field(default=5, gt=0, le=50)
    filter: Optional[Dict[str, Any]] = None


class ValidateRequest(BaseModel):
    content: str
    principles: Optional[List[str]] = None
    strict_mode: bool = False


class FineTuningRequest(BaseModel):
    """Fine-tuning hand-off. No training happens in-process."""
    base_model: str = "gpt-4o-mini"
    training_file: Optional[str] = None
    suffix: Optional[str] = None
    hyperparameters: Dict[str, Any] = Field(default_factory=dict)
