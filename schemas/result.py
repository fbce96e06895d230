from datetime import datetime
from typing import Any, Dict, List
from pydantic import BaseModel, Field

from orchestration.state import RunningStats
from retrieval.documents import ScoredDocument


class DocumentAnswer(BaseModel):
    """Grounded answer over retrieved documents."""
    query: str
    documents: List[ScoredDocument] = Field(default_factory=list)
    answer: str
    sources: List[str] = Field(default_factory=list)
    retrieval_ms: float = 0.0
    generation_ms: float = 0.0
    tokens_used: int = 0


class FineTuningJob(BaseModel):
    """Stub job handle. Status never advances past 'queued'."""
    job_id: str
    base_model: str
    status: str = "queued"
    created_at: datetime = Field(default_factory=datetime.now)
    hyperparameters: Dict[str, Any] = Field(default_factory=dict)


class PerformanceMetrics(BaseModel):
    overall: RunningStats
    by_mode: Dict[str, RunningStats] = Field(default_factory=dict)
    memory_records: int = 0
    registered_agents: int = 0


class SystemInfo(BaseModel):
    service: str
    version: str
    environment: str
    components: List[str]
    strategies: List[str]
    strategy_aliases: Dict[str, str]
    topologies: List[str]
    agents: List[str]
    status: str = "active"
