"""
Execute API Routes

Thin delegation layer to the ExecutionEngine.
Contains NO business logic beyond validating results before return.

Error channels:
- ConfigurationError        -> 4xx (handlers in app.main)
- GenerationFailure         -> 502 (handlers in app.main)
- result with success=False -> 200 with step diagnostics
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from agents.validator_agent import ValidationVerdict, ValidatorAgent
from app.dependencies import get_engine, get_validator
from orchestration.engine import ExecutionEngine
from schemas.agent import AgentRef
from schemas.request import DocumentQueryRequest, ExecuteRequest, FineTuningRequest, ValidateRequest
from schemas.response import AgentSummary, ExecuteResponse
from schemas.result import DocumentAnswer, FineTuningJob, PerformanceMetrics, SystemInfo


router = APIRouter()


@router.post("/execute", response_model=ExecuteResponse)
async def execute(
    request: ExecuteRequest,
    engine: ExecutionEngine = Depends(get_engine),
    validator: ValidatorAgent = Depends(get_validator),
) -> ExecuteResponse:
    """
    Execute a reasoning strategy or an agent collaboration.

    Final text failing validation with high/critical severity is withheld.
    """
    result = await engine.execute(request)

    verdict = None
    if request.validate_output and result.final_text:
        verdict = validator.check(result.final_text)
        if verdict.blocking:
            raise HTTPException(
                status_code=422,
                detail={
                    "message": "Result failed content validation",
                    "request_id": result.request_id,
                    "severity": verdict.severity.value,
                    "issues": [issue.model_dump(mode="json") for issue in verdict.issues],
                },
            )

    return ExecuteResponse(result=result, validation=verdict)


@router.post("/rag/query", response_model=DocumentAnswer)
async def query_documents(
    request: DocumentQueryRequest,
    engine: ExecutionEngine = Depends(get_engine),
) -> DocumentAnswer:
    return await engine.query_documents(
        request.query,
        collection=request.collection,
        top_k=request.top_k,
        filter=request.filter,
    )


@router.post("/validate", response_model=ValidationVerdict)
def validate(
    request: ValidateRequest,
    validator: ValidatorAgent = Depends(get_validator),
) -> ValidationVerdict:
    return validator.check(request.content, principles=request.principles, strict=request.strict_mode)


@router.post("/fine-tuning", response_model=FineTuningJob, status_code=202)
def start_fine_tuning(
    request: FineTuningRequest,
    engine: ExecutionEngine = Depends(get_engine),
) -> FineTuningJob:
    return engine.start_fine_tuning(request)


@router.get("/agents", response_model=List[AgentSummary])
def list_agents(engine: ExecutionEngine = Depends(get_engine)) -> List[AgentSummary]:
    return [
        AgentSummary(id=a.id, name=a.display_name, role=a.role, capabilities=list(a.capabilities))
        for a in engine.list_agents()
    ]


@router.post("/agents", response_model=AgentRef, status_code=201)
def register_agent(agent: AgentRef, engine: ExecutionEngine = Depends(get_engine)) -> AgentRef:
    return engine.register_agent(agent)


@router.get("/stats", response_model=PerformanceMetrics)
def stats(engine: ExecutionEngine = Depends(get_engine)) -> PerformanceMetrics:
    return engine.performance_metrics()


@router.get("/info", response_model=SystemInfo)
def info(engine: ExecutionEngine = Depends(get_engine)) -> SystemInfo:
    return engine.system_info()
