import pytest
from fastapi.testclient import TestClient

from agents.validator_agent import ValidatorAgent
from app.dependencies import get_engine, get_validator
from app.main import app
from orchestration.errors import GenerationRateLimited
from retrieval.documents import SAMPLE_DOCUMENTS, KeywordRetriever

from helpers import ScriptedClient


@pytest.fixture
def api(make_engine):
    """Client bound to an engine built around a fresh fake generator."""
    def _api(client=None):
        engine = make_engine(client or ScriptedClient())
        engine.retriever = KeywordRetriever(SAMPLE_DOCUMENTS)
        app.dependency_overrides[get_engine] = lambda: engine
        app.dependency_overrides[get_validator] = lambda: ValidatorAgent()
        return TestClient(app), engine

    yield _api
    app.dependency_overrides.clear()


def test_health(api):
    http, _ = api()

    assert http.get("/health").json() == {"status": "ok"}


def test_execute_reasoning(api):
    http, _ = api(ScriptedClient(["1. Think\n2. Check\nAnswer: Paris is the capital."]))

    response = http.post("/v1/execute", json={"input": "Capital of France?", "strategy": "direct"})

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["final_text"] == "Paris is the capital."
    assert body["result"]["strategy"] == "direct"
    assert len(body["result"]["steps"]) == 2
    assert body["validation"]["passed"] is True


def test_execute_collaboration_with_failed_step_is_200(api):
    def handler(system, prompt):
        if system == "You are beta.":
            return GenerationRateLimited("quota")
        return "A thorough first draft of the plan."

    http, _ = api(ScriptedClient(handler=handler))

    response = http.post("/v1/execute", json={
        "input": "Plan the launch",
        "mode": "collaboration",
        "topology": "sequential",
        "agent_ids": ["alpha", "beta", "gamma"],
    })

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["success"] is False
    assert result["steps"][1]["error"] == "rate_limited"
    assert result["final_text"] == "A thorough first draft of the plan."


def test_unknown_agent_is_404(api):
    http, _ = api()

    response = http.post("/v1/execute", json={
        "input": "task", "mode": "collaboration", "agent_ids": ["ghost"],
    })

    assert response.status_code == 404
    assert response.json()["error"] == "UnknownAgent"


def test_unknown_strategy_is_400(api):
    http, _ = api()

    response = http.post("/v1/execute", json={"input": "q", "strategy": "telepathy"})

    assert response.status_code == 400
    assert response.json()["error"] == "UnknownStrategy"


def test_generation_failure_is_502(api):
    http, _ = api(ScriptedClient([GenerationRateLimited("quota exceeded")]))

    response = http.post("/v1/execute", json={"input": "q"})

    assert response.status_code == 502
    assert response.json()["kind"] == "rate_limited"


def test_blocking_validation_withholds_result(api):
    http, _ = api(ScriptedClient(["The account holder's SSN is 123-45-6789"]))

    response = http.post("/v1/execute", json={"input": "Who owns the account?"})

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["severity"] == "high"
    assert "123-45-6789" not in detail["message"]


def test_validation_can_be_skipped(api):
    http, _ = api(ScriptedClient(["The account holder's SSN is 123-45-6789"]))

    response = http.post("/v1/execute", json={"input": "Who?", "validate_output": False})

    assert response.status_code == 200
    assert response.json()["validation"] is None


def test_rag_query(api):
    http, _ = api(ScriptedClient(["Agents coordinate [1]."]))

    response = http.post("/v1/rag/query", json={"query": "multi-agent systems", "top_k": 2})

    assert response.status_code == 200
    body = response.json()
    assert [d["document"]["id"] for d in body["documents"]] == ["doc_3", "doc_4"]
    assert body["answer"] == "Agents coordinate [1]."


def test_validate_endpoint(api):
    http, _ = api()

    response = http.post("/v1/validate", json={"content": "You have no choice but to sign today.", "principles": ["autonomy"]})

    assert response.status_code == 200
    assert response.json()["passed"] is False
    assert response.json()["severity"] == "medium"


def test_fine_tuning_endpoint(api):
    http, _ = api()

    response = http.post("/v1/fine-tuning", json={"base_model": "gpt-4o-mini"})

    assert response.status_code == 202
    assert response.json()["status"] == "queued"


def test_agent_listing_and_registration(api):
    http, _ = api()

    created = http.post("/v1/agents", json={"id": "delta", "name": "Delta", "role": "Reviewer", "capabilities": ["review"]})
    assert created.status_code == 201

    agents = http.get("/v1/agents").json()
    assert [a["id"] for a in agents] == ["alpha", "beta", "gamma", "delta"]
    assert agents[3]["name"] == "Delta"


def test_stats_and_info(api):
    http, _ = api()
    http.post("/v1/execute", json={"input": "What is the answer here?", "validate_output": False})

    stats = http.get("/v1/stats").json()
    assert stats["overall"]["sample_count"] == 1
    assert stats["registered_agents"] == 3

    info = http.get("/v1/info").json()
    assert "hierarchical" in info["topologies"]
