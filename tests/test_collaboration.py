"""
Tests for the collaboration topologies.

Agents come from the `registry` fixture: alpha, beta, gamma, each with the
system instructions "You are <id>." so the fake generator can tell them apart.
"""

import pytest

from orchestration.collaboration import (
    SYNTHESIS_IMPOSSIBLE,
    CollaborationRunner,
    HierarchicalTopology,
    ParallelTopology,
)
from orchestration.errors import (
    EmptyAgentSet,
    ErrorKind,
    GenerationTimeout,
    GenerationTransportError,
    UnknownAgent,
    UnknownStrategy,
)
from orchestration.state import ExecutionMode, Topology

from helpers import ScriptedClient

ALPHA, BETA, GAMMA = "You are alpha.", "You are beta.", "You are gamma."


def echo_handler(failing=()):
    """Each agent answers with its own tag; agents in `failing` raise."""
    def handler(system, prompt):
        if system in failing:
            return GenerationTransportError(f"{system} unreachable")
        if system == ParallelTopology.SYNTHESIS_SYSTEM_PROMPT:
            return "merged view"
        return f"output of [{system}]"
    return handler


# --- sequential ---

@pytest.mark.asyncio
async def test_sequential_threads_output_into_next_input(registry):
    client = ScriptedClient(handler=echo_handler())
    runner = CollaborationRunner(client, registry)

    result = await runner.run("Write a product brief", ["alpha", "beta", "gamma"], "sequential")

    assert result.mode == ExecutionMode.COLLABORATION
    assert result.topology == Topology.SEQUENTIAL
    assert result.success is True
    assert result.steps[0].input == "Write a product brief"
    for i in range(1, len(result.steps)):
        assert result.steps[i].input == result.steps[i - 1].output
    assert result.final_text == "output of [You are gamma.]"
    assert [s.actor.id for s in result.steps] == ["alpha", "beta", "gamma"]


@pytest.mark.asyncio
async def test_sequential_prompt_framing(registry):
    client = ScriptedClient(handler=echo_handler())

    await CollaborationRunner(client, registry).run("task", ["alpha", "beta", "gamma"], "sequential")

    first, middle, last = (call.prompt for call in client.calls)
    assert "no previous agent" in first
    assert "passed to the next agent" in first
    assert "output from the previous agent" in middle
    assert "passed to the next agent" in middle
    assert "You are the final agent" in last


@pytest.mark.asyncio
async def test_sequential_stops_at_first_failure(registry):
    client = ScriptedClient(handler=echo_handler(failing=(BETA,)))

    result = await CollaborationRunner(client, registry).run("task", ["alpha", "beta", "gamma"], "sequential")

    assert len(result.steps) == 2
    assert result.steps[1].success is False
    assert result.steps[1].error == ErrorKind.TRANSPORT
    assert result.final_text == result.steps[0].output
    assert result.success is False
    assert all(call.system != GAMMA for call in client.calls)


@pytest.mark.asyncio
async def test_sequential_first_step_failure_has_empty_result(registry):
    client = ScriptedClient(handler=echo_handler(failing=(ALPHA,)))

    result = await CollaborationRunner(client, registry).run("task", ["alpha", "beta"], "sequential")

    assert len(result.steps) == 1
    assert result.final_text == ""
    assert result.success is False


# --- parallel ---

@pytest.mark.asyncio
async def test_parallel_keeps_dispatch_order_and_synthesizes_survivors(registry):
    # alpha finishes last, gamma fails
    client = ScriptedClient(
        handler=echo_handler(failing=(GAMMA,)),
        delays={ALPHA: 0.05, BETA: 0.01},
    )

    result = await CollaborationRunner(client, registry).run("Assess the plan", ["alpha", "beta", "gamma"], "parallel")

    assert len(result.steps) == 3
    assert [s.step_number for s in result.steps] == [1, 2, 3]
    assert [s.actor.id for s in result.steps] == ["alpha", "beta", "gamma"]
    assert all(s.input == "Assess the plan" for s in result.steps)
    assert [s.success for s in result.steps] == [True, True, False]
    assert result.success is False
    assert result.final_text == "merged view"

    synthesis_calls = [c for c in client.calls if c.system == ParallelTopology.SYNTHESIS_SYSTEM_PROMPT]
    assert len(synthesis_calls) == 1
    prompt = synthesis_calls[0].prompt
    assert "Alpha Agent (Alpha Role):\noutput of [You are alpha.]" in prompt
    assert "\n\n---\n\n" in prompt
    assert "Gamma Agent" not in prompt


@pytest.mark.asyncio
async def test_parallel_all_failed_skips_synthesis(registry):
    client = ScriptedClient(handler=echo_handler(failing=(ALPHA, BETA)))

    result = await CollaborationRunner(client, registry).run("task", ["alpha", "beta"], "parallel")

    assert len(result.steps) == 2
    assert result.final_text == SYNTHESIS_IMPOSSIBLE
    assert result.success is False
    assert result.confidence == 0.0
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_parallel_step_count_matches_agents_for_any_failure_pattern(registry):
    for failing in [(), (ALPHA,), (BETA, GAMMA), (ALPHA, BETA, GAMMA)]:
        client = ScriptedClient(handler=echo_handler(failing=failing))
        result = await CollaborationRunner(client, registry).run("t", ["alpha", "beta", "gamma"], "parallel")
        assert len(result.steps) == 3


@pytest.mark.asyncio
async def test_parallel_synthesis_failure_propagates(registry):
    def handler(system, prompt):
        if system == ParallelTopology.SYNTHESIS_SYSTEM_PROMPT:
            return GenerationTimeout("synthesis timed out")
        return "fine"

    with pytest.raises(GenerationTimeout):
        await CollaborationRunner(ScriptedClient(handler=handler), registry).run("t", ["alpha", "beta"], "parallel")


# --- hierarchical ---

PARAGRAPH_ONE = "Collect the current usage numbers for every region and flag any anomalies you see."
PARAGRAPH_TWO = "Write a short recommendation on which region should receive the next investment."


def hierarchical_handler(decomposition, failing=()):
    def handler(system, prompt):
        if HierarchicalTopology.SYNTHESIS_SYSTEM_SUFFIX in system:
            return "final deliverable"
        if system == ALPHA:
            return decomposition
        if system in failing:
            return GenerationTransportError("worker down")
        return f"done by [{system}]"
    return handler


@pytest.mark.asyncio
async def test_hierarchical_paragraph_fallback_dispatches_in_order(registry):
    decomposition = f"Here is my plan.\n\n{PARAGRAPH_ONE}\n\n{PARAGRAPH_TWO}"
    client = ScriptedClient(handler=hierarchical_handler(decomposition))

    result = await CollaborationRunner(client, registry).run("Plan investments", ["alpha", "beta", "gamma"], "hierarchical")

    assert result.topology == Topology.HIERARCHICAL
    assert [s.step_number for s in result.steps] == [1, 2, 3, 4]
    leader, first, second, synthesis = result.steps
    assert leader.actor.id == "alpha" and leader.input == "Plan investments"
    assert (first.actor.id, first.input) == ("beta", PARAGRAPH_ONE)
    assert (second.actor.id, second.input) == ("gamma", PARAGRAPH_TWO)
    assert synthesis.actor.id == "alpha"
    assert result.final_text == "final deliverable"
    assert result.success is True


@pytest.mark.asyncio
async def test_hierarchical_subtask_markers_capped_by_workers(registry):
    decomposition = (
        "SUBTASK 1: gather data\nASSIGNED TO: beta\nINSTRUCTIONS: all regions\n\n"
        "SUBTASK 2: write report\nASSIGNED TO: gamma\n\n"
        "SUBTASK 3: extra work nobody can take"
    )
    client = ScriptedClient(handler=hierarchical_handler(decomposition))

    result = await CollaborationRunner(client, registry).run("t", ["alpha", "beta", "gamma"], "hierarchical")

    assert [s.input for s in result.steps[1:3]] == ["gather data", "write report"]
    assert len(result.steps) == 4

    leader_prompt = client.calls[0].prompt
    assert "- beta: Beta Agent (Beta Role): general" in leader_prompt
    synthesis_call = client.calls[-1]
    assert (synthesis_call.max_tokens, synthesis_call.temperature) == (2000, 0.3)


@pytest.mark.asyncio
async def test_hierarchical_worker_failure_does_not_abort(registry):
    decomposition = "SUBTASK 1: first part\nSUBTASK 2: second part"
    client = ScriptedClient(handler=hierarchical_handler(decomposition, failing=(BETA,)))

    result = await CollaborationRunner(client, registry).run("t", ["alpha", "beta", "gamma"], "hierarchical")

    assert [s.success for s in result.steps] == [True, False, True, True]
    assert result.success is False
    assert result.final_text == "final deliverable"
    assert "subtask failed" in client.calls[-1].prompt


@pytest.mark.asyncio
async def test_hierarchical_leader_failure_propagates(registry):
    def handler(system, prompt):
        if system == ALPHA:
            return GenerationTimeout("leader timed out")
        return "x"

    with pytest.raises(GenerationTimeout):
        await CollaborationRunner(ScriptedClient(handler=handler), registry).run("t", ["alpha", "beta"], "hierarchical")


# --- configuration errors ---

@pytest.mark.asyncio
@pytest.mark.parametrize("topology", ["sequential", "parallel", "hierarchical"])
async def test_unknown_agent_fails_before_any_generation(registry, topology):
    client = ScriptedClient()

    with pytest.raises(UnknownAgent) as exc_info:
        await CollaborationRunner(client, registry).run("t", ["alpha", "nobody"], topology)

    assert exc_info.value.agent_id == "nobody"
    assert client.calls == []


@pytest.mark.asyncio
async def test_empty_agent_list_rejected(registry):
    client = ScriptedClient()

    with pytest.raises(EmptyAgentSet):
        await CollaborationRunner(client, registry).run("t", [], "parallel")
    assert client.calls == []


@pytest.mark.asyncio
async def test_unknown_topology_rejected(registry):
    with pytest.raises(UnknownStrategy):
        await CollaborationRunner(ScriptedClient(), registry).run("t", ["alpha"], "star")
