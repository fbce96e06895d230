"""
Collaboration Runner

Multi-agent execution over agents resolved from the registry.

TOPOLOGIES (closed set, one class each):
    sequential    output[i] becomes input[i+1], fail-fast
    parallel      same task to every agent, synthesis over survivors
    hierarchical  leader decomposes, workers run concurrently, leader synthesizes

ORDERING:
    Step numbers are assigned from agent / subtask order at dispatch time,
    never from completion order.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from agents.registry import AgentRegistry
from llm.client import GenerationClient
from orchestration.errors import error_kind
from orchestration.parsing import parse_subtasks
from orchestration.state import (
    STEP_CONFIDENCE,
    ExecutionMode,
    ExecutionResult,
    RunnerOutcome,
    StepTrace,
    Topology,
    resolve_topology,
)
from schemas.agent import AgentRef

logger = logging.getLogger(__name__)

SYNTHESIS_IMPOSSIBLE = "All parallel tasks failed. Unable to synthesize results."


class BaseTopology(ABC):
    """One collaboration topology."""

    topology: Topology

    def __init__(self, client: GenerationClient):
        self.client = client

    @abstractmethod
    async def run(self, task: str, agents: Sequence[AgentRef]) -> RunnerOutcome:
        raise NotImplementedError

    async def _invoke(self, agent: AgentRef, prompt: str, step_number: int, step_input: str) -> StepTrace:
        """
        Invoke one agent and record the step.

        Generator failures become a failed step; they never escape.
        """
        started_at = datetime.now()
        start_time = time.time()
        try:
            result = await self.client.generate(
                agent.system_instructions,
                prompt,
                agent.model_params.max_output_tokens,
                agent.model_params.temperature,
            )
        except Exception as e:
            logger.error(f"Step {step_number} ({agent.id}) failed in {self.topology.value} collaboration: {e}")
            return StepTrace(
                step_number=step_number,
                actor=agent,
                input=step_input,
                output="",
                started_at=started_at,
                duration_ms=(time.time() - start_time) * 1000,
                success=False,
                error=error_kind(e),
                error_message=str(e),
                confidence=0.0,
            )

        return StepTrace(
            step_number=step_number,
            actor=agent,
            input=step_input,
            output=result.text,
            started_at=started_at,
            duration_ms=(time.time() - start_time) * 1000,
            confidence=STEP_CONFIDENCE,
            tokens_used=result.tokens_used,
        )


class SequentialTopology(BaseTopology):
    """Strict pipeline. The first failed link stops the chain."""

    topology = Topology.SEQUENTIAL

    @staticmethod
    def build_prompt(agent: AgentRef, current_input: str, index: int, total: int) -> str:
        prompt = f"Task: {current_input}\n\n"
        prompt += f"You are agent {index + 1} of {total} in a sequential workflow.\n"
        prompt += f"Your role: {agent.role}\n"
        prompt += f"Your capabilities: {', '.join(agent.capabilities)}\n\n"

        if index == 0:
            prompt += "You are the first agent; there is no previous agent's work to build on.\n"
        else:
            prompt += "This input is the output from the previous agent. Build upon their work.\n"

        if index < total - 1:
            prompt += "Your output will be passed to the next agent, so be clear and comprehensive.\n"
        else:
            prompt += "You are the final agent. Provide a complete, polished result.\n"
        return prompt

    async def run(self, task, agents) -> RunnerOutcome:
        steps: List[StepTrace] = []
        current_input = task
        last_good = ""

        for index, agent in enumerate(agents):
            prompt = self.build_prompt(agent, current_input, index, len(agents))
            step = await self._invoke(agent, prompt, index + 1, current_input)
            steps.append(step)
            if not step.success:
                return RunnerOutcome(steps=steps, final_text=last_good, success=False)
            last_good = step.output
            current_input = step.output

        return RunnerOutcome(steps=steps, final_text=last_good)


class ParallelTopology(BaseTopology):
    """
    Independent fan-out over the same task, then one synthesis call.

    Synthesis runs only over successful branches. With no survivors the
    synthesis call is skipped and a fixed explanation is returned.
    """

    topology = Topology.PARALLEL

    SYNTHESIS_SYSTEM_PROMPT = (
        "You are an expert at synthesizing multiple perspectives into coherent, "
        "comprehensive responses."
    )
    SYNTHESIS_MAX_TOKENS = 1500
    SYNTHESIS_TEMPERATURE = 0.4

    @staticmethod
    def build_prompt(agent: AgentRef, task: str, total: int) -> str:
        return (
            f"Task: {task}\n\n"
            f"You are working in parallel with {total - 1} other agents on this task.\n"
            f"Focus on your expertise area: {agent.role}\n"
            f"Your unique capabilities: {', '.join(agent.capabilities)}\n"
            "Provide your perspective and recommendations based on your specialization.\n"
        )

    @staticmethod
    def build_synthesis_prompt(task: str, survivors: Sequence[StepTrace]) -> str:
        results = "\n\n---\n\n".join(
            f"{step.actor.display_name} ({step.actor.role}):\n{step.output}" for step in survivors
        )
        return (
            "Synthesize the following parallel agent results into a comprehensive response.\n\n"
            f"Original Task: {task}\n\n"
            f"Agent Results:\n{results}\n\n"
            "Please create a unified, coherent response that incorporates insights from all "
            "agents while avoiding redundancy."
        )

    async def run(self, task, agents) -> RunnerOutcome:
        steps = await asyncio.gather(*[
            self._invoke(agent, self.build_prompt(agent, task, len(agents)), index + 1, task)
            for index, agent in enumerate(agents)
        ])
        steps = list(steps)
        success = all(step.success for step in steps)

        survivors = [step for step in steps if step.success]
        if not survivors:
            logger.warning("No parallel branch succeeded; skipping synthesis")
            return RunnerOutcome(steps=steps, final_text=SYNTHESIS_IMPOSSIBLE, success=False)

        synthesis = await self.client.generate(
            self.SYNTHESIS_SYSTEM_PROMPT,
            self.build_synthesis_prompt(task, survivors),
            self.SYNTHESIS_MAX_TOKENS,
            self.SYNTHESIS_TEMPERATURE,
        )
        return RunnerOutcome(
            steps=steps,
            final_text=synthesis.text,
            success=success,
            overhead_tokens=synthesis.tokens_used,
        )


class HierarchicalTopology(BaseTopology):
    """
    agents[0] leads: decompose, dispatch to workers concurrently, synthesize.

    Leader calls are not isolated; a failed leader call fails the run.
    """

    topology = Topology.HIERARCHICAL

    SYNTHESIS_SYSTEM_SUFFIX = "You are a project leader synthesizing team results into a final deliverable."
    SYNTHESIS_MAX_TOKENS = 2000
    SYNTHESIS_TEMPERATURE = 0.3

    @staticmethod
    def build_leader_prompt(task: str, workers: Sequence[AgentRef]) -> str:
        roster = "\n".join(worker.roster_line() for worker in workers)
        return (
            "As the lead coordinator, break down this complex task into smaller, manageable subtasks.\n\n"
            f"Main Task: {task}\n\n"
            f"Available team members and their capabilities:\n{roster}\n\n"
            "Please:\n"
            "1. Analyze the main task\n"
            f"2. Break it into at most {len(workers)} specific subtasks\n"
            "3. Suggest which team member should handle each subtask\n"
            "4. Provide clear, actionable instructions for each subtask\n\n"
            "Format your response as:\n"
            "SUBTASK 1: [Description]\n"
            "ASSIGNED TO: [Agent id]\n"
            "INSTRUCTIONS: [Specific instructions]\n\n"
            "SUBTASK 2: [Description]\n"
            "..."
        )

    @staticmethod
    def build_worker_prompt(worker: AgentRef, subtask: str, task: str) -> str:
        return (
            "You have been assigned a specific subtask as part of a larger project.\n\n"
            f"Original Task: {task}\n\n"
            f"Your Subtask: {subtask}\n\n"
            f"Your Role: {worker.role}\n"
            f"Your Capabilities: {', '.join(worker.capabilities)}\n\n"
            "Please complete this subtask thoroughly, keeping in mind how it contributes to the "
            "overall project goal. Provide detailed results that can be integrated with other "
            "team members' work."
        )

    @staticmethod
    def build_synthesis_prompt(task: str, breakdown: str, worker_steps: Sequence[StepTrace]) -> str:
        results = []
        for step in worker_steps:
            if step.success:
                results.append(f"{step.actor.display_name}: {step.output}")
            else:
                results.append(f"{step.actor.display_name}: [no result, subtask failed: {step.error_message}]")
        return (
            "As the project leader, provide a final comprehensive result.\n\n"
            f"Original Task: {task}\n\n"
            f"Task Breakdown: {breakdown}\n\n"
            "Team Results:\n" + "\n\n".join(results) + "\n\n"
            "Please provide a final, integrated solution that addresses the original task completely."
        )

    async def _leader_step(self, leader: AgentRef, system: str, prompt: str, step_number: int,
                           step_input: str, max_tokens: int, temperature: float) -> StepTrace:
        started_at = datetime.now()
        start_time = time.time()
        result = await self.client.generate(system, prompt, max_tokens, temperature)
        return StepTrace(
            step_number=step_number,
            actor=leader,
            input=step_input,
            output=result.text,
            started_at=started_at,
            duration_ms=(time.time() - start_time) * 1000,
            confidence=STEP_CONFIDENCE,
            tokens_used=result.tokens_used,
        )

    async def run(self, task, agents) -> RunnerOutcome:
        leader, workers = agents[0], list(agents[1:])

        plan = await self._leader_step(
            leader,
            leader.system_instructions,
            self.build_leader_prompt(task, workers),
            1,
            task,
            leader.model_params.max_output_tokens,
            leader.model_params.temperature,
        )

        subtasks = parse_subtasks(plan.output)[:len(workers)]
        logger.info(f"Leader {leader.id} produced {len(subtasks)} subtask(s) for {len(workers)} worker(s)")

        worker_steps = list(await asyncio.gather(*[
            self._invoke(workers[index], self.build_worker_prompt(workers[index], subtask, task), index + 2, subtask)
            for index, subtask in enumerate(subtasks)
        ]))

        system = "\n\n".join(part for part in (leader.system_instructions, self.SYNTHESIS_SYSTEM_SUFFIX) if part)
        synthesis = await self._leader_step(
            leader,
            system,
            self.build_synthesis_prompt(task, plan.output, worker_steps),
            len(worker_steps) + 2,
            "Synthesis of worker results",
            self.SYNTHESIS_MAX_TOKENS,
            self.SYNTHESIS_TEMPERATURE,
        )

        return RunnerOutcome(
            steps=[plan] + worker_steps + [synthesis],
            final_text=synthesis.output,
            success=all(step.success for step in worker_steps),
        )


class CollaborationRunner:
    """Resolves agents, then runs the requested topology."""

    def __init__(
        self,
        client: GenerationClient,
        registry: AgentRegistry,
        topologies: Optional[Dict[Topology, BaseTopology]] = None,
    ):
        self.client = client
        self.registry = registry
        self.topologies: Dict[Topology, BaseTopology] = topologies or {
            Topology.SEQUENTIAL: SequentialTopology(client),
            Topology.PARALLEL: ParallelTopology(client),
            Topology.HIERARCHICAL: HierarchicalTopology(client),
        }

    async def run(
        self,
        task: str,
        agent_ids: Sequence[str],
        topology: Union[str, Topology, None] = Topology.SEQUENTIAL,
        request_id: Optional[str] = None,
    ) -> ExecutionResult:
        resolved = resolve_topology(topology)
        # Raises before any generator call
        agents = self.registry.resolve(agent_ids)

        start_time = time.time()
        outcome = await self.topologies[resolved].run(task, agents)
        duration_ms = (time.time() - start_time) * 1000

        log = logger.info if outcome.success else logger.warning
        log(f"{resolved.value} collaboration of {len(agents)} agent(s) finished: success={outcome.success}")

        return ExecutionResult(
            request_id=request_id,
            mode=ExecutionMode.COLLABORATION,
            topology=resolved,
            steps=tuple(outcome.steps),
            final_text=outcome.final_text,
            success=outcome.success,
            total_duration_ms=duration_ms,
            overhead_tokens=outcome.overhead_tokens,
        )
