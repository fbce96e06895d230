"""
Reasoning Strategy Runner

Single-agent, multi-step reasoning over the generator.

STRATEGIES (closed set, one class each):
    direct                 one "think step by step" call, parsed into steps
    iterative              thought -> action -> observation loop
    branch-select          candidate approaches, first one expanded
    draft-critique-revise  three sequential calls

FAILURE POLICY:
    All-or-nothing. Any generator failure aborts the strategy and
    propagates; steps produced so far are discarded.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from app.core.config import settings
from llm.client import GenerationClient, GenerationResult
from orchestration.errors import GenerationInvalidResponse
from orchestration.parsing import (
    classify_action,
    extract_final_answer,
    split_candidates,
    split_reasoning_steps,
)
from orchestration.state import (
    STEP_CONFIDENCE,
    UNPARSED_STEP_CONFIDENCE,
    ExecutionMode,
    ExecutionResult,
    RunnerOutcome,
    StepTrace,
    Strategy,
    StrategyPhase,
    resolve_strategy,
)

logger = logging.getLogger(__name__)


async def _timed_generate(
    client: GenerationClient,
    system_instructions: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
) -> Tuple[GenerationResult, datetime, float]:
    """Call the generator and return (result, started_at, duration_ms)."""
    started_at = datetime.now()
    start_time = time.time()
    result = await client.generate(system_instructions, user_prompt, max_tokens, temperature)
    return result, started_at, (time.time() - start_time) * 1000


def _cap(default: int, max_tokens: Optional[int]) -> int:
    return min(default, max_tokens) if max_tokens else default


class BaseStrategy(ABC):
    """One reasoning strategy."""

    strategy: Strategy

    def __init__(self, client: GenerationClient):
        self.client = client

    @abstractmethod
    async def run(
        self,
        input_text: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> RunnerOutcome:
        raise NotImplementedError


class DirectStrategy(BaseStrategy):
    """
    Single call with a step-by-step instruction.

    The reply is split into numbered steps (0.8 each); a reply without step
    markers becomes one step at 0.7.
    """

    strategy = Strategy.DIRECT

    SYSTEM_PROMPT = (
        "You are an advanced reasoning system. Think step by step, showing your "
        "reasoning process clearly. Each step should be numbered and explain your "
        "thought process."
    )

    def __init__(
        self,
        client: GenerationClient,
        default_max_tokens: Optional[int] = None,
        default_temperature: Optional[float] = None,
    ):
        super().__init__(client)
        self.default_max_tokens = default_max_tokens or settings.default_max_tokens
        self.default_temperature = (
            default_temperature if default_temperature is not None else settings.default_temperature
        )

    @staticmethod
    def build_prompt(input_text: str, context: Optional[Dict[str, Any]] = None) -> str:
        prompt = f"Please solve this step by step, showing your reasoning:\n\n{input_text}"
        if context:
            prompt += f"\n\nContext: {json.dumps(context, indent=2, default=str)}"
        prompt += "\n\nThink through this systematically, numbering each step of your reasoning."
        return prompt

    async def run(self, input_text, max_tokens=None, temperature=None, context=None) -> RunnerOutcome:
        prompt = self.build_prompt(input_text, context)
        result, started_at, duration_ms = await _timed_generate(
            self.client,
            self.SYSTEM_PROMPT,
            prompt,
            max_tokens or self.default_max_tokens,
            temperature if temperature is not None else self.default_temperature,
        )

        parsed = split_reasoning_steps(result.text)
        if parsed:
            thoughts = [(line, STEP_CONFIDENCE) for line in parsed]
        else:
            thoughts = [(result.text, UNPARSED_STEP_CONFIDENCE)]

        steps = []
        for index, (thought, confidence) in enumerate(thoughts):
            # The single call is attributed to the first step
            first = index == 0
            steps.append(StepTrace(
                step_number=index + 1,
                actor=StrategyPhase.REASONING,
                input=prompt if first else "",
                output=thought,
                started_at=started_at,
                duration_ms=duration_ms if first else 0.0,
                confidence=confidence,
                tokens_used=result.tokens_used if first else 0,
            ))

        return RunnerOutcome(steps=steps, final_text=extract_final_answer(result.text))


class SimulatedActionExecutor:
    """
    Resolves iterative-strategy actions without real tools.

    Replace with a tool-dispatching executor to give actions real effects.
    """

    OBSERVATIONS: Dict[str, str] = {
        "SEARCH": "Search results: [Simulated search results related to the query]",
        "CALCULATE": "Calculation complete: [Simulated calculation result]",
        "ANALYZE": "Analysis: [Simulated analysis results]",
        "ANSWER": "Final answer based on previous reasoning steps.",
    }
    DEFAULT_OBSERVATION = "Action executed successfully."

    async def execute(self, action_type: Optional[str], action_text: str, question: str) -> str:
        if action_type is None:
            return self.DEFAULT_OBSERVATION
        return self.OBSERVATIONS.get(action_type, self.DEFAULT_OBSERVATION)


class IterativeStrategy(BaseStrategy):
    """Thought / action / observation loop, stopping on the first ANSWER."""

    strategy = Strategy.ITERATIVE

    THOUGHT_SYSTEM_PROMPT = (
        "You are using the ReAct methodology. Generate a THOUGHT about what you "
        "should do next to solve this problem."
    )
    ACTION_SYSTEM_PROMPT = (
        "Based on your thought, decide what ACTION to take. Actions can be: "
        "SEARCH, CALCULATE, ANALYZE, or ANSWER."
    )
    THOUGHT_MAX_TOKENS = 300
    THOUGHT_TEMPERATURE = 0.7
    ACTION_MAX_TOKENS = 200
    ACTION_TEMPERATURE = 0.3

    def __init__(
        self,
        client: GenerationClient,
        max_iterations: Optional[int] = None,
        action_executor: Optional[SimulatedActionExecutor] = None,
    ):
        super().__init__(client)
        self.max_iterations = max_iterations or settings.iterative_max_iterations
        self.action_executor = action_executor or SimulatedActionExecutor()

    @staticmethod
    def build_thought_prompt(question: str, previous: List[StepTrace]) -> str:
        prompt = f"Question: {question}\n\n"
        if previous:
            prompt += "Previous reasoning steps:\n"
            for step in previous:
                prompt += f"Step {step.step_number}: {step.metadata.get('thought', '')}\n"
                prompt += f"Action: {step.metadata.get('action', '')}\n"
                prompt += f"Observation: {step.output}\n"
            prompt += "\n"
        prompt += "THOUGHT: What should I think about next to solve this problem?"
        return prompt

    @staticmethod
    def build_action_prompt(thought: str, question: str) -> str:
        return (
            f'Given this thought: "{thought}"\n\nFor the question: "{question}"\n\n'
            "What ACTION should I take? (SEARCH, CALCULATE, ANALYZE, or ANSWER)"
        )

    async def run(self, input_text, max_tokens=None, temperature=None, context=None) -> RunnerOutcome:
        steps: List[StepTrace] = []

        for iteration in range(1, self.max_iterations + 1):
            thought_prompt = self.build_thought_prompt(input_text, steps)
            thought, started_at, thought_ms = await _timed_generate(
                self.client,
                self.THOUGHT_SYSTEM_PROMPT,
                thought_prompt,
                _cap(self.THOUGHT_MAX_TOKENS, max_tokens),
                self.THOUGHT_TEMPERATURE,
            )

            action, _, action_ms = await _timed_generate(
                self.client,
                self.ACTION_SYSTEM_PROMPT,
                self.build_action_prompt(thought.text, input_text),
                _cap(self.ACTION_MAX_TOKENS, max_tokens),
                self.ACTION_TEMPERATURE,
            )

            action_type = classify_action(action.text)
            observation = await self.action_executor.execute(action_type, action.text, input_text)

            steps.append(StepTrace(
                step_number=iteration,
                actor=StrategyPhase.ITERATION,
                input=thought_prompt,
                output=observation,
                started_at=started_at,
                duration_ms=thought_ms + action_ms,
                confidence=STEP_CONFIDENCE,
                tokens_used=thought.tokens_used + action.tokens_used,
                metadata={
                    "thought": thought.text,
                    "action": action.text,
                    "action_type": action_type,
                },
            ))

            if "ANSWER" in action.text.upper():
                break

        return RunnerOutcome(steps=steps, final_text=steps[-1].output)


class BranchSelectStrategy(BaseStrategy):
    """
    Candidate approaches in one call, then an answer along the first one.

    The ranking call is advisory: its text is kept on the final step but the
    candidate order is never changed.
    """

    strategy = Strategy.BRANCH_SELECT

    CANDIDATE_MAX_TOKENS = 600
    CANDIDATE_TEMPERATURE = 0.8
    RANKING_MAX_TOKENS = 400
    RANKING_TEMPERATURE = 0.3
    FINAL_MAX_TOKENS = 500
    FINAL_TEMPERATURE = 0.5

    CANDIDATE_CONFIDENCE = 0.7
    FINAL_CONFIDENCE = 0.85

    RANKING_SYSTEM_PROMPT = (
        "Evaluate these different thought approaches and rank them by how likely "
        "they are to lead to a correct solution. Return them in order of preference."
    )
    FINAL_SYSTEM_PROMPT = "Based on the explored thought paths, provide a comprehensive final answer."

    def __init__(self, client: GenerationClient, branches: Optional[int] = None):
        super().__init__(client)
        self.branches = branches or settings.branch_count

    def candidate_system_prompt(self) -> str:
        return (
            f"Generate {self.branches} different approaches or perspectives to solve this "
            "problem. Each should be distinct and explore different angles."
        )

    async def run(self, input_text, max_tokens=None, temperature=None, context=None) -> RunnerOutcome:
        generated, started_at, candidate_ms = await _timed_generate(
            self.client,
            self.candidate_system_prompt(),
            input_text,
            _cap(self.CANDIDATE_MAX_TOKENS, max_tokens),
            self.CANDIDATE_TEMPERATURE,
        )
        candidates = split_candidates(generated.text, self.branches)
        if not candidates:
            raise GenerationInvalidResponse("No candidate approaches in generator reply")

        listing = "\n".join(f"{i + 1}. {c}" for i, c in enumerate(candidates))
        ranking, _, _ = await _timed_generate(
            self.client,
            self.RANKING_SYSTEM_PROMPT,
            f"Original question: {input_text}\n\nThought approaches:\n{listing}\n\nRank these approaches:",
            _cap(self.RANKING_MAX_TOKENS, max_tokens),
            self.RANKING_TEMPERATURE,
        )

        best_path = candidates[0]
        final_prompt = f"Original question: {input_text}\n\nBest thought path: {best_path}\n\nProvide the final answer:"
        final, final_started, final_ms = await _timed_generate(
            self.client,
            self.FINAL_SYSTEM_PROMPT,
            final_prompt,
            _cap(self.FINAL_MAX_TOKENS, max_tokens),
            self.FINAL_TEMPERATURE,
        )

        steps = [
            StepTrace(
                step_number=i + 1,
                actor=StrategyPhase.CANDIDATE,
                input=input_text if i == 0 else "",
                output=candidate,
                started_at=started_at,
                duration_ms=candidate_ms if i == 0 else 0.0,
                confidence=self.CANDIDATE_CONFIDENCE,
                tokens_used=generated.tokens_used if i == 0 else 0,
            )
            for i, candidate in enumerate(candidates)
        ]
        steps.append(StepTrace(
            step_number=len(steps) + 1,
            actor=StrategyPhase.FINAL_ANSWER,
            input=final_prompt,
            output=final.text,
            started_at=final_started,
            duration_ms=final_ms,
            confidence=self.FINAL_CONFIDENCE,
            tokens_used=final.tokens_used,
            metadata={"ranking": ranking.text, "ranking_applied": False},
        ))

        return RunnerOutcome(
            steps=steps,
            final_text=final.text,
            overhead_tokens=ranking.tokens_used,
        )


class DraftCritiqueReviseStrategy(BaseStrategy):
    """Draft, critique of the draft, revision given both."""

    strategy = Strategy.DRAFT_CRITIQUE_REVISE

    # (phase, system prompt, max tokens, temperature, confidence)
    PHASES = (
        (StrategyPhase.DRAFT, "Provide an initial response to the question.", 400, 0.7, 0.6),
        (
            StrategyPhase.CRITIQUE,
            "Critically analyze the previous response. What could be improved? What might be wrong?",
            400, 0.8, 0.7,
        ),
        (
            StrategyPhase.REVISION,
            "Based on your reflection, provide an improved and more accurate response.",
            500, 0.6, 0.9,
        ),
    )

    @staticmethod
    def build_prompts(input_text: str, draft: str = "", critique: str = "") -> Dict[StrategyPhase, str]:
        return {
            StrategyPhase.DRAFT: input_text,
            StrategyPhase.CRITIQUE: (
                f"Original question: {input_text}\n\nPrevious response: {draft}\n\n"
                "Provide a critical analysis:"
            ),
            StrategyPhase.REVISION: (
                f"Original question: {input_text}\n\nInitial response: {draft}\n\n"
                f"Reflection: {critique}\n\nProvide an improved response:"
            ),
        }

    async def run(self, input_text, max_tokens=None, temperature=None, context=None) -> RunnerOutcome:
        steps: List[StepTrace] = []
        outputs: Dict[StrategyPhase, str] = {}

        for phase, system_prompt, phase_tokens, phase_temperature, confidence in self.PHASES:
            prompt = self.build_prompts(
                input_text,
                outputs.get(StrategyPhase.DRAFT, ""),
                outputs.get(StrategyPhase.CRITIQUE, ""),
            )[phase]
            result, started_at, duration_ms = await _timed_generate(
                self.client, system_prompt, prompt, _cap(phase_tokens, max_tokens), phase_temperature
            )
            outputs[phase] = result.text
            steps.append(StepTrace(
                step_number=len(steps) + 1,
                actor=phase,
                input=prompt,
                output=result.text,
                started_at=started_at,
                duration_ms=duration_ms,
                confidence=confidence,
                tokens_used=result.tokens_used,
            ))

        return RunnerOutcome(steps=steps, final_text=outputs[StrategyPhase.REVISION])


class ReasoningStrategyRunner:
    """Dispatches a request to the implementation of its strategy."""

    def __init__(
        self,
        client: GenerationClient,
        strategies: Optional[Dict[Strategy, BaseStrategy]] = None,
    ):
        self.client = client
        self.strategies: Dict[Strategy, BaseStrategy] = strategies or {
            Strategy.DIRECT: DirectStrategy(client),
            Strategy.ITERATIVE: IterativeStrategy(client),
            Strategy.BRANCH_SELECT: BranchSelectStrategy(client),
            Strategy.DRAFT_CRITIQUE_REVISE: DraftCritiqueReviseStrategy(client),
        }

    async def run(
        self,
        input_text: str,
        strategy: Union[str, Strategy, None] = Strategy.DIRECT,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        request_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Run one strategy to completion.

        `context` is caller-supplied structured data; only the direct
        strategy renders it into its prompt.
        """
        resolved = resolve_strategy(strategy)
        implementation = self.strategies[resolved]

        start_time = time.time()
        try:
            outcome = await implementation.run(
                input_text, max_tokens=max_tokens, temperature=temperature, context=context
            )
        except Exception as e:
            logger.error(f"Strategy {resolved.value} failed after {(time.time() - start_time) * 1000:.0f}ms: {e}")
            raise

        return ExecutionResult(
            request_id=request_id,
            mode=ExecutionMode.REASONING,
            strategy=resolved,
            steps=tuple(outcome.steps),
            final_text=outcome.final_text,
            success=outcome.success,
            total_duration_ms=(time.time() - start_time) * 1000,
            overhead_tokens=outcome.overhead_tokens,
        )
