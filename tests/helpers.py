"""Shared test doubles and builders."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Union

from llm.client import GenerationClient, GenerationResult
from orchestration.state import StepTrace, StrategyPhase
from schemas.agent import AgentRef, ModelParams

TOKENS_PER_CALL = 10

Reply = Union[str, BaseException]


@dataclass
class Call:
    system: str
    prompt: str
    max_tokens: int
    temperature: float


class ScriptedClient(GenerationClient):
    """
    Fake generator.

    Replies come from `handler(system, prompt)` when given, otherwise from the
    `replies` queue in call order. An exception reply is raised instead of
    returned. `delays` maps a system prompt to seconds slept before replying.
    """

    def __init__(
        self,
        replies: Optional[Sequence[Reply]] = None,
        handler: Optional[Callable[[str, str], Reply]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.calls: List[Call] = []
        self._replies = list(replies or [])
        self._handler = handler
        self._delays = delays or {}

    async def generate(self, system_instructions, user_prompt, max_tokens, temperature):
        self.calls.append(Call(system_instructions, user_prompt, max_tokens, temperature))

        delay = self._delays.get(system_instructions)
        if delay:
            await asyncio.sleep(delay)

        if self._handler is not None:
            reply = self._handler(system_instructions, user_prompt)
        elif self._replies:
            reply = self._replies.pop(0)
        else:
            reply = "ok"

        if isinstance(reply, BaseException):
            raise reply
        return GenerationResult(text=reply, tokens_used=TOKENS_PER_CALL, latency_ms=1.0)


def make_agent(agent_id: str, role: str = "", capabilities=("general",)) -> AgentRef:
    return AgentRef(
        id=agent_id,
        name=f"{agent_id.title()} Agent",
        role=role or f"{agent_id.title()} Role",
        capabilities=capabilities,
        model_params=ModelParams(temperature=0.5, max_output_tokens=300),
        system_instructions=f"You are {agent_id}.",
    )


def make_step(step_number: int, confidence: float = 0.8) -> StepTrace:
    return StepTrace(
        step_number=step_number,
        actor=StrategyPhase.REASONING,
        input="",
        output=f"step {step_number}",
        started_at=datetime.now(),
        confidence=confidence,
    )


