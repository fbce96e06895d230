"""
Generation Client

The single seam between the engine and the text generator.
Exposes simple Python types only - NO LangChain objects leak out.

DESIGN RULES:
- LangChain stays INSIDE this module
- Every call is bounded by an explicit timeout
- Provider failures are mapped onto the GenerationFailure taxonomy

BOUNDARY:
    API ❌
    Engine ❌
    Strategies / Topologies → GenerationClient (interface) ✅
    LangChainGenerationClient ← ONLY HERE
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai
from langchain_community.callbacks import get_openai_callback
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import AzureChatOpenAI

from app.core.config import settings
from orchestration.errors import (
    GenerationInvalidResponse,
    GenerationRateLimited,
    GenerationTimeout,
    GenerationTransportError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Text plus usage for one generator call."""
    text: str
    tokens_used: int = 0
    latency_ms: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


class GenerationClient(ABC):
    """
    Abstract generator.

    Implementations must raise a GenerationFailure subclass on any failure
    and never return partial text.
    """

    @abstractmethod
    async def generate(
        self,
        system_instructions: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> GenerationResult:
        raise NotImplementedError


class LangChainGenerationClient(GenerationClient):
    """Azure OpenAI chat deployment driven through LangChain."""

    def __init__(
        self,
        deployment: Optional[str] = None,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.deployment = deployment or settings.azure_openai_deployment_name
        self.endpoint = endpoint or settings.azure_openai_endpoint
        self.api_key = api_key or settings.azure_openai_api_key
        self.api_version = api_version or settings.azure_openai_api_version
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.generation_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.generation_max_retries

    def _get_llm(self, max_tokens: int, temperature: float) -> AzureChatOpenAI:
        """Get a configured AzureChatOpenAI instance for one call."""
        return AzureChatOpenAI(
            azure_deployment=self.deployment,
            openai_api_version=self.api_version,
            azure_endpoint=self.endpoint,
            api_key=self.api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout_seconds,
            max_retries=self.max_retries,
        )

    async def generate(
        self,
        system_instructions: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> GenerationResult:
        llm = self._get_llm(max_tokens, temperature)

        messages = []
        if system_instructions:
            messages.append(SystemMessage(content=system_instructions))
        messages.append(HumanMessage(content=user_prompt))

        start_time = time.time()
        try:
            with get_openai_callback() as cb:
                response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout_seconds)
                tokens_used = cb.total_tokens
        except asyncio.TimeoutError as e:
            raise GenerationTimeout(f"Generation exceeded {self.timeout_seconds}s") from e
        except openai.APITimeoutError as e:
            raise GenerationTimeout(str(e)) from e
        except openai.RateLimitError as e:
            raise GenerationRateLimited(str(e)) from e
        except (openai.APIConnectionError, openai.APIStatusError) as e:
            raise GenerationTransportError(str(e)) from e
        except Exception as e:
            logger.error(f"Unexpected generator failure: {e}")
            raise GenerationTransportError(str(e)) from e

        latency_ms = (time.time() - start_time) * 1000

        text = _content_text(response.content)
        if text is None:
            raise GenerationInvalidResponse(f"Non-text content: {type(response.content).__name__}")

        if not tokens_used:
            usage = getattr(response, "usage_metadata", None) or {}
            tokens_used = int(usage.get("total_tokens", 0))

        return GenerationResult(
            text=text,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            metadata={"model": self.deployment, "provider": "langchain_azure"},
        )


def _content_text(content: Any) -> Optional[str]:
    """Flatten chat content into plain text, or None when there is none."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        if parts:
            return "".join(parts)
    return None
