"""
LLM Client Infrastructure
==========================

Chat-completion clients for the support assistant.

Mistral exposes an OpenAI-compatible API, so the OpenAI SDK is used with
a custom base URL.
"""

import time
from typing import List, Optional
from abc import ABC, abstractmethod

from openai import AsyncOpenAI

from quixdesk.config import settings
from quixdesk.core import LLMException, ConfigurationException
from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """Interface for LLM chat completion."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 100,
        top_p: float = 1.0
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release underlying resources."""


class MistralLLMClient(ILLMClient):
    """
    Mistral client over the OpenAI-compatible endpoint.

    Base URL: https://api.mistral.ai/v1
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self._api_key = api_key or settings.mistral_api_key
        if not self._api_key:
            raise ConfigurationException("Mistral API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or settings.mistral_base_url,
            timeout=settings.http_timeout_seconds
        )
        self._model = model or settings.assistant_model

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 100,
        top_p: float = 1.0
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Raises:
            LLMException: If the API call fails or returns no choices
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                top_p=top_p
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if not response.choices:
            raise LLMException("Chat completion returned no choices")

        usage = response.usage
        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )

        logger.info(
            "LLM completion",
            extra={
                "model": self._model,
                "tokens_used": result.total_tokens,
                "latency_ms": latency_ms
            }
        )
        return result

    async def close(self) -> None:
        await self._client.close()


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for tests and offline development.

    Returns predictable responses without calling external APIs.
    """

    def __init__(self, reply: Optional[str] = None):
        self._reply = reply if reply is not None else (
            "You can track the status of your ticket from the My Tickets page. "
            "Support will update it as soon as an agent responds."
        )
        self.calls: List[List[dict]] = []

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 100,
        top_p: float = 1.0
    ) -> ChatCompletionResult:
        self.calls.append(messages)
        return ChatCompletionResult(
            content=self._reply,
            model="mock-model",
            prompt_tokens=sum(len(str(m.get("content", "")).split()) for m in messages),
            completion_tokens=len(self._reply.split()),
            latency_ms=0
        )


def build_llm_client() -> Optional[ILLMClient]:
    """LLM client per settings; None when no provider is configured."""
    if settings.mock_llm:
        return MockLLMClient()
    if not settings.mistral_api_key:
        logger.warning("Mistral API key not set - assistant will answer with the fallback reply")
        return None
    return MistralLLMClient()
