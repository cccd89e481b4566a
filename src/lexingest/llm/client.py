"""Async language-model clients.

The pipeline only needs "prompt in, text or typed failure out". Provider
errors are translated into ``ModelError`` subclasses here so callers never
see SDK exceptions.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

import structlog

from lexingest.errors import ExtractionTimeout, MalformedModelResponse, ModelRefused, ModelUnavailable

if TYPE_CHECKING:
    from anthropic import AsyncAnthropic

logger = structlog.get_logger(__name__)


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    model: str = "unknown"

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """Send a completion request to the LLM.

        Args:
            system_prompt: The system prompt defining the role (may be empty)
            user_message: The user message with input data
            temperature: Sampling temperature (0.0 for deterministic)
            max_tokens: Upper bound on generated tokens

        Returns:
            The raw text response from the LLM

        Raises:
            ModelRefused: The model declined to answer
            ModelUnavailable: The provider call itself failed
            MalformedModelResponse: The response carried no text
        """
        ...


class AnthropicClient(LLMClient):
    """Anthropic Claude client implementation."""

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        model: str = "claude-sonnet-4-5-20250929",
    ):
        if client is None:
            from anthropic import AsyncAnthropic
            client = AsyncAnthropic()
        self._client = client
        self.model = model

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """Send a completion request to Claude."""
        import anthropic

        kwargs: dict[str, Any] = dict(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": user_message}],
        )
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.warning("llm.call_failed", model=self.model, error=str(e))
            raise ModelUnavailable(f"Model call failed: {e}") from e

        if getattr(response, "stop_reason", None) == "refusal":
            raise ModelRefused(f"{self.model} refused the request")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                "llm.completed",
                model=self.model,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
            )

        if not response.content or getattr(response.content[0], "type", None) != "text":
            raise MalformedModelResponse("Unexpected AI response type")
        return response.content[0].text


Response = str | BaseException | Callable[[str, str], str]


class MockLLMClient(LLMClient):
    """Mock client for testing.

    ``responses`` maps a substring of the system prompt or user message to a
    canned answer: a string, an exception to raise, or a callable taking
    ``(system_prompt, user_message)``. ``queue`` answers are consumed in
    order before ``responses`` is consulted.
    """

    model = "mock-model"

    def __init__(
        self,
        responses: dict[str, Response] | None = None,
        queue: list[Response] | None = None,
        delay: float = 0.0,
        default: str = "{}",
    ):
        self._responses = responses or {}
        self._queue = list(queue or [])
        self._delay = delay
        self._default = default
        self.call_history: list[tuple[str, str]] = []

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        self.call_history.append((system_prompt, user_message))
        if self._delay:
            await asyncio.sleep(self._delay)

        if self._queue:
            return self._resolve(self._queue.pop(0), system_prompt, user_message)
        for key, response in self._responses.items():
            if key in system_prompt or key in user_message:
                return self._resolve(response, system_prompt, user_message)
        return self._default

    @staticmethod
    def _resolve(response: Response, system_prompt: str, user_message: str) -> str:
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(system_prompt, user_message)
        return response


async def complete_with_deadline(
    client: LLMClient,
    *,
    system_prompt: str,
    user_message: str,
    timeout: float,
    temperature: float = 0.0,
    max_tokens: int = 4096,
) -> str:
    """Race a model call against ``timeout`` seconds.

    On expiry the caller stops waiting and the pending call is discarded;
    the provider may still finish the computation.
    """
    try:
        return await asyncio.wait_for(
            client.complete(
                system_prompt=system_prompt,
                user_message=user_message,
                temperature=temperature,
                max_tokens=max_tokens,
            ),
            timeout=timeout,
        )
    except TimeoutError as e:
        logger.warning("llm.deadline_exceeded", model=client.model, timeout_s=timeout)
        raise ExtractionTimeout(timeout) from e
