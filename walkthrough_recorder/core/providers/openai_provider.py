"""OpenAI provider implementation.

Primary generation backend. Uses the official async SDK with JSON mode so
responses can be parsed as structured data.

Usage:
    provider = OpenAIProvider(api_key="sk-...")
    response = await provider.chat(
        messages=[ChatMessage.user("Hello!")],
        json_mode=True,
    )
"""

import time
from typing import Any

import structlog

from walkthrough_recorder.core.providers.base import (
    AuthenticationError,
    BaseProvider,
    ChatMessage,
    ChatResponse,
    ContentFilterError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
    validate_temperature,
)

logger = structlog.get_logger()


class OpenAIProvider(BaseProvider):
    """Provider implementation for the OpenAI chat completions API."""

    provider_id = "openai"
    display_name = "OpenAI"
    default_model = "gpt-4o"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 60.0,
    ):
        super().__init__(api_key, model)
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        """Get or create the async SDK client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs,
    ) -> ChatResponse:
        self._require_configured()

        import openai

        model_id = model or self.model
        payload: dict[str, Any] = {
            "model": model_id,
            "messages": [msg.to_dict() for msg in messages],
            "temperature": validate_temperature(temperature),
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        payload.update(kwargs)

        logger.debug("OpenAI chat request", model=model_id, message_count=len(messages))
        start_time = time.time()

        try:
            response = await self._get_client().chat.completions.create(**payload)
        except openai.AuthenticationError as e:
            raise AuthenticationError("Invalid OpenAI API key") from e
        except openai.RateLimitError as e:
            # OpenAI reports exhausted billing quota as a 429 too
            if "quota" in str(e).lower():
                raise QuotaExceededError(f"OpenAI quota exceeded: {e}") from e
            raise RateLimitError(f"OpenAI rate limit exceeded: {e}") from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI request failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentFilterError("OpenAI response blocked by content filter")

        usage = response.usage
        return ChatResponse(
            content=choice.message.content or "",
            model=model_id,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=round(latency_ms, 2),
        )
