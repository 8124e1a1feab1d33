"""Google Gemini provider implementation.

Secondary generation backend, used when the primary provider fails or is not
configured. JSON output is requested through the response MIME type.
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
    RateLimitError,
    validate_temperature,
)

logger = structlog.get_logger()


class GeminiProvider(BaseProvider):
    """Provider implementation for Google Gemini via google-generativeai."""

    provider_id = "gemini"
    display_name = "Google Gemini"
    default_model = "gemini-2.0-flash"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        super().__init__(api_key, model)
        self._genai = None

    def _get_genai(self):
        """Import and configure the SDK on first use."""
        if self._genai is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._genai = genai
        return self._genai

    @staticmethod
    def _split_messages(messages: list[ChatMessage]) -> tuple[str | None, list[dict[str, Any]]]:
        """Separate system instructions from the conversation turns."""
        system_parts = []
        contents = []
        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
                continue
            role = "user" if msg.role == "user" else "model"
            contents.append({"role": role, "parts": [msg.content]})
        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

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

        from google.api_core import exceptions as google_exceptions

        genai = self._get_genai()
        model_id = model or self.model
        system_instruction, contents = self._split_messages(messages)

        generation_config: dict[str, Any] = {"temperature": validate_temperature(temperature)}
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        generation_config.update(kwargs)

        logger.debug("Gemini chat request", model=model_id, message_count=len(contents))
        start_time = time.time()

        try:
            gemini_model = genai.GenerativeModel(model_id, system_instruction=system_instruction)
            response = await gemini_model.generate_content_async(
                contents,
                generation_config=generation_config,
            )
        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as e:
            raise AuthenticationError(f"Gemini rejected the API key: {e}") from e
        except google_exceptions.ResourceExhausted as e:
            raise RateLimitError(f"Gemini quota or rate limit exceeded: {e}") from e
        except google_exceptions.GoogleAPIError as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

        try:
            text = response.text
        except ValueError as e:
            # .text raises when the candidate was blocked and has no parts
            raise ContentFilterError(f"Gemini returned no content: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        usage = getattr(response, "usage_metadata", None)
        return ChatResponse(
            content=text or "",
            model=model_id,
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            latency_ms=round(latency_ms, 2),
        )
