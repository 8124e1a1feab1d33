"""Provider abstraction layer for AI generation providers.

Example usage:
    ```python
    from walkthrough_recorder.core.providers import OpenAIProvider, ChatMessage

    provider = OpenAIProvider(api_key="sk-...")
    response = await provider.chat(
        [ChatMessage.system("Respond with JSON."), ChatMessage.user("Hello!")],
        json_mode=True,
    )
    print(response.content)
    ```

Available Providers:
- OpenAIProvider: OpenAI chat completions (primary)
- GeminiProvider: Google Gemini (secondary)

Configuration:
    - OPENAI_API_KEY / OPENAI_MODEL
    - GEMINI_API_KEY / GEMINI_MODEL
"""

from walkthrough_recorder.core.providers.base import (
    AuthenticationError,
    BaseProvider,
    ChatMessage,
    ChatResponse,
    ContentFilterError,
    ProviderError,
    ProviderNotConfiguredError,
    QuotaExceededError,
    RateLimitError,
    mask_api_key,
    validate_temperature,
)
from walkthrough_recorder.core.providers.gemini_provider import GeminiProvider
from walkthrough_recorder.core.providers.openai_provider import OpenAIProvider

__all__ = [
    # Base
    "BaseProvider",
    "ChatMessage",
    "ChatResponse",
    "mask_api_key",
    "validate_temperature",
    # Errors
    "ProviderError",
    "ProviderNotConfiguredError",
    "AuthenticationError",
    "RateLimitError",
    "QuotaExceededError",
    "ContentFilterError",
    # Providers
    "OpenAIProvider",
    "GeminiProvider",
]
