"""Base provider abstraction layer for AI generation providers.

This module defines the abstract base class and data structures shared by
the providers that back walkthrough script and step generation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ChatMessage:
    """A message in a chat conversation."""
    role: str  # "user", "assistant", "system"
    content: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to provider-agnostic dictionary format."""
        return {"role": self.role, "content": self.content}

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        """Create a user message."""
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        """Create an assistant message."""
        return cls(role="assistant", content=content)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        """Create a system message."""
        return cls(role="system", content=content)


@dataclass
class ChatResponse:
    """Response from a chat completion request."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str = "stop"
    latency_ms: float | None = None

    @property
    def total_tokens(self) -> int:
        """Total tokens used in the request/response."""
        return self.input_tokens + self.output_tokens


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class ProviderNotConfiguredError(ProviderError):
    """Raised when a provider is used without credentials."""
    pass


class AuthenticationError(ProviderError):
    """Raised when API key is invalid or missing."""
    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class QuotaExceededError(ProviderError):
    """Raised when usage quota is exceeded."""
    pass


class ContentFilterError(ProviderError):
    """Raised when content is blocked by safety filters."""
    pass


def validate_temperature(temperature: float, min_temp: float = 0.0, max_temp: float = 2.0) -> float:
    """Clamp temperature to the valid range."""
    if temperature < min_temp:
        return min_temp
    if temperature > max_temp:
        return max_temp
    return temperature


def mask_api_key(api_key: str | None) -> str:
    """Mask an API key for safe logging/display.

    Returns:
        Masked string showing only first 4 and last 4 characters
    """
    if not api_key:
        return "<not set>"
    if len(api_key) <= 12:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


class BaseProvider(ABC):
    """Abstract base class for AI generation providers.

    Subclasses wrap one vendor SDK and translate its failures into the
    ProviderError hierarchy.

    Example usage:
        ```python
        provider = OpenAIProvider(api_key="sk-...")

        response = await provider.chat(
            messages=[
                ChatMessage.system("Always respond with valid JSON."),
                ChatMessage.user("Describe the login flow."),
            ],
            json_mode=True,
        )
        print(response.content)
        ```
    """

    # Provider metadata - subclasses must define these
    provider_id: str
    display_name: str
    default_model: str

    def __init__(self, api_key: str | None = None, model: str | None = None):
        """Initialize the provider.

        Args:
            api_key: API key for authentication
            model: Model to use when a request does not name one
        """
        self.api_key = api_key
        self.model = model or self.default_model

    @property
    def is_configured(self) -> bool:
        """Whether the provider has credentials to make requests."""
        return bool(self.api_key)

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs
    ) -> ChatResponse:
        """Send a chat completion request.

        Args:
            messages: List of chat messages forming the conversation
            model: Model ID to use (defaults to the provider's model)
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate (None = model default)
            json_mode: Ask the provider for a JSON response body
            **kwargs: Provider-specific additional arguments

        Returns:
            ChatResponse with generated content and metadata

        Raises:
            ProviderNotConfiguredError: If no API key is set
            AuthenticationError: If API key is invalid
            RateLimitError: If rate limit exceeded
            ProviderError: For any other provider failure
        """
        pass

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError(f"{self.display_name} API key not configured")

    def __repr__(self) -> str:
        """String representation of the provider.

        Note: API key is masked for security - never expose full keys in logs.
        """
        return (
            f"<{self.__class__.__name__}("
            f"provider_id='{self.provider_id}', "
            f"model='{self.model}', "
            f"api_key={mask_api_key(self.api_key)})>"
        )
