"""Base classes and types for generative completion providers.

Defines the abstract interface the generative corrector talks to and the
provider configuration shared by the concrete clients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class LLMProviderType(str, Enum):
    """Supported LLM provider types."""

    CLAUDE = "claude"
    OPENAI = "openai"
    GROQ = "groq"
    OLLAMA = "ollama"


DEFAULT_MODELS = {
    LLMProviderType.CLAUDE: "claude-sonnet-4-5-20250929",
    LLMProviderType.OPENAI: "gpt-4.1-mini",
    LLMProviderType.GROQ: "llama-3.3-70b-versatile",
    LLMProviderType.OLLAMA: "llama3.2",
}


@dataclass
class LLMConfig:
    """Configuration for LLM provider.

    Attributes:
        provider: Which LLM provider to use
        api_key: API key for the provider (or use env variable)
        model: Model name/ID to use
        base_url: Override for the provider's API endpoint
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature (0-1)
        timeout: Request timeout in seconds
        max_retries: Retries on rate limiting before giving up
    """

    provider: LLMProviderType = LLMProviderType.GROQ
    api_key: str | None = None
    model: str | None = None
    base_url: str | None = None
    max_tokens: int = 512
    temperature: float = 0.1
    timeout: float = 5.0
    max_retries: int = 2

    def __post_init__(self):
        """Set default models based on provider."""
        self.provider = LLMProviderType(self.provider)
        if self.model is None:
            self.model = DEFAULT_MODELS[self.provider]


@dataclass
class CompletionResponse:
    """Text returned by a provider for one prompt.

    Attributes:
        text: Raw completion text
        model: Model that produced it
        tokens_used: Total tokens consumed (0 if unknown)
    """

    text: str
    model: str = ""
    tokens_used: int = 0


class CompletionProvider(ABC):
    """Abstract base class for completion providers.

    Implementations handle provider-specific API calls and translate
    provider errors into GenerativeError subclasses.
    """

    def __init__(self, config: LLMConfig):
        """Initialize the provider.

        Args:
            config: LLM configuration
        """
        self.config = config

    @abstractmethod
    def complete(self, prompt: str, system_prompt: str | None = None) -> CompletionResponse:
        """Run a single prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions

        Returns:
            CompletionResponse with the raw text

        Raises:
            GenerativeError: If the call fails
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available (API key set, etc).

        Returns:
            True if provider can be used
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
