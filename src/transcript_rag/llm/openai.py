"""OpenAI-compatible completion provider.

Serves both OpenAI and Groq: Groq exposes an OpenAI-compatible chat
completions endpoint, so only the base URL, key variable and default model
differ.
"""

from __future__ import annotations

import os

from transcript_rag.config import GenerativeSettings
from transcript_rag.errors import (
    ConfigurationError,
    GenerativeError,
    RetryConfig,
    retry_with_backoff,
    wrap_external_error,
)
from transcript_rag.llm.base import (
    CompletionProvider,
    CompletionResponse,
    LLMConfig,
    LLMProviderType,
)
from transcript_rag.logging import get_logger

logger = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class OpenAILLM(CompletionProvider):
    """OpenAI (or Groq) chat completion provider.

    Requires OPENAI_API_KEY (GROQ_API_KEY for Groq) environment variable or
    api_key in config.
    """

    API_KEY_VARS = {
        LLMProviderType.OPENAI: "OPENAI_API_KEY",
        LLMProviderType.GROQ: "GROQ_API_KEY",
    }

    def __init__(self, config: LLMConfig | None = None):
        """Initialize OpenAI provider.

        Args:
            config: LLM configuration (OpenAI defaults if None)
        """
        if config is None:
            config = LLMConfig(provider=LLMProviderType.OPENAI)

        super().__init__(config)
        self._client = None

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        if self.config.provider == LLMProviderType.GROQ:
            return "Groq"
        return "OpenAI"

    @property
    def api_key_var(self) -> str:
        return self.API_KEY_VARS.get(self.config.provider, "OPENAI_API_KEY")

    @property
    def base_url(self) -> str | None:
        if self.config.base_url:
            return self.config.base_url
        if self.config.provider == LLMProviderType.GROQ:
            return GROQ_BASE_URL
        return None

    def _get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return self.config.api_key or os.environ.get(self.api_key_var)

    def is_available(self) -> bool:
        """Check if the API is usable.

        Returns:
            True if API key is set
        """
        return bool(self._get_api_key())

    def _get_client(self):
        """Get or create OpenAI client."""
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError:
                raise ImportError(
                    "openai package required for OpenAI and Groq providers. "
                    "Install with: pip install openai"
                )

            api_key = self._get_api_key()
            if not api_key:
                raise ConfigurationError(
                    f"{self.api_key_var} not set. Set environment variable or "
                    "provide api_key in LLMConfig."
                )

            # Retries are handled here, not by the SDK
            self._client = OpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=self.config.timeout,
                max_retries=0,
            )

        return self._client

    def complete(self, prompt: str, system_prompt: str | None = None) -> CompletionResponse:
        """Run a chat completion, retrying on rate limits.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions

        Returns:
            CompletionResponse with the raw text

        Raises:
            GenerativeError: If the call fails
        """
        retry = retry_with_backoff(RetryConfig(max_attempts=self.config.max_retries + 1))
        return retry(self._complete_once)(prompt, system_prompt)

    def _complete_once(self, prompt: str, system_prompt: str | None) -> CompletionResponse:
        client = self._get_client()

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = client.chat.completions.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=messages,
            )
        except Exception as e:
            raise wrap_external_error(e, self.provider_name, "chat completion") from e

        if not response.choices:
            raise GenerativeError(f"{self.provider_name} returned no choices")

        usage = response.usage
        return CompletionResponse(
            text=response.choices[0].message.content or "",
            model=response.model or self.config.model,
            tokens_used=usage.total_tokens if usage else 0,
        )


def llm_config_from_settings(settings: GenerativeSettings) -> LLMConfig:
    """Build a provider config from pipeline settings.

    Raises:
        ConfigurationError: If the provider name is unknown
    """
    try:
        provider = LLMProviderType(settings.provider.lower())
    except ValueError as e:
        raise ConfigurationError(
            f"Unsupported LLM provider: {settings.provider}",
            context={"supported": ", ".join(p.value for p in LLMProviderType)},
        ) from e

    return LLMConfig(
        provider=provider,
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        timeout=settings.timeout_seconds,
        max_retries=settings.max_retries,
    )


def get_llm_provider(config: LLMConfig | None = None) -> CompletionProvider:
    """Factory function to get the appropriate completion provider.

    Args:
        config: LLM configuration (Groq defaults if None)

    Returns:
        CompletionProvider instance based on config
    """
    if config is None:
        config = LLMConfig()

    if config.provider == LLMProviderType.CLAUDE:
        from transcript_rag.llm.claude import ClaudeLLM
        return ClaudeLLM(config)
    elif config.provider == LLMProviderType.OLLAMA:
        from transcript_rag.llm.ollama import OllamaLLM
        return OllamaLLM(config)
    elif config.provider in (LLMProviderType.OPENAI, LLMProviderType.GROQ):
        return OpenAILLM(config)
    else:
        raise ConfigurationError(f"Unsupported LLM provider: {config.provider}")
