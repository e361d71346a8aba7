"""Claude (Anthropic) completion provider."""

from __future__ import annotations

import os

from transcript_rag.errors import (
    ConfigurationError,
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


class ClaudeLLM(CompletionProvider):
    """Claude (Anthropic) completion provider.

    Requires ANTHROPIC_API_KEY environment variable or api_key in config.
    """

    def __init__(self, config: LLMConfig | None = None):
        """Initialize Claude provider.

        Args:
            config: LLM configuration
        """
        if config is None:
            config = LLMConfig(provider=LLMProviderType.CLAUDE)

        super().__init__(config)
        self._client = None

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "Claude (Anthropic)"

    def _get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        return self.config.api_key or os.environ.get("ANTHROPIC_API_KEY")

    def is_available(self) -> bool:
        """Check if Claude API is available.

        Returns:
            True if API key is set
        """
        return bool(self._get_api_key())

    def _get_client(self):
        """Get or create Anthropic client."""
        if self._client is None:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError(
                    "anthropic package required for Claude provider. "
                    "Install with: pip install anthropic"
                )

            api_key = self._get_api_key()
            if not api_key:
                raise ConfigurationError(
                    "ANTHROPIC_API_KEY not set. Set environment variable or "
                    "provide api_key in LLMConfig."
                )

            self._client = Anthropic(
                api_key=api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=0,
            )

        return self._client

    def complete(self, prompt: str, system_prompt: str | None = None) -> CompletionResponse:
        """Run a single message request, retrying on rate limits."""
        retry = retry_with_backoff(RetryConfig(max_attempts=self.config.max_retries + 1))
        return retry(self._complete_once)(prompt, system_prompt)

    def _complete_once(self, prompt: str, system_prompt: str | None) -> CompletionResponse:
        client = self._get_client()

        kwargs = {}
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[
                    {"role": "user", "content": prompt},
                ],
                **kwargs,
            )
        except Exception as e:
            raise wrap_external_error(e, self.provider_name, "messages") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = response.usage
        return CompletionResponse(
            text=text,
            model=response.model or self.config.model,
            tokens_used=(usage.input_tokens + usage.output_tokens) if usage else 0,
        )
