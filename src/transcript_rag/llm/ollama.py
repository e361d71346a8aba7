"""Ollama completion provider for local inference.

Talks to a local Ollama server over its HTTP chat API. Free, no API key.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any

from transcript_rag.errors import (
    GenerativeError,
    GenerativeTimeoutError,
    RetryConfig,
    retry_with_backoff,
)
from transcript_rag.llm.base import (
    CompletionProvider,
    CompletionResponse,
    LLMConfig,
    LLMProviderType,
)


class OllamaConnectionError(GenerativeError):
    """Cannot connect to Ollama server."""

    pass


class OllamaLLM(CompletionProvider):
    """Ollama provider for local inference.

    Requires Ollama to be installed and running:
    - Install: https://ollama.ai
    - Run: ollama serve
    - Pull a model: ollama pull llama3.2
    """

    # Default Ollama API endpoint
    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(self, config: LLMConfig | None = None, base_url: str | None = None):
        """Initialize Ollama provider.

        Args:
            config: LLM configuration
            base_url: Ollama API base URL (default: config.base_url or
                http://localhost:11434)
        """
        if config is None:
            config = LLMConfig(provider=LLMProviderType.OLLAMA)

        super().__init__(config)
        self.base_url = (base_url or config.base_url or self.DEFAULT_BASE_URL).rstrip("/")

    @property
    def provider_name(self) -> str:
        """Get the provider name."""
        return "Ollama (Local)"

    def is_available(self) -> bool:
        """Check if Ollama server is available.

        Returns:
            True if Ollama is running and responding
        """
        try:
            req = urllib.request.Request(f"{self.base_url}/api/tags", method="GET")
            with urllib.request.urlopen(req, timeout=2) as response:
                return response.status == 200
        except (urllib.error.URLError, TimeoutError, OSError):
            return False

    def get_available_models(self) -> list[str]:
        """Get list of models available in Ollama.

        Returns:
            List of model names installed locally
        """
        try:
            req = urllib.request.Request(f"{self.base_url}/api/tags", method="GET")
            with urllib.request.urlopen(req, timeout=5) as response:
                data = json.loads(response.read().decode("utf-8"))
                return [m["name"] for m in data.get("models", [])]
        except (urllib.error.URLError, TimeoutError, OSError, json.JSONDecodeError):
            return []

    def _make_request(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        """Make a request to the Ollama chat API.

        Args:
            messages: List of message dicts with role and content

        Returns:
            Response data from Ollama

        Raises:
            OllamaConnectionError: If the server cannot be reached
            GenerativeTimeoutError: If the request times out
            GenerativeError: If the server rejects the request
        """
        payload = {
            "model": self.config.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }

        req = urllib.request.Request(
            f"{self.base_url}/api/chat",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise GenerativeError(f"Ollama API error: {e.code} {e.reason}") from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise GenerativeTimeoutError(f"Timed out calling Ollama at {self.base_url}") from e
            raise OllamaConnectionError(
                f"Cannot connect to Ollama at {self.base_url}. "
                "Make sure Ollama is running: ollama serve"
            ) from e
        except TimeoutError as e:
            raise GenerativeTimeoutError(f"Timed out calling Ollama at {self.base_url}") from e
        except json.JSONDecodeError as e:
            raise GenerativeError(f"Invalid response from Ollama: {e}") from e

    def complete(self, prompt: str, system_prompt: str | None = None) -> CompletionResponse:
        """Run a chat request against the local server."""
        retry = retry_with_backoff(RetryConfig(max_attempts=self.config.max_retries + 1))
        return retry(self._complete_once)(prompt, system_prompt)

    def _complete_once(self, prompt: str, system_prompt: str | None) -> CompletionResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = self._make_request(messages)
        return CompletionResponse(
            text=data.get("message", {}).get("content", ""),
            model=data.get("model", self.config.model),
            tokens_used=data.get("prompt_eval_count", 0) + data.get("eval_count", 0),
        )
