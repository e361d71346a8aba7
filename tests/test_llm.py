"""Tests for LLM integration."""

import json
import urllib.error
from unittest.mock import MagicMock, Mock, patch

import pytest

from transcript_rag.config import GenerativeSettings
from transcript_rag.errors import (
    ConfigurationError,
    GenerativeError,
    GenerativeTimeoutError,
    RateLimitError,
)
from transcript_rag.llm.base import LLMConfig, LLMProviderType
from transcript_rag.llm.claude import ClaudeLLM
from transcript_rag.llm.ollama import OllamaConnectionError, OllamaLLM
from transcript_rag.llm.openai import (
    GROQ_BASE_URL,
    OpenAILLM,
    get_llm_provider,
    llm_config_from_settings,
)
from transcript_rag.llm.prompts import (
    CORRECTION_SYSTEM_PROMPT,
    CorrectionPromptBuilder,
)
from transcript_rag.models.correction import CorrectionCandidate, LowConfidenceWord
from transcript_rag.models.terms import ReferenceTerm, TermCategory


class TestLLMConfig:
    """Tests for LLMConfig class."""

    def test_default_config(self):
        """Test default configuration values."""
        config = LLMConfig()

        assert config.provider == LLMProviderType.GROQ
        assert config.model == "llama-3.3-70b-versatile"
        assert config.max_tokens == 512
        assert config.temperature == 0.1
        assert config.timeout == 5.0

    def test_provider_default_models(self):
        """Test that each provider gets its default model."""
        assert LLMConfig(provider=LLMProviderType.OPENAI).model == "gpt-4.1-mini"
        assert LLMConfig(provider=LLMProviderType.CLAUDE).model == "claude-sonnet-4-5-20250929"
        assert LLMConfig(provider=LLMProviderType.OLLAMA).model == "llama3.2"

    def test_provider_from_string(self):
        """Test that provider names are coerced to the enum."""
        config = LLMConfig(provider="ollama")

        assert config.provider == LLMProviderType.OLLAMA

    def test_custom_model(self):
        """Test setting a custom model."""
        config = LLMConfig(provider=LLMProviderType.CLAUDE, model="claude-3-haiku-20240307")

        assert config.model == "claude-3-haiku-20240307"

    def test_from_settings(self):
        """Test building a config from pipeline settings."""
        settings = GenerativeSettings(provider="OpenAI", timeout_seconds=3.0, max_retries=0)

        config = llm_config_from_settings(settings)

        assert config.provider == LLMProviderType.OPENAI
        assert config.model == "gpt-4.1-mini"
        assert config.timeout == 3.0
        assert config.max_retries == 0

    def test_from_settings_unknown_provider(self):
        """Test that unknown providers are rejected."""
        with pytest.raises(ConfigurationError, match="Unsupported LLM provider"):
            llm_config_from_settings(GenerativeSettings(provider="watson"))


class TestCorrectionPromptBuilder:
    """Tests for CorrectionPromptBuilder class."""

    def make_candidate(self, term: str, context: str) -> CorrectionCandidate:
        ref = ReferenceTerm(
            term=term, normalized_term=term.lower(), context=context,
            category=TermCategory.TECHNICAL,
        )
        return CorrectionCandidate(term=ref)

    def test_default_values(self):
        """Test default builder values."""
        builder = CorrectionPromptBuilder()

        assert builder.context_chars == 100
        assert builder.max_terms == 20

    def test_system_prompt(self):
        """Test system prompt."""
        assert CorrectionPromptBuilder().build_system_prompt() == CORRECTION_SYSTEM_PROMPT

    def test_correction_prompt(self):
        """Test the prompt lists vocabulary, transcript and uncertain words."""
        builder = CorrectionPromptBuilder(context_chars=10)
        prompt = builder.build_correction_prompt(
            "we use cooper netties",
            [LowConfidenceWord(word="cooper", confidence=0.42, position=2)],
            [self.make_candidate("Kubernetes", "Kubernetes schedules containers.")],
        )

        assert '- "Kubernetes" (technical): Kubernetes...' in prompt
        assert '"we use cooper netties"' in prompt
        assert '"cooper" (confidence: 42%)' in prompt
        assert '"correctedTranscript"' in prompt

    def test_term_cap(self):
        """Test only max_terms candidates are listed."""
        builder = CorrectionPromptBuilder(max_terms=1)
        prompt = builder.build_correction_prompt(
            "x",
            [],
            [self.make_candidate("Alpha", ""), self.make_candidate("Beta", "")],
        )

        assert '"Alpha"' in prompt
        assert '"Beta"' not in prompt
        assert "(none reported)" in prompt


class TestOpenAILLM:
    """Tests for OpenAILLM class."""

    def test_provider_name(self):
        """Test provider name for OpenAI and Groq."""
        assert OpenAILLM().provider_name == "OpenAI"
        assert OpenAILLM(LLMConfig(provider=LLMProviderType.GROQ)).provider_name == "Groq"

    def test_base_url(self):
        """Test Groq uses its OpenAI-compatible endpoint."""
        assert OpenAILLM().base_url is None
        assert OpenAILLM(LLMConfig(provider=LLMProviderType.GROQ)).base_url == GROQ_BASE_URL
        custom = OpenAILLM(LLMConfig(provider=LLMProviderType.GROQ, base_url="http://proxy"))
        assert custom.base_url == "http://proxy"

    def test_is_available(self):
        """Test availability follows the key variable of the provider."""
        groq = OpenAILLM(LLMConfig(provider=LLMProviderType.GROQ))

        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}, clear=True):
            assert OpenAILLM().is_available()
            assert not groq.is_available()

        with patch.dict("os.environ", {"GROQ_API_KEY": "gsk-test"}, clear=True):
            assert groq.is_available()

    def test_missing_key(self):
        """Test that a missing key is a configuration error."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigurationError, match="OPENAI_API_KEY not set"):
                OpenAILLM().complete("hi")

    @patch("transcript_rag.llm.openai.OpenAILLM._get_client")
    def test_complete_success(self, mock_get_client):
        """Test a chat completion."""
        mock_response = Mock()
        mock_response.choices = [Mock(message=Mock(content='{"corrections": []}'))]
        mock_response.model = "gpt-4.1-mini"
        mock_response.usage = Mock(total_tokens=42)

        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = mock_response
        mock_get_client.return_value = mock_client

        response = OpenAILLM(LLMConfig(provider=LLMProviderType.OPENAI, api_key="k")).complete(
            "prompt", "system"
        )

        assert response.text == '{"corrections": []}'
        assert response.tokens_used == 42
        messages = mock_client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "prompt"},
        ]

    @patch("transcript_rag.llm.openai.OpenAILLM._get_client")
    def test_no_choices(self, mock_get_client):
        """Test an empty answer is a generative error."""
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = Mock(choices=[])
        mock_get_client.return_value = mock_client

        with pytest.raises(GenerativeError, match="returned no choices"):
            OpenAILLM(LLMConfig(provider=LLMProviderType.OPENAI, api_key="k")).complete("x")

    @patch("transcript_rag.errors.time.sleep")
    @patch("transcript_rag.llm.openai.OpenAILLM._get_client")
    def test_rate_limit_retried(self, mock_get_client, mock_sleep):
        """Test rate limits are retried up to max_retries times."""
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = Exception("Error code: 429 - rate limit")
        mock_get_client.return_value = mock_client
        llm = OpenAILLM(LLMConfig(provider=LLMProviderType.OPENAI, api_key="k", max_retries=2))

        with pytest.raises(RateLimitError):
            llm.complete("x")

        assert mock_client.chat.completions.create.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("transcript_rag.llm.openai.OpenAILLM._get_client")
    def test_timeout_not_retried(self, mock_get_client):
        """Test SDK timeouts become timeout errors without retrying."""
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = Exception("Request timed out.")
        mock_get_client.return_value = mock_client

        with pytest.raises(GenerativeTimeoutError):
            OpenAILLM(LLMConfig(provider=LLMProviderType.OPENAI, api_key="k")).complete("x")

        assert mock_client.chat.completions.create.call_count == 1


class TestClaudeLLM:
    """Tests for ClaudeLLM class."""

    def test_provider_name(self):
        """Test provider name."""
        assert ClaudeLLM().provider_name == "Claude (Anthropic)"

    def test_is_available_no_key(self):
        """Test availability check without API key."""
        with patch.dict("os.environ", {}, clear=True):
            llm = ClaudeLLM(LLMConfig(provider=LLMProviderType.CLAUDE, api_key=None))
            assert not llm.is_available()

    def test_is_available_with_config_key(self):
        """Test availability with API key in config."""
        llm = ClaudeLLM(LLMConfig(provider=LLMProviderType.CLAUDE, api_key="test-key"))

        assert llm.is_available()

    @patch("transcript_rag.llm.claude.ClaudeLLM._get_client")
    def test_complete_success(self, mock_get_client):
        """Test a messages request."""
        mock_response = Mock()
        mock_response.content = [
            Mock(type="text", text='{"correctedTranscript": '),
            Mock(type="tool_use", text="ignored"),
            Mock(type="text", text='"x"}'),
        ]
        mock_response.model = "claude-sonnet-4-5-20250929"
        mock_response.usage = Mock(input_tokens=100, output_tokens=20)

        mock_client = MagicMock()
        mock_client.messages.create.return_value = mock_response
        mock_get_client.return_value = mock_client

        llm = ClaudeLLM(LLMConfig(provider=LLMProviderType.CLAUDE, api_key="k"))
        response = llm.complete("prompt", "system")

        assert response.text == '{"correctedTranscript": "x"}'
        assert response.tokens_used == 120
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @patch("transcript_rag.llm.claude.ClaudeLLM._get_client")
    def test_error_wrapped(self, mock_get_client):
        """Test SDK errors become generative errors."""
        mock_client = MagicMock()
        mock_client.messages.create.side_effect = Exception("overloaded")
        mock_get_client.return_value = mock_client

        llm = ClaudeLLM(LLMConfig(provider=LLMProviderType.CLAUDE, api_key="k"))
        with pytest.raises(GenerativeError, match="Claude"):
            llm.complete("x")


class FakeHTTPResponse:
    """Minimal urlopen response context manager."""

    def __init__(self, data: dict, status: int = 200):
        self.status = status
        self._body = json.dumps(data).encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False


class TestOllamaLLM:
    """Tests for OllamaLLM class."""

    def test_provider_name_and_url(self):
        """Test provider name and base URL resolution."""
        llm = OllamaLLM(base_url="http://gpu-box:11434/")

        assert llm.provider_name == "Ollama (Local)"
        assert llm.base_url == "http://gpu-box:11434"
        assert OllamaLLM().base_url == OllamaLLM.DEFAULT_BASE_URL

    @patch("urllib.request.urlopen")
    def test_available_models(self, mock_urlopen):
        """Test model listing."""
        mock_urlopen.return_value = FakeHTTPResponse({"models": [{"name": "llama3.2"}]})

        llm = OllamaLLM()

        assert llm.is_available()
        assert llm.get_available_models() == ["llama3.2"]

    @patch("urllib.request.urlopen")
    def test_unavailable(self, mock_urlopen):
        """Test a server that is not running."""
        mock_urlopen.side_effect = urllib.error.URLError("refused")

        llm = OllamaLLM()

        assert not llm.is_available()
        assert llm.get_available_models() == []

    @patch("urllib.request.urlopen")
    def test_complete_success(self, mock_urlopen):
        """Test a chat request."""
        mock_urlopen.return_value = FakeHTTPResponse({
            "model": "llama3.2",
            "message": {"role": "assistant", "content": "{}"},
            "prompt_eval_count": 30,
            "eval_count": 5,
        })

        response = OllamaLLM().complete("prompt", "system")

        assert response.text == "{}"
        assert response.tokens_used == 35
        request = mock_urlopen.call_args.args[0]
        body = json.loads(request.data)
        assert request.full_url == "http://localhost:11434/api/chat"
        assert body["stream"] is False
        assert body["messages"][0] == {"role": "system", "content": "system"}

    @patch("urllib.request.urlopen")
    def test_connection_error(self, mock_urlopen):
        """Test an unreachable server."""
        mock_urlopen.side_effect = urllib.error.URLError("refused")

        with pytest.raises(OllamaConnectionError, match="ollama serve"):
            OllamaLLM().complete("x")

    @patch("urllib.request.urlopen")
    def test_timeout(self, mock_urlopen):
        """Test a request that times out."""
        mock_urlopen.side_effect = urllib.error.URLError(TimeoutError("timed out"))

        with pytest.raises(GenerativeTimeoutError):
            OllamaLLM().complete("x")


class TestGetLLMProvider:
    """Tests for get_llm_provider function."""

    def test_get_claude_provider(self):
        """Test getting Claude provider."""
        provider = get_llm_provider(LLMConfig(provider=LLMProviderType.CLAUDE))

        assert isinstance(provider, ClaudeLLM)

    def test_get_openai_provider(self):
        """Test getting OpenAI provider."""
        provider = get_llm_provider(LLMConfig(provider=LLMProviderType.OPENAI))

        assert isinstance(provider, OpenAILLM)

    def test_get_ollama_provider(self):
        """Test getting Ollama provider."""
        provider = get_llm_provider(LLMConfig(provider=LLMProviderType.OLLAMA))

        assert isinstance(provider, OllamaLLM)

    def test_default_provider(self):
        """Test default provider is Groq."""
        provider = get_llm_provider()

        assert isinstance(provider, OpenAILLM)
        assert provider.provider_name == "Groq"
