"""Tests for settings loading and storage helpers."""

import json

import pytest

from transcript_rag.config import (
    RagSettings,
    RetrievalMode,
    load_settings,
    save_settings,
    settings_from_env,
)
from transcript_rag.errors import ConfigurationError
from transcript_rag.storage import (
    NotFoundError,
    StorageError,
    atomic_write,
    atomic_write_json,
    read_json,
)


class TestRagSettings:
    """Tests for default settings."""

    def test_defaults(self):
        """Test default values of each section."""
        settings = RagSettings()

        assert settings.phonetic.min_similarity == 0.5
        assert settings.phonetic.max_results == 10
        assert settings.extraction.min_frequency_for_general == 3
        assert settings.retrieval.mode == RetrievalMode.HYBRID
        assert settings.retrieval.semantic_weight == 0.6
        assert settings.retrieval.phonetic_weight == 0.4
        assert settings.correction.confidence_threshold == 0.7
        assert settings.correction.use_generative is False
        assert settings.generative.provider == "groq"
        assert settings.generative.timeout_seconds == 5.0

    def test_sections_independent(self):
        """Test each instance gets its own sections."""
        first = RagSettings()
        first.correction.confidence_threshold = 0.2

        assert RagSettings().correction.confidence_threshold == 0.7


class TestLoadSaveSettings:
    """Tests for settings files."""

    def test_round_trip(self, tmp_path):
        """Test saved settings load back."""
        settings = RagSettings()
        settings.retrieval.mode = RetrievalMode.PHONETIC
        settings.generative.model = "llama-3.1-8b-instant"
        path = tmp_path / "config" / "rag.json"

        assert save_settings(path, settings) == path
        loaded = load_settings(path)

        assert loaded == settings
        assert json.loads(path.read_text())["retrieval"]["mode"] == "phonetic"

    def test_partial_file(self, tmp_path):
        """Test missing keys keep their defaults."""
        path = tmp_path / "rag.json"
        path.write_text(json.dumps({"correction": {"confidence_threshold": 0.5}}))

        settings = load_settings(path)

        assert settings.correction.confidence_threshold == 0.5
        assert settings.correction.rule_based_threshold == 0.7

    def test_missing_file(self, tmp_path):
        """Test a missing file."""
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        """Test a file that is not JSON."""
        path = tmp_path / "rag.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_settings(path)

    def test_invalid_values(self, tmp_path):
        """Test out-of-range values."""
        path = tmp_path / "rag.json"
        path.write_text(json.dumps({"correction": {"confidence_threshold": 2}}))

        with pytest.raises(ConfigurationError, match="Invalid settings") as exc_info:
            load_settings(path)

        assert exc_info.value.context == {"path": str(path)}


class TestSettingsFromEnv:
    """Tests for environment overrides."""

    def test_overrides(self):
        """Test every recognized variable."""
        settings = settings_from_env(
            environ={
                "RAG_CONFIDENCE_THRESHOLD": "0.6",
                "RAG_SIMILARITY_THRESHOLD": "0.75",
                "RAG_RETRIEVAL_MODE": "Semantic",
                "RAG_USE_LLM": "yes",
                "RAG_LLM_PROVIDER": "Claude",
                "RAG_LLM_MODEL": "claude-haiku",
                "RAG_LLM_TIMEOUT": "2.5",
            }
        )

        assert settings.correction.confidence_threshold == 0.6
        assert settings.correction.rule_based_threshold == 0.75
        assert settings.retrieval.mode == RetrievalMode.SEMANTIC
        assert settings.correction.use_generative is True
        assert settings.generative.provider == "claude"
        assert settings.generative.model == "claude-haiku"
        assert settings.generative.timeout_seconds == 2.5

    def test_base_preserved(self):
        """Test unset variables keep the base values."""
        base = RagSettings()
        base.phonetic.max_results = 3

        settings = settings_from_env(base, environ={"RAG_USE_LLM": "0"})

        assert settings.phonetic.max_results == 3
        assert settings.correction.use_generative is False
        assert settings is not base

    def test_blank_values_ignored(self):
        """Test empty variables are skipped."""
        settings = settings_from_env(environ={"RAG_CONFIDENCE_THRESHOLD": "  "})

        assert settings.correction.confidence_threshold == 0.7

    def test_bad_number(self):
        """Test a non-numeric threshold."""
        with pytest.raises(ConfigurationError, match="Invalid value for RAG_CONFIDENCE_THRESHOLD"):
            settings_from_env(environ={"RAG_CONFIDENCE_THRESHOLD": "high"})

    def test_invalid_override(self):
        """Test values rejected by validation."""
        with pytest.raises(ConfigurationError, match="Invalid environment overrides"):
            settings_from_env(environ={"RAG_RETRIEVAL_MODE": "telepathic"})


class TestStorage:
    """Tests for atomic JSON storage helpers."""

    def test_atomic_write_creates_parents(self, tmp_path):
        """Test writing into a missing directory."""
        path = tmp_path / "a" / "b" / "out.txt"

        atomic_write(path, "héllo")

        assert path.read_text(encoding="utf-8") == "héllo"
        assert list(path.parent.iterdir()) == [path]

    def test_json_round_trip(self, tmp_path):
        """Test JSON helpers."""
        path = tmp_path / "data.json"

        atomic_write_json(path, {"terms": ["Kubernetes"]})

        assert read_json(path) == {"terms": ["Kubernetes"]}

    def test_read_missing(self, tmp_path):
        """Test reading a missing file."""
        with pytest.raises(NotFoundError):
            read_json(tmp_path / "missing.json")

    def test_read_invalid(self, tmp_path):
        """Test reading a corrupt file."""
        path = tmp_path / "bad.json"
        path.write_text("[1, 2")

        with pytest.raises(StorageError, match="Invalid JSON"):
            read_json(path)
