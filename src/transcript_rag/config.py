"""Configuration loading and management for transcript-rag.

Settings are grouped per pipeline concern and composed into ``RagSettings``.
They can be loaded from a JSON file and overridden from the environment.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from transcript_rag.errors import ConfigurationError
from transcript_rag.storage import NotFoundError, StorageError, read_json, save_model


class RetrievalMode(str, Enum):
    """How candidate terms are gathered for a request."""

    PHONETIC = "phonetic"
    HYBRID = "hybrid"
    SEMANTIC = "semantic"


class PhoneticSettings(BaseModel):
    """Sound-alike matching settings."""

    # Minimum similarity for a term to count as a match
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    max_results: int = Field(default=10, ge=1)
    # Bonus added to exact (1.0) matches, capped at score_ceiling
    exact_match_boost: float = Field(default=0.2, ge=0.0)
    score_ceiling: float = Field(default=1.0, ge=1.0, le=1.2)
    # Raw-query match at or above this skips compound/re-split expansion
    high_confidence_cutoff: float = Field(default=0.8, ge=0.0, le=1.0)


class ExtractionSettings(BaseModel):
    """Term extraction settings."""

    min_word_length: int = Field(default=2, ge=1)
    # Plain words are kept only when seen at least this often
    min_frequency_for_general: int = Field(default=3, ge=1)
    max_context_sentences: int = Field(default=2, ge=1)
    extract_acronyms: bool = True
    extract_technical_terms: bool = True
    extract_phrases: bool = True
    max_phrase_length: int = Field(default=4, ge=2)
    max_phrases: int = Field(default=200, ge=0)


class RetrievalSettings(BaseModel):
    """Candidate retrieval settings."""

    mode: RetrievalMode = RetrievalMode.HYBRID
    max_queries: int = Field(default=5, ge=1)
    max_terms_to_retrieve: int = Field(default=10, ge=1)
    retrieval_min_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    hybrid_min_score: float = Field(default=0.0, ge=0.0)
    semantic_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    phonetic_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    # Upper bound on concurrent calls to the semantic search collaborator
    max_concurrent_searches: int = Field(default=4, ge=1)


class CorrectionSettings(BaseModel):
    """Correction pipeline settings."""

    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    rule_based_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    min_low_confidence_words: int = Field(default=1, ge=1)
    use_generative: bool = False
    # Fixed confidence attached to generative corrections
    generative_confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class GenerativeSettings(BaseModel):
    """Generative completion provider settings."""

    provider: str = "groq"  # "claude", "openai", "groq", or "ollama"
    model: str | None = None  # None = use provider default
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = Field(default=512, ge=1)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=5.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)


class RagSettings(BaseModel):
    """Top-level settings for the correction pipeline."""

    phonetic: PhoneticSettings = Field(default_factory=PhoneticSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    correction: CorrectionSettings = Field(default_factory=CorrectionSettings)
    generative: GenerativeSettings = Field(default_factory=GenerativeSettings)


def load_settings(path: Path) -> RagSettings:
    """Load settings from a JSON file.

    Args:
        path: Path to the settings file

    Returns:
        RagSettings with file values over defaults

    Raises:
        FileNotFoundError: If the settings file doesn't exist
        ConfigurationError: If the file is not valid settings JSON
    """
    try:
        data = read_json(path)
    except NotFoundError as e:
        raise FileNotFoundError(f"Settings file not found: {path}") from e
    except StorageError as e:
        raise ConfigurationError(str(e), context={"path": str(path)}) from e

    try:
        return RagSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid settings in {path}: {e.error_count()} error(s)",
            context={"path": str(path)},
        ) from e


def save_settings(path: Path, settings: RagSettings) -> Path:
    """Save settings to a JSON file with atomic write.

    Returns:
        Path to the saved settings file
    """
    save_model(path, settings)
    return path


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env(
    base: RagSettings | None = None,
    environ: Mapping[str, str] | None = None,
) -> RagSettings:
    """Apply environment variable overrides to settings.

    Recognized variables:
        RAG_CONFIDENCE_THRESHOLD, RAG_SIMILARITY_THRESHOLD, RAG_RETRIEVAL_MODE,
        RAG_USE_LLM, RAG_LLM_PROVIDER, RAG_LLM_MODEL, RAG_LLM_TIMEOUT

    Args:
        base: Settings to start from (defaults if None)
        environ: Environment mapping (os.environ if None)

    Returns:
        New RagSettings with overrides applied

    Raises:
        ConfigurationError: If an override value is invalid
    """
    env = os.environ if environ is None else environ
    data = (base or RagSettings()).model_dump()

    overrides = {
        "RAG_CONFIDENCE_THRESHOLD": ("correction", "confidence_threshold", float),
        "RAG_SIMILARITY_THRESHOLD": ("correction", "rule_based_threshold", float),
        "RAG_RETRIEVAL_MODE": ("retrieval", "mode", str.lower),
        "RAG_USE_LLM": ("correction", "use_generative", _parse_bool),
        "RAG_LLM_PROVIDER": ("generative", "provider", str.lower),
        "RAG_LLM_MODEL": ("generative", "model", str),
        "RAG_LLM_TIMEOUT": ("generative", "timeout_seconds", float),
    }

    for var, (section, key, convert) in overrides.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            data[section][key] = convert(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e

    try:
        return RagSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid environment overrides: {e.error_count()} error(s)") from e
