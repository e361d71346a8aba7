"""Correction request/response models for transcript-rag.

Covers the inbound request (transcript plus per-word recognizer
confidences), the per-request candidate and correction records, and the
terminal result returned to callers.
"""

from __future__ import annotations

from enum import Enum
from numbers import Real
from typing import Any, Mapping

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from transcript_rag.errors import ValidationError
from transcript_rag.models.terms import PayloadModel, ReferenceTerm

# Confidence given to every word when a request carries no word confidences
SIMPLE_MODE_CONFIDENCE = 0.5
# Synthetic per-word duration (seconds) when timings are missing
DEFAULT_WORD_DURATION = 0.5


class MatchType(str, Enum):
    """How a candidate or correction was matched."""

    PHONETIC = "phonetic"
    SEMANTIC = "semantic"
    EXACT = "exact"
    LLM = "llm"


class WordConfidence(PayloadModel):
    """A recognized word with its confidence and timing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    word: str
    confidence: float = Field(ge=0.0, le=1.0)
    start: float = 0.0  # Start time in seconds
    end: float = 0.0  # End time in seconds


class LowConfidenceWord(PayloadModel):
    """A word whose confidence fell below the request threshold."""

    word: str
    confidence: float
    position: int  # Zero-based index in the word confidence list
    start: float = 0.0
    end: float = 0.0


class CorrectionCandidate(PayloadModel):
    """A corpus term proposed as a replacement for a mis-heard span."""

    term: ReferenceTerm
    semantic_score: float = 0.0
    phonetic_score: float = 0.0
    combined_score: float = 0.0
    match_type: MatchType = MatchType.PHONETIC


class CorrectionDetail(PayloadModel):
    """One substitution applied to a transcript."""

    original: str
    corrected: str
    reason: str = ""
    confidence: float = 0.0
    matched_term: ReferenceTerm | None = None
    match_type: MatchType = MatchType.PHONETIC
    position: int = -1  # Word position in the transcript, -1 if unknown


class CorrectionRequest(PayloadModel):
    """A validated correction request."""

    transcript: str
    word_confidences: list[WordConfidence] = Field(default_factory=list)
    session_id: str
    language: str = "en"
    is_final: bool = True
    confidence_threshold: float | None = None


class CorrectionResult(PayloadModel):
    """Terminal result of one correction request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    original_transcript: str
    corrected_transcript: str
    was_modified: bool = False
    corrections: list[CorrectionDetail] = Field(default_factory=list)
    terms_retrieved: int = 0
    processing_time_ms: float = 0.0
    session_id: str = ""
    warnings: list[str] | None = None

    @classmethod
    def unmodified(
        cls,
        transcript: str,
        session_id: str,
        processing_time_ms: float = 0.0,
        terms_retrieved: int = 0,
        warnings: list[str] | None = None,
    ) -> "CorrectionResult":
        """Build a result that returns the transcript untouched."""
        return cls(
            original_transcript=transcript,
            corrected_transcript=transcript,
            was_modified=False,
            corrections=[],
            terms_retrieved=terms_retrieved,
            processing_time_ms=processing_time_ms,
            session_id=session_id,
            warnings=warnings or None,
        )

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if payload.get("warnings") is None:
            payload.pop("warnings", None)
        return payload


_MISSING = object()


def _pick(payload: Mapping[str, Any], camel: str, snake: str) -> Any:
    if camel in payload:
        return payload[camel]
    if snake in payload:
        return payload[snake]
    return _MISSING


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _parse_word_confidences(raw: Any) -> list[WordConfidence]:
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("wordConfidences must be a list")

    words = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise ValidationError("wordConfidences entries must be objects", context={"index": i})

        word = entry.get("word")
        if not isinstance(word, str):
            raise ValidationError("wordConfidences word must be a string", context={"index": i})

        confidence = entry.get("confidence")
        if not _is_number(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValidationError(
                "wordConfidences confidence must be a number between 0 and 1",
                context={"index": i},
            )

        start = entry.get("start")
        end = entry.get("end")
        words.append(
            WordConfidence(
                word=word,
                confidence=float(confidence),
                start=float(start) if _is_number(start) else i * DEFAULT_WORD_DURATION,
                end=float(end) if _is_number(end) else (i + 1) * DEFAULT_WORD_DURATION,
            )
        )
    return words


def simple_word_confidences(transcript: str) -> list[WordConfidence]:
    """Treat every word of a bare transcript as uncertain."""
    return [
        WordConfidence(
            word=word,
            confidence=SIMPLE_MODE_CONFIDENCE,
            start=i * DEFAULT_WORD_DURATION,
            end=(i + 1) * DEFAULT_WORD_DURATION,
        )
        for i, word in enumerate(transcript.split())
    ]


def parse_correction_request(payload: Any) -> CorrectionRequest:
    """Validate a loosely-typed request payload.

    Accepts camelCase (wire) or snake_case keys. A payload without word
    confidences is handled in simple mode, where every transcript word gets
    a confidence of 0.5.

    Args:
        payload: Decoded request body

    Returns:
        A validated CorrectionRequest

    Raises:
        ValidationError: If the payload is malformed
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be an object")

    transcript = payload.get("transcript")
    if not isinstance(transcript, str):
        raise ValidationError("transcript must be a string")

    session_id = _pick(payload, "sessionId", "session_id")
    if not isinstance(session_id, str) or not session_id.strip():
        raise ValidationError("sessionId must be a non-empty string")

    raw_words = _pick(payload, "wordConfidences", "word_confidences")
    if raw_words is _MISSING or raw_words is None:
        word_confidences = simple_word_confidences(transcript)
    else:
        word_confidences = _parse_word_confidences(raw_words)

    threshold = _pick(payload, "confidenceThreshold", "confidence_threshold")
    if threshold is _MISSING or threshold is None:
        threshold = None
    elif _is_number(threshold):
        threshold = min(1.0, max(0.0, float(threshold)))
    else:
        raise ValidationError("confidenceThreshold must be a number")

    language = payload.get("language")
    if not isinstance(language, str) or not language:
        language = "en"

    is_final = _pick(payload, "isFinal", "is_final")
    if not isinstance(is_final, bool):
        is_final = True

    return CorrectionRequest(
        transcript=transcript,
        word_confidences=word_confidences,
        session_id=session_id,
        language=language,
        is_final=is_final,
        confidence_threshold=threshold,
    )
