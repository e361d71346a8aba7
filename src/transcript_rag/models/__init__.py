"""Data models for transcript-rag.

This module provides Pydantic models for reference terms and for the
correction request/response contract.
"""

from __future__ import annotations

from transcript_rag.models.correction import (
    CorrectionCandidate,
    CorrectionDetail,
    CorrectionRequest,
    CorrectionResult,
    LowConfidenceWord,
    MatchType,
    WordConfidence,
    parse_correction_request,
    simple_word_confidences,
)
from transcript_rag.models.terms import (
    CATEGORY_PRIORITY,
    CATEGORY_WEIGHTS,
    ReferenceTerm,
    TermCategory,
    higher_priority,
)

__all__ = [
    # Term models
    "CATEGORY_PRIORITY",
    "CATEGORY_WEIGHTS",
    "ReferenceTerm",
    "TermCategory",
    "higher_priority",
    # Correction models
    "CorrectionCandidate",
    "CorrectionDetail",
    "CorrectionRequest",
    "CorrectionResult",
    "LowConfidenceWord",
    "MatchType",
    "WordConfidence",
    "parse_correction_request",
    "simple_word_confidences",
]
