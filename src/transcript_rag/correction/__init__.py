"""Transcript correction pipeline.

Finds low-confidence words, retrieves sound-alike or semantically related
reference terms and substitutes them by rule or with a language model.
"""

from transcript_rag.correction.generative import (
    GenerativeCorrector,
    parse_generative_response,
)
from transcript_rag.correction.orchestrator import (
    CorrectionOrchestrator,
    CorrectionStage,
    CorrectionStats,
    build_strategy,
)
from transcript_rag.correction.retrieval import (
    CandidateRetriever,
    RetrievalMode,
    RetrievalOutcome,
    build_search_queries,
    identify_low_confidence,
)
from transcript_rag.correction.rules import (
    CorrectionOutcome,
    CorrectionStrategy,
    RuleBasedCorrector,
)

__all__ = [
    "GenerativeCorrector",
    "parse_generative_response",
    "CorrectionOrchestrator",
    "CorrectionStage",
    "CorrectionStats",
    "build_strategy",
    "CandidateRetriever",
    "RetrievalMode",
    "RetrievalOutcome",
    "build_search_queries",
    "identify_low_confidence",
    "CorrectionOutcome",
    "CorrectionStrategy",
    "RuleBasedCorrector",
]
