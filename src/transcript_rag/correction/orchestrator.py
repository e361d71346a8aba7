"""Correction orchestrator: the per-request pipeline.

Each request walks the same stages:

    RECEIVED -> THRESHOLD_CHECK -> QUERY_BUILD -> CANDIDATE_RETRIEVAL
             -> CORRECTION_APPLY -> RESPONSE

with early exits when no word is below the confidence threshold, when the
session has no reference terms, or when retrieval finds no candidates.
Correction is additive: every failure still returns the original transcript.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from transcript_rag.config import RagSettings
from transcript_rag.correction.generative import GenerativeCorrector
from transcript_rag.correction.retrieval import (
    CandidateRetriever,
    build_search_queries,
    identify_low_confidence,
)
from transcript_rag.correction.rules import CorrectionStrategy, RuleBasedCorrector
from transcript_rag.errors import ValidationError
from transcript_rag.llm.openai import get_llm_provider, llm_config_from_settings
from transcript_rag.logging import RagLogger, get_logger, log_operation_complete
from transcript_rag.models.correction import (
    CorrectionRequest,
    CorrectionResult,
    parse_correction_request,
    simple_word_confidences,
)
from transcript_rag.providers import SemanticSearchProvider, TermCorpusProvider
from transcript_rag.vocabulary.corpus import TermCorpus

logger = get_logger(__name__)


class CorrectionStage(str, Enum):
    """Pipeline stages of one correction request."""

    RECEIVED = "received"
    THRESHOLD_CHECK = "threshold_check"
    EARLY_EXIT_NO_LOW_CONFIDENCE = "early_exit_no_low_confidence"
    EARLY_EXIT_NO_CONTENT = "early_exit_no_content"
    QUERY_BUILD = "query_build"
    CANDIDATE_RETRIEVAL = "candidate_retrieval"
    EARLY_EXIT_NO_CANDIDATES = "early_exit_no_candidates"
    CORRECTION_APPLY = "correction_apply"
    RESPONSE = "response"


@dataclass
class CorrectionStats:
    """Aggregate counters for one orchestrator.

    Averages are incremental means over all recorded requests.
    """

    total_requests: int = 0
    total_corrections: int = 0
    avg_processing_time_ms: float = 0.0
    avg_terms_retrieved: float = 0.0
    error_count: int = 0
    last_correction_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "total_corrections": self.total_corrections,
            "avg_processing_time_ms": self.avg_processing_time_ms,
            "avg_terms_retrieved": self.avg_terms_retrieved,
            "error_count": self.error_count,
            "last_correction_at": (
                self.last_correction_at.isoformat() if self.last_correction_at else None
            ),
        }


def build_strategy(settings: RagSettings) -> CorrectionStrategy:
    """Pick the correction strategy the settings ask for.

    Raises:
        ConfigurationError: If a generative provider is requested but unknown
    """
    rules = RuleBasedCorrector(
        threshold=settings.correction.rule_based_threshold,
        phonetic_settings=settings.phonetic,
    )
    if not settings.correction.use_generative:
        return rules

    provider = get_llm_provider(llm_config_from_settings(settings.generative))
    return GenerativeCorrector(
        provider,
        timeout_seconds=settings.generative.timeout_seconds,
        confidence=settings.correction.generative_confidence,
        fallback=rules,
    )


class CorrectionOrchestrator:
    """Runs correction requests against a session's reference terms.

    Example:
        orchestrator = CorrectionOrchestrator(settings, corpus_provider=corpus)
        result = orchestrator.correct_payload({
            "transcript": "We use cooper netties",
            "sessionId": "talk-1",
        })
        result.corrected_transcript  # "We use Kubernetes"
    """

    def __init__(
        self,
        settings: RagSettings | None = None,
        corpus_provider: TermCorpusProvider | None = None,
        semantic_provider: SemanticSearchProvider | None = None,
        strategy: CorrectionStrategy | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            settings: Pipeline settings (defaults if None)
            corpus_provider: Source of session terms
            semantic_provider: Optional semantic search collaborator
            strategy: Correction strategy (built from settings if None)
        """
        self.settings = settings or RagSettings()
        self.corpus_provider = corpus_provider
        self.retriever = CandidateRetriever(
            self.settings.retrieval,
            semantic_provider=semantic_provider,
            phonetic_settings=self.settings.phonetic,
        )
        self.strategy = strategy or build_strategy(self.settings)
        self._stats = CorrectionStats()

    def get_stats(self) -> CorrectionStats:
        """Snapshot of the aggregate counters."""
        return replace(self._stats)

    def reset_stats(self) -> None:
        """Zero the aggregate counters."""
        self._stats = CorrectionStats()

    def _record(
        self,
        processing_time_ms: float,
        terms_retrieved: int,
        corrections: int,
        error: bool = False,
    ) -> None:
        # Unsynchronized; a lost update under concurrency only skews averages
        stats = self._stats
        stats.total_requests += 1
        n = stats.total_requests
        stats.avg_processing_time_ms += (processing_time_ms - stats.avg_processing_time_ms) / n
        stats.avg_terms_retrieved += (terms_retrieved - stats.avg_terms_retrieved) / n
        stats.total_corrections += corrections
        if corrections:
            stats.last_correction_at = datetime.now()
        if error:
            stats.error_count += 1

    def correct_payload(
        self,
        payload: Any,
        corpus: TermCorpus | None = None,
    ) -> CorrectionResult:
        """Validate a raw request payload and correct it.

        Args:
            payload: Mapping with camelCase (or snake_case) request fields
            corpus: Optional explicit corpus snapshot

        Returns:
            CorrectionResult; an invalid payload gives an unmodified result
            with a warning
        """
        start = time.perf_counter()
        try:
            request = parse_correction_request(payload)
        except ValidationError as e:
            logger.warning(f"Rejected correction request: {e.message}")
            elapsed = (time.perf_counter() - start) * 1000
            self._record(elapsed, 0, 0, error=True)

            transcript = session_id = ""
            if isinstance(payload, dict):
                if isinstance(payload.get("transcript"), str):
                    transcript = payload["transcript"]
                raw_session = payload.get("sessionId", payload.get("session_id"))
                if isinstance(raw_session, str):
                    session_id = raw_session
            return CorrectionResult.unmodified(
                transcript,
                session_id,
                processing_time_ms=elapsed,
                warnings=[f"Invalid request: {e.message}"],
            )

        return self.correct(request, corpus=corpus)

    def correct_text(
        self,
        transcript: str,
        session_id: str,
        corpus: TermCorpus | None = None,
    ) -> str:
        """Correct a bare transcript, treating every word as uncertain."""
        request = CorrectionRequest(
            transcript=transcript,
            word_confidences=simple_word_confidences(transcript),
            session_id=session_id,
        )
        return self.correct(request, corpus=corpus).corrected_transcript

    def correct(
        self,
        request: CorrectionRequest,
        corpus: TermCorpus | None = None,
    ) -> CorrectionResult:
        """Correct one transcript.

        Never raises: any unexpected failure returns the transcript
        unmodified with a warning.

        Args:
            request: Validated correction request
            corpus: Explicit corpus snapshot (overrides the corpus provider)

        Returns:
            CorrectionResult
        """
        start = time.perf_counter()
        log = logger.with_context(session_id=request.session_id)

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            result = self._run(request, corpus, log, elapsed_ms)
        except Exception as e:
            log.error(
                f"Correction failed: {e}",
                extra={"error_type": type(e).__name__},
            )
            duration = elapsed_ms()
            self._record(duration, 0, 0, error=True)
            return CorrectionResult.unmodified(
                request.transcript,
                request.session_id,
                processing_time_ms=duration,
                warnings=[f"Correction failed: {e}"],
            )

        self._record(result.processing_time_ms, result.terms_retrieved, len(result.corrections))
        return result

    def _run(
        self,
        request: CorrectionRequest,
        corpus: TermCorpus | None,
        log: RagLogger,
        elapsed_ms: Callable[[], float],
    ) -> CorrectionResult:
        transcript = request.transcript
        session_id = request.session_id
        settings = self.settings.correction
        warnings: list[str] = []

        def stage(name: CorrectionStage, **context: Any) -> None:
            log.debug(f"Stage {name.value}", extra=context)

        def early_exit(name: CorrectionStage, terms_retrieved: int = 0) -> CorrectionResult:
            stage(name)
            return CorrectionResult.unmodified(
                transcript,
                session_id,
                processing_time_ms=elapsed_ms(),
                terms_retrieved=terms_retrieved,
                warnings=warnings,
            )

        stage(CorrectionStage.RECEIVED, words=len(request.word_confidences))

        threshold = request.confidence_threshold
        if threshold is None:
            threshold = settings.confidence_threshold

        stage(CorrectionStage.THRESHOLD_CHECK, threshold=threshold)
        low_words = identify_low_confidence(request.word_confidences, threshold)
        if len(low_words) < settings.min_low_confidence_words:
            return early_exit(CorrectionStage.EARLY_EXIT_NO_LOW_CONFIDENCE)

        snapshot = self._load_corpus(session_id, corpus, warnings, log)
        if snapshot is None or len(snapshot) == 0:
            return early_exit(CorrectionStage.EARLY_EXIT_NO_CONTENT)

        stage(CorrectionStage.QUERY_BUILD, low_confidence=len(low_words))
        queries = build_search_queries(low_words, [w.word for w in request.word_confidences])

        stage(CorrectionStage.CANDIDATE_RETRIEVAL, queries=len(queries))
        retrieval = self.retriever.retrieve(queries, snapshot, session_id)
        warnings.extend(retrieval.warnings)
        if not retrieval.candidates:
            return early_exit(CorrectionStage.EARLY_EXIT_NO_CANDIDATES)

        stage(CorrectionStage.CORRECTION_APPLY, candidates=len(retrieval.candidates))
        outcome = self.strategy.apply(transcript, low_words, retrieval.candidates)
        warnings.extend(outcome.warnings)

        corrections = outcome.corrections
        corrected = outcome.corrected_transcript if corrections else transcript

        duration = elapsed_ms()
        stage(CorrectionStage.RESPONSE, corrections=len(corrections))
        log_operation_complete(
            log,
            "transcript correction",
            duration_ms=duration,
            corrections=len(corrections),
            candidates=len(retrieval.candidates),
            generative=outcome.used_generative,
        )
        return CorrectionResult(
            original_transcript=transcript,
            corrected_transcript=corrected,
            was_modified=len(corrections) > 0,
            corrections=corrections,
            terms_retrieved=len(retrieval.candidates),
            processing_time_ms=duration,
            session_id=session_id,
            warnings=warnings or None,
        )

    def _load_corpus(
        self,
        session_id: str,
        corpus: TermCorpus | None,
        warnings: list[str],
        log: RagLogger,
    ) -> TermCorpus | None:
        """Resolve the corpus snapshot for a request (None when unavailable)."""
        if corpus is not None:
            return corpus
        if self.corpus_provider is None:
            return None

        try:
            if not self.corpus_provider.has_content(session_id):
                return None
            return TermCorpus(self.corpus_provider.get_terms(session_id))
        except Exception as e:
            log.warning(
                f"Term corpus unavailable: {e}",
                extra={"error_type": type(e).__name__},
            )
            warnings.append(f"Term corpus unavailable: {e}")
            return None
