"""Candidate retrieval for low-confidence transcript spans.

Finds words the recognizer was unsure about, turns them into search
queries, and gathers candidate terms from the session corpus by phonetic
matching, semantic search, or both.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Sequence

from transcript_rag.config import PhoneticSettings, RetrievalMode, RetrievalSettings
from transcript_rag.errors import RetrievalError
from transcript_rag.logging import get_logger
from transcript_rag.models.correction import (
    CorrectionCandidate,
    LowConfidenceWord,
    MatchType,
    WordConfidence,
)
from transcript_rag.models.terms import ReferenceTerm
from transcript_rag.providers import SemanticSearchProvider
from transcript_rag.vocabulary.corpus import TermCorpus
from transcript_rag.vocabulary.phonetic import find_similar_terms, similarity

logger = get_logger(__name__)

__all__ = [
    "CandidateRetriever",
    "RetrievalMode",
    "RetrievalOutcome",
    "build_search_queries",
    "identify_low_confidence",
]

# Shortest neighbour or run word worth a query of its own
MIN_QUERY_WORD_LENGTH = 3


def identify_low_confidence(
    words: Sequence[WordConfidence],
    threshold: float,
) -> list[LowConfidenceWord]:
    """Select words whose confidence is strictly below the threshold.

    Args:
        words: Recognized words in transcript order
        threshold: Confidence cutoff; a word exactly at it is kept as-is

    Returns:
        Low-confidence words in order, with their positions and timings
    """
    return [
        LowConfidenceWord(
            word=w.word,
            confidence=w.confidence,
            position=i,
            start=w.start,
            end=w.end,
        )
        for i, w in enumerate(words)
        if w.confidence < threshold
    ]


def build_search_queries(
    low_words: Sequence[LowConfidenceWord],
    all_words: Sequence[str],
) -> list[str]:
    """Build search queries from low-confidence words.

    Adjacent low-confidence words form one phrase query per run ("cooper
    netties"). Runs longer than two words also query each of their words.
    Each low-confidence word is paired with a neighbour outside any run for
    a two-word context query.

    Args:
        low_words: Output of identify_low_confidence
        all_words: Every transcript word, indexed by position

    Returns:
        Unique queries in first-seen order
    """
    queries: list[str] = []
    grouped: set[int] = set()
    ordered = sorted(low_words, key=lambda w: w.position)

    i = 0
    while i < len(ordered):
        j = i + 1
        while j < len(ordered) and ordered[j].position == ordered[j - 1].position + 1:
            j += 1

        run = [
            all_words[pos]
            for pos in range(ordered[i].position, ordered[j - 1].position + 1)
            if pos < len(all_words)
        ]
        grouped.update(range(ordered[i].position, ordered[j - 1].position + 1))

        if run:
            queries.append(" ".join(run))
        if len(run) > 2:
            queries.extend(w for w in run if len(w) >= MIN_QUERY_WORD_LENGTH)

        i = j

    for low in ordered:
        before = low.position - 1
        if before >= 0 and before not in grouped and before < len(all_words):
            neighbour = all_words[before]
            if len(neighbour) >= MIN_QUERY_WORD_LENGTH:
                queries.append(f"{neighbour} {low.word}")

        after = low.position + 1
        if after < len(all_words) and after not in grouped:
            neighbour = all_words[after]
            if len(neighbour) >= MIN_QUERY_WORD_LENGTH:
                queries.append(f"{low.word} {neighbour}")

    return list(dict.fromkeys(queries))


@dataclass
class RetrievalOutcome:
    """Candidates gathered for one request."""

    candidates: list[CorrectionCandidate] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_queries: list[str] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)


class CandidateRetriever:
    """Gathers correction candidates for a set of queries.

    Queries are independent, so they are fanned out on a thread pool; the
    pool size bounds concurrent calls to the semantic search collaborator.
    """

    def __init__(
        self,
        settings: RetrievalSettings | None = None,
        semantic_provider: SemanticSearchProvider | None = None,
        phonetic_settings: PhoneticSettings | None = None,
    ):
        self.settings = settings or RetrievalSettings()
        self.semantic_provider = semantic_provider
        self.phonetic_settings = phonetic_settings or PhoneticSettings()

    def retrieve(
        self,
        queries: Sequence[str],
        corpus: TermCorpus,
        session_id: str,
        mode: RetrievalMode | None = None,
    ) -> RetrievalOutcome:
        """Retrieve and deduplicate candidates for the first few queries.

        Args:
            queries: Search queries in priority order
            corpus: Read-only snapshot of the session's terms
            session_id: Session passed to the semantic search collaborator
            mode: Retrieval mode (settings default if None)

        Returns:
            RetrievalOutcome with candidates ordered by combined score
        """
        mode = RetrievalMode(mode or self.settings.mode)
        queries = list(queries)[:self.settings.max_queries]
        outcome = RetrievalOutcome(queries=queries)

        if mode is not RetrievalMode.PHONETIC and self.semantic_provider is None:
            if mode is RetrievalMode.SEMANTIC:
                outcome.warnings.append("Semantic search unavailable; used phonetic matching")
            mode = RetrievalMode.PHONETIC

        if not queries:
            return outcome

        terms = corpus.terms()
        results: list[list[CorrectionCandidate] | None] = [None] * len(queries)
        # Hybrid queries whose semantic half failed but still matched phonetically
        degraded: list[str] = []

        workers = min(self.settings.max_concurrent_searches, len(queries))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._search, query, terms, session_id, mode): idx
                for idx, query in enumerate(queries)
            }
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    results[idx], semantic_failed = future.result()
                except Exception as e:
                    error = e if isinstance(e, RetrievalError) else RetrievalError(
                        f"Search failed for query: {e}",
                        context={"query": queries[idx], "mode": mode.value},
                    )
                    logger.warning(
                        f"Dropping query '{queries[idx]}': {error.message}",
                        extra={"session_id": session_id, "error_type": type(e).__name__},
                    )
                    outcome.warnings.append(f"Retrieval failed for query '{queries[idx]}'")
                    outcome.failed_queries.append(queries[idx])
                    continue

                if semantic_failed:
                    degraded.append(queries[idx])

        for query in degraded:
            outcome.warnings.append(f"Semantic search failed for query '{query}'; used phonetic matching")
            outcome.failed_queries.append(query)

        unique: dict[str, CorrectionCandidate] = {}
        for candidates in results:
            for candidate in candidates or []:
                key = candidate.term.normalized_term
                existing = unique.get(key)
                if existing is None or candidate.combined_score > existing.combined_score:
                    unique[key] = candidate

        outcome.candidates = sorted(unique.values(), key=lambda c: c.combined_score, reverse=True)
        logger.debug(
            f"Retrieved {len(outcome.candidates)} candidates from {len(queries)} queries",
            extra={"session_id": session_id, "mode": mode.value},
        )
        return outcome

    def _search(
        self,
        query: str,
        terms: list[ReferenceTerm],
        session_id: str,
        mode: RetrievalMode,
    ) -> tuple[list[CorrectionCandidate], bool]:
        """Candidates for one query and whether its semantic half failed."""
        if mode is RetrievalMode.PHONETIC:
            return self._phonetic(query, terms), False
        if mode is RetrievalMode.SEMANTIC:
            return self._rank(self._semantic(query, session_id)), False
        return self._hybrid(query, terms, session_id)

    def _phonetic(self, query: str, terms: list[ReferenceTerm]) -> list[CorrectionCandidate]:
        phonetic = self.phonetic_settings
        matches = find_similar_terms(
            query,
            terms,
            min_similarity=self.settings.retrieval_min_similarity,
            max_results=self.settings.max_terms_to_retrieve,
            exact_match_boost=phonetic.exact_match_boost,
            score_ceiling=phonetic.score_ceiling,
        )
        return [
            CorrectionCandidate(
                term=m.term,
                semantic_score=0.0,
                phonetic_score=m.similarity,
                combined_score=m.similarity,
                match_type=MatchType.PHONETIC,
            )
            for m in matches
        ]

    def _semantic(self, query: str, session_id: str) -> dict[str, CorrectionCandidate]:
        """Semantic hits re-ranked with the query's phonetic similarity."""
        settings = self.settings
        hits = self.semantic_provider.search(session_id, query, settings.max_terms_to_retrieve)

        merged: dict[str, CorrectionCandidate] = {}
        for hit in hits:
            phonetic_score = similarity(query, hit.term.term).score
            merged[hit.term.normalized_term] = CorrectionCandidate(
                term=hit.term,
                semantic_score=hit.semantic_score,
                phonetic_score=phonetic_score,
                combined_score=(
                    hit.semantic_score * settings.semantic_weight
                    + phonetic_score * settings.phonetic_weight
                ),
                match_type=(
                    MatchType.PHONETIC if phonetic_score > hit.semantic_score else MatchType.SEMANTIC
                ),
            )
        return merged

    def _hybrid(
        self,
        query: str,
        terms: list[ReferenceTerm],
        session_id: str,
    ) -> tuple[list[CorrectionCandidate], bool]:
        settings = self.settings
        semantic_failed = False
        try:
            merged = self._semantic(query, session_id)
        except Exception as e:
            # Phonetic matching needs no collaborator, so the query survives
            logger.warning(
                f"Semantic search failed for '{query}', continuing with phonetic matches: {e}",
                extra={"session_id": session_id, "error_type": type(e).__name__},
            )
            merged = {}
            semantic_failed = True

        for match in self._phonetic(query, terms):
            key = match.term.normalized_term
            existing = merged.get(key)
            if existing is None:
                merged[key] = match.model_copy(
                    update={"combined_score": match.phonetic_score * settings.phonetic_weight}
                )
            elif match.phonetic_score > existing.phonetic_score:
                merged[key] = existing.model_copy(
                    update={
                        "phonetic_score": match.phonetic_score,
                        "combined_score": (
                            existing.semantic_score * settings.semantic_weight
                            + match.phonetic_score * settings.phonetic_weight
                        ),
                        "match_type": (
                            MatchType.PHONETIC
                            if match.phonetic_score > existing.semantic_score
                            else existing.match_type
                        ),
                    }
                )

        return self._rank(merged), semantic_failed

    def _rank(self, merged: dict[str, CorrectionCandidate]) -> list[CorrectionCandidate]:
        results = [c for c in merged.values() if c.combined_score >= self.settings.hybrid_min_score]
        results.sort(key=lambda c: c.combined_score, reverse=True)
        return results[:self.settings.max_terms_to_retrieve]
