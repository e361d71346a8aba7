"""Correction strategies and the rule-based (phonetic) corrector.

A strategy turns a transcript, its low-confidence words and the retrieved
candidates into a corrected transcript plus one detail per substitution.
"""

from __future__ import annotations

import re
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence

from transcript_rag.config import PhoneticSettings
from transcript_rag.logging import get_logger
from transcript_rag.models.correction import (
    CorrectionCandidate,
    CorrectionDetail,
    LowConfidenceWord,
    MatchType,
)
from transcript_rag.vocabulary.lexicon import is_stop_word
from transcript_rag.vocabulary.index import PhoneticIndex
from transcript_rag.vocabulary.phonetic import find_best_match, similarity

logger = get_logger(__name__)

# Window sizes (in words) tried by the phrase pass
WINDOW_SIZES = (2, 3)

_EDGE_CHARS = string.punctuation + "“”‘’"


@dataclass
class CorrectionOutcome:
    """Result of applying a correction strategy."""

    corrected_transcript: str
    corrections: list[CorrectionDetail] = field(default_factory=list)
    used_generative: bool = False
    warnings: list[str] = field(default_factory=list)


class CorrectionStrategy(ABC):
    """Produces corrections from retrieved candidates."""

    @abstractmethod
    def apply(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> CorrectionOutcome:
        """Correct a transcript.

        Args:
            transcript: Transcript as recognized
            low_words: Words below the confidence threshold
            candidates: Retrieved candidates, best first

        Returns:
            CorrectionOutcome with the corrected transcript and details
        """
        pass

    @property
    def name(self) -> str:
        return type(self).__name__


def _strip_edges(token: str) -> str:
    return token.strip(_EDGE_CHARS)


def _core_span(match: re.Match) -> tuple[int, int]:
    """Offsets of a whitespace token without its surrounding punctuation."""
    token = match.group(0)
    lead = len(token) - len(token.lstrip(_EDGE_CHARS))
    trail = len(token) - len(token.rstrip(_EDGE_CHARS))
    return match.start() + lead, max(match.start() + lead, match.end() - trail)


def replace_word(text: str, word: str, replacement: str) -> tuple[str, int]:
    """Replace every standalone, case-insensitive occurrence of a word.

    Returns:
        Tuple of (new text, number of replacements)
    """
    pattern = re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)
    # A callable keeps backslashes in the replacement literal
    return pattern.subn(lambda _: replacement, text)


class RuleBasedCorrector(CorrectionStrategy):
    """Substitutes low-confidence words with sound-alike corpus terms.

    Two passes run in order:

    1. Per word: each low-confidence word is matched against the candidate
       terms and replaced (everywhere it occurs) when the best score clears
       the threshold.
    2. Phrase windows: two and three word windows containing a
       low-confidence word are scored against every candidate term, so
       "cooper netties" can become "Kubernetes". The best window per start
       position wins and scanning resumes after it.

    Stop-words are never replaced on their own and never start or end a
    window.
    """

    def __init__(
        self,
        threshold: float = 0.7,
        phonetic_settings: PhoneticSettings | None = None,
    ):
        self.threshold = threshold
        self.phonetic_settings = phonetic_settings or PhoneticSettings()

    def apply(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> CorrectionOutcome:
        if not low_words or not candidates:
            return CorrectionOutcome(corrected_transcript=transcript)

        corrected, corrections = self._word_pass(transcript, low_words, candidates)
        corrected, window_corrections = self._window_pass(corrected, low_words, candidates)
        corrections.extend(window_corrections)

        if corrections:
            logger.debug(
                f"Rule-based pass applied {len(corrections)} corrections",
                extra={"threshold": self.threshold},
            )
        return CorrectionOutcome(corrected_transcript=corrected, corrections=corrections)

    def _word_pass(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> tuple[str, list[CorrectionDetail]]:
        settings = self.phonetic_settings
        by_key = {c.term.normalized_term: c for c in candidates}
        terms = [c.term for c in candidates]
        index = PhoneticIndex(terms)

        corrected = transcript
        corrections: list[CorrectionDetail] = []
        seen: set[str] = set()

        for low in low_words:
            word = _strip_edges(low.word)
            key = word.lower()
            if not word or key in seen or is_stop_word(key):
                continue
            seen.add(key)

            match = find_best_match(
                word,
                terms,
                min_similarity=settings.min_similarity,
                max_results=settings.max_results,
                exact_match_boost=settings.exact_match_boost,
                score_ceiling=settings.score_ceiling,
                high_confidence_cutoff=settings.high_confidence_cutoff,
                index=index,
            )
            if match is None or match.similarity < self.threshold:
                continue
            if key == match.term.term.lower():
                continue

            corrected, count = replace_word(corrected, word, match.term.term)
            if count == 0:
                continue

            candidate = by_key.get(match.term.normalized_term)
            confidence = min(1.0, match.similarity)
            corrections.append(
                CorrectionDetail(
                    original=word,
                    corrected=match.term.term,
                    reason=f"High phonetic similarity ({confidence:.0%})",
                    confidence=confidence,
                    matched_term=match.term,
                    match_type=candidate.match_type if candidate else MatchType.PHONETIC,
                    position=low.position,
                )
            )

        return corrected, corrections

    def _window_pass(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> tuple[str, list[CorrectionDetail]]:
        low_keys = {_strip_edges(w.word).lower() for w in low_words}
        low_keys.discard("")

        tokens = list(re.finditer(r"\S+", transcript))
        spans = [_core_span(t) for t in tokens]
        words = [transcript[start:end] for start, end in spans]

        replacements: list[tuple[int, int, CorrectionDetail]] = []
        i = 0
        while i < len(words):
            best: tuple[float, int, CorrectionCandidate] | None = None

            for size in WINDOW_SIZES:
                if i + size > len(words):
                    break
                window = words[i:i + size]
                lowered = [w.lower() for w in window]
                if not all(window):
                    continue
                if is_stop_word(lowered[0]) or is_stop_word(lowered[-1]):
                    continue
                if not any(w in low_keys for w in lowered):
                    continue

                phrase = " ".join(window)
                for candidate in candidates:
                    target = candidate.term.term
                    if target.lower() in lowered or target.lower() == phrase.lower():
                        continue
                    score = similarity(phrase, target).score
                    if score >= self.threshold and (best is None or score > best[0]):
                        best = (score, size, candidate)

            if best is None:
                i += 1
                continue

            score, size, candidate = best
            start, end = spans[i][0], spans[i + size - 1][1]
            literal = transcript[start:end]
            replacements.append((
                start,
                end,
                CorrectionDetail(
                    original=literal,
                    corrected=candidate.term.term,
                    reason=f"Phrase sounds like '{candidate.term.term}' ({score:.0%})",
                    confidence=score,
                    matched_term=candidate.term,
                    match_type=MatchType.PHONETIC,
                    position=i,
                ),
            ))
            i += size

        corrected = transcript
        for start, end, detail in reversed(replacements):
            corrected = corrected[:start] + detail.corrected + corrected[end:]

        return corrected, [detail for _, _, detail in replacements]
