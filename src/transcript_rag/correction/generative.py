"""Generative correction: ask a language model to rewrite misheard terms.

The model sees the transcript, the low-confidence words and the candidate
terms, and answers with JSON. Any failure (unavailable provider, timeout,
unparsable answer) hands the request to a fallback strategy, normally the
rule-based corrector.
"""

from __future__ import annotations

import json
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Sequence

from transcript_rag.correction.rules import (
    CorrectionOutcome,
    CorrectionStrategy,
    RuleBasedCorrector,
    replace_word,
)
from transcript_rag.errors import GenerativeError, GenerativeTimeoutError, wrap_external_error
from transcript_rag.llm.base import CompletionProvider
from transcript_rag.llm.prompts import CorrectionPromptBuilder
from transcript_rag.logging import get_logger
from transcript_rag.models.correction import (
    CorrectionCandidate,
    CorrectionDetail,
    LowConfidenceWord,
    MatchType,
)

logger = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_PROSE_PATTERNS = (
    re.compile(
        r'"([^"]+)"\s*(?:->|→|should be|becomes?|corrected to)\s*"([^"]+)"',
        re.IGNORECASE,
    ),
    re.compile(r'replace\s+"([^"]+)"\s+with\s+"([^"]+)"', re.IGNORECASE),
)


@dataclass
class GenerativeSuggestion:
    """One substitution proposed by the model."""

    original: str
    corrected: str
    reason: str = ""


@dataclass
class ParsedResponse:
    """Model answer reduced to a transcript and its substitutions."""

    corrected_transcript: str
    suggestions: list[GenerativeSuggestion] = field(default_factory=list)


def _suggestions_from_json(data: dict[str, Any]) -> list[GenerativeSuggestion]:
    raw = data.get("corrections")
    if not isinstance(raw, list):
        return []

    suggestions = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        original, corrected = item.get("original"), item.get("corrected")
        if not isinstance(original, str) or not isinstance(corrected, str):
            continue
        if not original.strip() or not corrected.strip():
            continue
        reason = item.get("reason")
        suggestions.append(
            GenerativeSuggestion(original, corrected, reason if isinstance(reason, str) else "")
        )
    return suggestions


def parse_generative_response(text: str, original_transcript: str) -> ParsedResponse:
    """Parse a model answer.

    Tried in order: a fenced code block, the outermost ``{...}`` span, then
    prose like ``"cooper netties" -> "Kubernetes"`` applied to the original
    transcript.

    Args:
        text: Raw completion text
        original_transcript: Transcript sent to the model

    Returns:
        ParsedResponse

    Raises:
        GenerativeError: If nothing usable can be extracted
    """
    candidate = text.strip()

    fenced = _FENCED_BLOCK.search(candidate)
    if fenced:
        candidate = fenced.group(1)

    embedded = _JSON_OBJECT.search(candidate)
    if embedded:
        candidate = embedded.group(0)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        corrected = data.get("correctedTranscript", data.get("corrected_transcript"))
        if not isinstance(corrected, str) or not corrected.strip():
            corrected = original_transcript
        return ParsedResponse(corrected, _suggestions_from_json(data))

    suggestions = [
        GenerativeSuggestion(m.group(1), m.group(2), "LLM suggestion")
        for pattern in _PROSE_PATTERNS
        for m in pattern.finditer(text)
    ]
    if not suggestions:
        raise GenerativeError(
            "Could not parse generative response",
            context={"response": text[:200]},
        )

    corrected = original_transcript
    for suggestion in suggestions:
        corrected, _ = replace_word(corrected, suggestion.original, suggestion.corrected)
    return ParsedResponse(corrected, suggestions)


class GenerativeCorrector(CorrectionStrategy):
    """Correction strategy backed by a completion provider.

    Example:
        corrector = GenerativeCorrector(get_llm_provider(config), timeout_seconds=5.0)
        outcome = corrector.apply(transcript, low_words, candidates)
    """

    def __init__(
        self,
        provider: CompletionProvider | None,
        prompt_builder: CorrectionPromptBuilder | None = None,
        timeout_seconds: float = 5.0,
        confidence: float = 0.8,
        fallback: CorrectionStrategy | None = None,
    ):
        """Initialize the corrector.

        Args:
            provider: Completion provider (None always falls back)
            prompt_builder: Prompt builder (default template if None)
            timeout_seconds: Wall-clock limit for one completion
            confidence: Confidence attached to every generative correction
            fallback: Strategy used when generation fails
        """
        self.provider = provider
        self.prompt_builder = prompt_builder or CorrectionPromptBuilder()
        self.timeout_seconds = timeout_seconds
        self.confidence = confidence
        self.fallback = fallback or RuleBasedCorrector()

    def apply(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> CorrectionOutcome:
        if not candidates:
            return CorrectionOutcome(corrected_transcript=transcript)

        if self.provider is None or not self.provider.is_available():
            return self._fall_back(
                transcript, low_words, candidates, "generative provider unavailable"
            )

        try:
            text = self._complete(self.prompt_builder.build_correction_prompt(
                transcript, low_words, candidates
            ))
            parsed = parse_generative_response(text, transcript)
        except GenerativeError as e:
            logger.warning(
                f"Generative correction failed: {e.message}",
                extra={"error_type": type(e).__name__},
            )
            return self._fall_back(transcript, low_words, candidates, e.message)

        by_term = {c.term.term.lower(): c.term for c in candidates}
        corrections = [
            CorrectionDetail(
                original=s.original,
                corrected=s.corrected,
                reason=s.reason,
                confidence=self.confidence,
                matched_term=by_term.get(s.corrected.lower()),
                match_type=MatchType.LLM,
                position=i,
            )
            for i, s in enumerate(parsed.suggestions)
        ]

        # A rewrite without any reported substitution is not trusted
        corrected = parsed.corrected_transcript if corrections else transcript
        return CorrectionOutcome(
            corrected_transcript=corrected,
            corrections=corrections,
            used_generative=True,
        )

    def _complete(self, prompt: str) -> str:
        """Run the provider call under the wall-clock timeout.

        Raises:
            GenerativeTimeoutError: If the call doesn't finish in time
            GenerativeError: If the provider fails
        """
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(
            self.provider.complete, prompt, self.prompt_builder.build_system_prompt()
        )
        try:
            response = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            raise GenerativeTimeoutError(
                f"Generative correction timed out after {self.timeout_seconds}s",
                context={"provider": self.provider.provider_name},
            ) from e
        except Exception as e:
            raise wrap_external_error(e, self.provider.provider_name, "correction") from e
        finally:
            # Abandon a still-running call instead of blocking on it
            executor.shutdown(wait=False)

        return response.text

    def _fall_back(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
        reason: str,
    ) -> CorrectionOutcome:
        outcome = self.fallback.apply(transcript, low_words, candidates)
        outcome.used_generative = False
        outcome.warnings.append(f"Used rule-based correction ({reason})")
        return outcome
