"""Tests for generative correction and response parsing."""

import threading

import pytest

from transcript_rag.correction.generative import (
    GenerativeCorrector,
    parse_generative_response,
)
from transcript_rag.correction.rules import CorrectionOutcome, CorrectionStrategy
from transcript_rag.errors import ConfigurationError, GenerativeError, RateLimitError
from transcript_rag.llm.base import CompletionProvider, CompletionResponse, LLMConfig
from transcript_rag.models.correction import (
    CorrectionCandidate,
    LowConfidenceWord,
    MatchType,
)
from transcript_rag.models.terms import ReferenceTerm, TermCategory

TRANSCRIPT = "we use cooper netties for deployment"

GOOD_RESPONSE = """{
  "correctedTranscript": "we use Kubernetes for deployment",
  "corrections": [
    {"original": "cooper netties", "corrected": "Kubernetes", "reason": "sounds alike"}
  ]
}"""


class FakeProvider(CompletionProvider):
    """Completion provider returning canned text."""

    def __init__(self, text: str = GOOD_RESPONSE, available: bool = True, error=None, delay=None):
        super().__init__(LLMConfig())
        self.text = text
        self.available = available
        self.error = error
        self.delay = delay
        self.prompts = []

    def complete(self, prompt, system_prompt=None):
        self.prompts.append((prompt, system_prompt))
        if self.delay is not None:
            self.delay.wait(5)
        if self.error is not None:
            raise self.error
        return CompletionResponse(text=self.text, model="fake")

    def is_available(self):
        return self.available

    @property
    def provider_name(self):
        return "Fake"


class RecordingFallback(CorrectionStrategy):
    """Fallback strategy that records calls."""

    def __init__(self):
        self.calls = 0

    def apply(self, transcript, low_words, candidates):
        self.calls += 1
        return CorrectionOutcome(corrected_transcript=transcript + " [rules]")


def candidates() -> list[CorrectionCandidate]:
    term = ReferenceTerm(
        term="Kubernetes",
        normalized_term="kubernetes",
        context="Kubernetes schedules containers.",
        category=TermCategory.TECHNICAL,
    )
    return [CorrectionCandidate(term=term, phonetic_score=0.86, combined_score=0.86)]


def low_words() -> list[LowConfidenceWord]:
    return [
        LowConfidenceWord(word="cooper", confidence=0.4, position=2),
        LowConfidenceWord(word="netties", confidence=0.35, position=3),
    ]


class TestParseGenerativeResponse:
    """Tests for parse_generative_response."""

    def test_plain_json(self):
        """Test a bare JSON answer."""
        parsed = parse_generative_response(GOOD_RESPONSE, TRANSCRIPT)

        assert parsed.corrected_transcript == "we use Kubernetes for deployment"
        assert len(parsed.suggestions) == 1
        assert parsed.suggestions[0].original == "cooper netties"
        assert parsed.suggestions[0].reason == "sounds alike"

    def test_fenced_block(self):
        """Test JSON inside a markdown code fence."""
        text = f"Here you go:\n```json\n{GOOD_RESPONSE}\n```\nDone."

        parsed = parse_generative_response(text, TRANSCRIPT)

        assert parsed.corrected_transcript == "we use Kubernetes for deployment"

    def test_embedded_object(self):
        """Test JSON surrounded by prose."""
        text = f"Sure! {GOOD_RESPONSE} Let me know if you need more."

        parsed = parse_generative_response(text, TRANSCRIPT)

        assert parsed.suggestions[0].corrected == "Kubernetes"

    def test_snake_case_and_missing_transcript(self):
        """Test alternate keys and a missing transcript."""
        parsed = parse_generative_response('{"corrected_transcript": "fixed"}', TRANSCRIPT)
        assert parsed.corrected_transcript == "fixed"
        assert parsed.suggestions == []

        parsed = parse_generative_response('{"corrections": []}', TRANSCRIPT)
        assert parsed.corrected_transcript == TRANSCRIPT

    def test_bad_entries_skipped(self):
        """Test malformed correction entries are dropped."""
        text = """{"correctedTranscript": "x", "corrections": [
            "nope", {"original": "a"}, {"original": " ", "corrected": "b"},
            {"original": "c", "corrected": "d", "reason": 5}
        ]}"""

        parsed = parse_generative_response(text, TRANSCRIPT)

        assert [(s.original, s.corrected, s.reason) for s in parsed.suggestions] == [("c", "d", "")]

    def test_prose_fallback(self):
        """Test arrow-style prose suggestions are applied to the transcript."""
        text = 'I would change "cooper netties" -> "Kubernetes".'

        parsed = parse_generative_response(text, TRANSCRIPT)

        assert parsed.corrected_transcript == "we use Kubernetes for deployment"
        assert parsed.suggestions[0].reason == "LLM suggestion"

    def test_prose_replace_with(self):
        """Test replace-with phrasing."""
        text = 'Replace "netties" with "nets" please'

        parsed = parse_generative_response(text, TRANSCRIPT)

        assert parsed.corrected_transcript == "we use cooper nets for deployment"

    def test_unparseable(self):
        """Test answers with nothing usable raise."""
        with pytest.raises(GenerativeError, match="Could not parse"):
            parse_generative_response("I'm not sure what you mean.", TRANSCRIPT)


class TestGenerativeCorrector:
    """Tests for GenerativeCorrector."""

    def test_applies_model_corrections(self):
        """Test a successful completion becomes LLM corrections."""
        provider = FakeProvider()
        corrector = GenerativeCorrector(provider, confidence=0.8)

        outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())

        assert outcome.used_generative
        assert outcome.corrected_transcript == "we use Kubernetes for deployment"
        assert outcome.warnings == []
        detail = outcome.corrections[0]
        assert detail.match_type == MatchType.LLM
        assert detail.confidence == 0.8
        assert detail.position == 0
        assert detail.matched_term.term == "Kubernetes"

        prompt, system_prompt = provider.prompts[0]
        assert '"cooper" (confidence: 40%)' in prompt
        assert '- "Kubernetes" (technical): Kubernetes schedules containers.' in prompt
        assert "only output valid JSON" in system_prompt

    def test_rewrite_without_corrections_ignored(self):
        """Test a changed transcript with no reported substitutions is discarded."""
        provider = FakeProvider('{"correctedTranscript": "something else", "corrections": []}')

        outcome = GenerativeCorrector(provider).apply(TRANSCRIPT, low_words(), candidates())

        assert outcome.corrected_transcript == TRANSCRIPT
        assert outcome.corrections == []
        assert outcome.used_generative

    def test_unknown_term_has_no_match(self):
        """Test suggestions outside the candidates carry no matched term."""
        provider = FakeProvider(
            '{"correctedTranscript": "we use Helm", "corrections": '
            '[{"original": "cooper netties", "corrected": "Helm"}]}'
        )

        outcome = GenerativeCorrector(provider).apply(TRANSCRIPT, low_words(), candidates())

        assert outcome.corrections[0].matched_term is None

    def test_unavailable_provider_falls_back(self):
        """Test a provider without credentials uses the fallback."""
        fallback = RecordingFallback()
        corrector = GenerativeCorrector(FakeProvider(available=False), fallback=fallback)

        outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())

        assert fallback.calls == 1
        assert not outcome.used_generative
        assert outcome.corrected_transcript == TRANSCRIPT + " [rules]"
        assert outcome.warnings == ["Used rule-based correction (generative provider unavailable)"]

    def test_no_provider_falls_back(self):
        """Test a missing provider uses the fallback."""
        fallback = RecordingFallback()

        GenerativeCorrector(None, fallback=fallback).apply(TRANSCRIPT, low_words(), candidates())

        assert fallback.calls == 1

    @pytest.mark.parametrize(
        "error",
        [
            GenerativeError("model overloaded"),
            RateLimitError("Rate limit exceeded for Fake: chat completion"),
            ConfigurationError("GROQ_API_KEY not set"),
            RuntimeError("connection reset"),
        ],
    )
    def test_provider_errors_fall_back(self, error):
        """Test any provider failure uses the fallback with a warning."""
        fallback = RecordingFallback()
        corrector = GenerativeCorrector(FakeProvider(error=error), fallback=fallback)

        outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())

        assert fallback.calls == 1
        assert not outcome.used_generative
        assert outcome.warnings[0].startswith("Used rule-based correction (")

    def test_unparseable_answer_falls_back(self):
        """Test a prose answer without suggestions uses the fallback."""
        fallback = RecordingFallback()
        corrector = GenerativeCorrector(FakeProvider("No idea."), fallback=fallback)

        outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())

        assert outcome.warnings == ["Used rule-based correction (Could not parse generative response)"]

    def test_timeout_falls_back(self):
        """Test a slow provider is abandoned after the timeout."""
        release = threading.Event()
        fallback = RecordingFallback()
        corrector = GenerativeCorrector(
            FakeProvider(delay=release),
            timeout_seconds=0.05,
            fallback=fallback,
        )

        try:
            outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())
        finally:
            release.set()

        assert fallback.calls == 1
        assert "timed out after 0.05s" in outcome.warnings[0]

    def test_default_fallback_is_rules(self):
        """Test the rule-based corrector is used when none is given."""
        corrector = GenerativeCorrector(FakeProvider(available=False))

        outcome = corrector.apply(TRANSCRIPT, low_words(), candidates())

        assert outcome.corrected_transcript == "we use Kubernetes for deployment"
        assert outcome.corrections[0].match_type == MatchType.PHONETIC

    def test_no_candidates(self):
        """Test nothing is sent to the model without candidates."""
        provider = FakeProvider()

        outcome = GenerativeCorrector(provider).apply(TRANSCRIPT, low_words(), [])

        assert outcome.corrected_transcript == TRANSCRIPT
        assert provider.prompts == []
