"""Tests for request parsing and result serialization."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from transcript_rag.errors import ValidationError
from transcript_rag.models.correction import (
    CorrectionDetail,
    CorrectionResult,
    MatchType,
    WordConfidence,
    parse_correction_request,
    simple_word_confidences,
)
from transcript_rag.models.terms import (
    ReferenceTerm,
    TermCategory,
    higher_priority,
)


class TestReferenceTerm:
    """Tests for ReferenceTerm."""

    def test_weight(self):
        """Test ranking weight is frequency times category weight."""
        term = ReferenceTerm(
            term="Ada Lovelace", normalized_term="ada lovelace",
            frequency=2, category=TermCategory.PERSON,
        )

        assert term.weight == pytest.approx(3.0)
        assert term.word_count == 2

    def test_frozen(self):
        """Test terms cannot be changed in place."""
        term = ReferenceTerm(term="AWS", normalized_term="aws")

        with pytest.raises(PydanticValidationError):
            term.frequency = 4

    def test_frequency_must_be_positive(self):
        """Test frequency lower bound."""
        with pytest.raises(PydanticValidationError):
            ReferenceTerm(term="AWS", normalized_term="aws", frequency=0)

    def test_payload_uses_camel_case(self):
        """Test wire serialization."""
        payload = ReferenceTerm(term="AWS", normalized_term="aws", is_proper_noun=True).to_payload()

        assert payload["normalizedTerm"] == "aws"
        assert payload["isProperNoun"] is True
        assert payload["category"] == "general"

    def test_higher_priority(self):
        """Test category priority order."""
        assert higher_priority(TermCategory.GENERAL, TermCategory.PERSON) == TermCategory.PERSON
        assert higher_priority(TermCategory.ACRONYM, TermCategory.TECHNICAL) == TermCategory.ACRONYM


class TestParseCorrectionRequest:
    """Tests for parse_correction_request."""

    def test_full_payload(self):
        """Test a well-formed camelCase request."""
        request = parse_correction_request({
            "transcript": "we use cooper netties",
            "sessionId": "talk-1",
            "wordConfidences": [
                {"word": "we", "confidence": 0.95, "start": 0.0, "end": 0.2},
                {"word": "use", "confidence": 0.9, "start": 0.2, "end": 0.4},
                {"word": "cooper", "confidence": 0.4, "start": 0.4, "end": 0.8},
                {"word": "netties", "confidence": 0.35, "start": 0.8, "end": 1.2},
            ],
            "confidenceThreshold": 0.6,
            "language": "en-GB",
            "isFinal": False,
        })

        assert request.session_id == "talk-1"
        assert [w.word for w in request.word_confidences] == ["we", "use", "cooper", "netties"]
        assert request.word_confidences[2].confidence == 0.4
        assert request.confidence_threshold == 0.6
        assert request.language == "en-GB"
        assert request.is_final is False

    def test_snake_case_keys(self):
        """Test snake_case keys are accepted."""
        request = parse_correction_request({
            "transcript": "hello",
            "session_id": "s",
            "word_confidences": [{"word": "hello", "confidence": 1}],
        })

        assert request.session_id == "s"
        assert request.word_confidences[0].confidence == 1.0

    def test_simple_mode(self):
        """Test missing word confidences mark every word uncertain."""
        request = parse_correction_request({"transcript": "we use cooper", "sessionId": "s"})

        assert [w.word for w in request.word_confidences] == ["we", "use", "cooper"]
        assert {w.confidence for w in request.word_confidences} == {0.5}
        assert request.word_confidences[1].start == 0.5
        assert request.word_confidences[1].end == 1.0

    def test_defaults(self):
        """Test optional fields fall back to defaults."""
        request = parse_correction_request({
            "transcript": "",
            "sessionId": "s",
            "language": "",
            "isFinal": "yes",
        })

        assert request.word_confidences == []
        assert request.confidence_threshold is None
        assert request.language == "en"
        assert request.is_final is True

    def test_missing_timings(self):
        """Test synthetic timings for words without start/end."""
        request = parse_correction_request({
            "transcript": "a b",
            "sessionId": "s",
            "wordConfidences": [{"word": "a", "confidence": 0.5}, {"word": "b", "confidence": 0.5}],
        })

        assert (request.word_confidences[1].start, request.word_confidences[1].end) == (0.5, 1.0)

    def test_threshold_clamped(self):
        """Test out-of-range thresholds are clamped."""
        high = parse_correction_request({"transcript": "x", "sessionId": "s", "confidenceThreshold": 3})
        low = parse_correction_request({"transcript": "x", "sessionId": "s", "confidenceThreshold": -1})

        assert high.confidence_threshold == 1.0
        assert low.confidence_threshold == 0.0

    @pytest.mark.parametrize(
        "payload, message",
        [
            (["not", "a", "dict"], "Request body must be an object"),
            ({"sessionId": "s"}, "transcript must be a string"),
            ({"transcript": 5, "sessionId": "s"}, "transcript must be a string"),
            ({"transcript": "x"}, "sessionId must be a non-empty string"),
            ({"transcript": "x", "sessionId": "  "}, "sessionId must be a non-empty string"),
            ({"transcript": "x", "sessionId": "s", "wordConfidences": "x"}, "must be a list"),
            ({"transcript": "x", "sessionId": "s", "wordConfidences": [1]}, "must be objects"),
            (
                {"transcript": "x", "sessionId": "s", "wordConfidences": [{"confidence": 0.5}]},
                "word must be a string",
            ),
            (
                {"transcript": "x", "sessionId": "s", "wordConfidences": [{"word": "x", "confidence": 1.5}]},
                "between 0 and 1",
            ),
            (
                {"transcript": "x", "sessionId": "s", "wordConfidences": [{"word": "x", "confidence": True}]},
                "between 0 and 1",
            ),
            ({"transcript": "x", "sessionId": "s", "confidenceThreshold": "high"}, "must be a number"),
        ],
    )
    def test_invalid_payloads(self, payload, message):
        """Test malformed payloads raise ValidationError."""
        with pytest.raises(ValidationError, match=message):
            parse_correction_request(payload)

    def test_entry_index_in_context(self):
        """Test entry errors carry the offending index."""
        with pytest.raises(ValidationError) as exc_info:
            parse_correction_request({
                "transcript": "x",
                "sessionId": "s",
                "wordConfidences": [{"word": "a", "confidence": 0.2}, {"word": "b", "confidence": 2}],
            })

        assert exc_info.value.context == {"index": 1}


class TestSimpleWordConfidences:
    """Tests for simple_word_confidences."""

    def test_splits_on_whitespace(self):
        """Test every whitespace-separated word is returned."""
        words = simple_word_confidences("  we   use\ncooper ")

        assert [w.word for w in words] == ["we", "use", "cooper"]
        assert all(isinstance(w, WordConfidence) for w in words)

    def test_empty(self):
        """Test blank transcript."""
        assert simple_word_confidences("") == []


class TestCorrectionResult:
    """Tests for CorrectionResult."""

    def test_unmodified(self):
        """Test an untouched result."""
        result = CorrectionResult.unmodified("hello there", "s", processing_time_ms=1.5)

        assert result.corrected_transcript == result.original_transcript == "hello there"
        assert not result.was_modified
        assert result.corrections == []
        assert result.warnings is None

    def test_payload_omits_empty_warnings(self):
        """Test warnings are left out when there are none."""
        payload = CorrectionResult.unmodified("x", "s").to_payload()

        assert "warnings" not in payload
        assert payload["wasModified"] is False
        assert payload["sessionId"] == "s"

    def test_payload_shape(self):
        """Test a result with a correction serializes with camelCase keys."""
        term = ReferenceTerm(term="Kubernetes", normalized_term="kubernetes")
        result = CorrectionResult(
            original_transcript="we use cooper netties",
            corrected_transcript="we use Kubernetes",
            was_modified=True,
            corrections=[
                CorrectionDetail(
                    original="cooper netties",
                    corrected="Kubernetes",
                    reason="Phrase sounds like 'Kubernetes' (86%)",
                    confidence=0.86,
                    matched_term=term,
                    match_type=MatchType.PHONETIC,
                    position=2,
                )
            ],
            terms_retrieved=1,
            processing_time_ms=2.0,
            session_id="s",
            warnings=["Used rule-based correction (timeout)"],
        )

        payload = result.to_payload()

        assert payload["correctedTranscript"] == "we use Kubernetes"
        assert payload["termsRetrieved"] == 1
        assert payload["processingTimeMs"] == 2.0
        assert payload["warnings"] == ["Used rule-based correction (timeout)"]
        detail = payload["corrections"][0]
        assert detail["matchType"] == "phonetic"
        assert detail["matchedTerm"]["normalizedTerm"] == "kubernetes"
        assert detail["position"] == 2
