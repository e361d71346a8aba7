"""Prompt templates for generative transcript correction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from transcript_rag.models.correction import CorrectionCandidate, LowConfidenceWord

CORRECTION_SYSTEM_PROMPT = (
    "You are a precise transcription correction assistant. You only output valid JSON."
)


@dataclass
class CorrectionPromptBuilder:
    """Builder for transcript correction prompts.

    Attributes:
        context_chars: Characters of each term's context shown to the model
        max_terms: Maximum candidate terms listed in the prompt
    """

    context_chars: int = 100
    max_terms: int = 20

    def build_system_prompt(self) -> str:
        """Build the system prompt for correction.

        Returns:
            System prompt string
        """
        return CORRECTION_SYSTEM_PROMPT

    def _format_terms(self, candidates: Sequence[CorrectionCandidate]) -> str:
        lines = []
        for candidate in candidates[:self.max_terms]:
            term = candidate.term
            context = term.context[:self.context_chars]
            if len(term.context) > self.context_chars:
                context += "..."
            lines.append(f'- "{term.term}" ({term.category.value}): {context}')
        return "\n".join(lines)

    def build_correction_prompt(
        self,
        transcript: str,
        low_words: Sequence[LowConfidenceWord],
        candidates: Sequence[CorrectionCandidate],
    ) -> str:
        """Build the correction prompt for one transcript.

        Args:
            transcript: Transcript as recognized
            low_words: Words below the confidence threshold
            candidates: Retrieved candidate terms, best first

        Returns:
            Correction prompt string
        """
        low_section = ", ".join(
            f'"{w.word}" (confidence: {w.confidence:.0%})' for w in low_words
        ) or "(none reported)"

        return f"""Fix misheard words in a speech transcript using terms from the speaker's own presentation materials.

## Speaker's Vocabulary (from their uploaded content):
{self._format_terms(candidates)}

## Original Transcript:
"{transcript}"

## Words with Low Transcription Confidence:
{low_section}

## Instructions:
1. ONLY replace words that sound similar to a term from the speaker's vocabulary
2. Focus on the low-confidence words, but also check the words next to them
3. Keep the original sentence structure and grammar
4. A phrase can sound like a single term ("cooper netties" sounds like "Kubernetes")
5. When unsure about a correction, keep the original words
6. Technical terms, names and acronyms are the most likely to be misheard

## Response Format:
Return ONLY a JSON object with this exact structure:
{{
  "correctedTranscript": "the full corrected transcript",
  "corrections": [
    {{
      "original": "misheard word or phrase",
      "corrected": "correct term",
      "reason": "brief explanation"
    }}
  ]
}}

If no corrections are needed, return the transcript unchanged with an empty "corrections" list.

Return ONLY valid JSON, no other text."""
