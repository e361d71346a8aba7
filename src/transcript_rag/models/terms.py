"""Reference term models for transcript-rag.

A reference term is one entry of a session's vocabulary corpus: a surface
form extracted from an uploaded document, with its context snippet,
phonetic fingerprint and category.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TermCategory(str, Enum):
    """Category of an extracted term."""

    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    PRODUCT = "product"
    TECHNICAL = "technical"
    ACRONYM = "acronym"
    HEADING = "heading"
    GENERAL = "general"


# Highest priority first; merging keeps the earlier category of the two
CATEGORY_PRIORITY: tuple[TermCategory, ...] = (
    TermCategory.PERSON,
    TermCategory.ORGANIZATION,
    TermCategory.PRODUCT,
    TermCategory.LOCATION,
    TermCategory.ACRONYM,
    TermCategory.TECHNICAL,
    TermCategory.HEADING,
    TermCategory.GENERAL,
)

# Ranking multiplier applied to term frequency
CATEGORY_WEIGHTS: dict[TermCategory, float] = {
    TermCategory.PERSON: 1.5,
    TermCategory.ORGANIZATION: 1.4,
    TermCategory.PRODUCT: 1.3,
    TermCategory.LOCATION: 1.2,
    TermCategory.ACRONYM: 1.1,
    TermCategory.TECHNICAL: 1.0,
    TermCategory.HEADING: 0.9,
    TermCategory.GENERAL: 0.8,
}


def higher_priority(a: TermCategory, b: TermCategory) -> TermCategory:
    """Return whichever of two categories ranks higher."""
    if CATEGORY_PRIORITY.index(b) < CATEGORY_PRIORITY.index(a):
        return b
    return a


class PayloadModel(BaseModel):
    """Base model that serializes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class ReferenceTerm(PayloadModel):
    """A term extracted from a reference document.

    Instances are immutable; merging produces new instances.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    term: str  # Surface form as written in the document
    normalized_term: str  # Lowercase key, unique within a corpus
    context: str = ""  # Snippet of surrounding sentences
    source_id: str = ""
    phonetic_code: str = ""
    frequency: int = Field(default=1, ge=1)
    is_proper_noun: bool = False
    category: TermCategory = TermCategory.GENERAL
    source_location: str | None = None  # e.g. "heading"

    @property
    def weight(self) -> float:
        """Ranking score used when ordering extracted terms."""
        return self.frequency * CATEGORY_WEIGHTS[self.category]

    @property
    def word_count(self) -> int:
        """Number of whitespace-separated words in the term."""
        return len(self.term.split())
