"""Term corpus: the reference vocabulary of one session.

A corpus holds immutable ReferenceTerms keyed by normalized term. Adding
terms merges them (summed frequency, combined context, stronger category)
and produces a fresh phonetic index on next use.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator

from transcript_rag.models.terms import ReferenceTerm
from transcript_rag.storage import StorageError, atomic_write_json, read_json
from transcript_rag.vocabulary.extraction import merge_terms
from transcript_rag.vocabulary.index import PhoneticIndex

CORPUS_FORMAT_VERSION = 1


class TermCorpus:
    """Collection of reference terms with unique normalized keys.

    Example:
        corpus = TermCorpus(extract_terms(text, "slides.md"))
        corpus.add_terms(extract_terms(more_text, "notes.md"))
        "kubernetes" in corpus  # True
    """

    def __init__(self, terms: Iterable[ReferenceTerm] = ()):
        self._terms: dict[str, ReferenceTerm] = {}
        self._index: PhoneticIndex | None = None
        self.add_terms(terms)

    def add_terms(self, terms: Iterable[ReferenceTerm]) -> int:
        """Merge terms into the corpus.

        Args:
            terms: Terms to add

        Returns:
            Number of terms whose key was not already present
        """
        terms = list(terms)
        if not terms:
            return 0

        before = len(self._terms)
        merged = merge_terms([self._terms.values(), terms])
        self._terms = {t.normalized_term: t for t in merged}
        self._index = None
        return len(self._terms) - before

    def get(self, normalized_term: str) -> ReferenceTerm | None:
        """Look a term up by its key (case-insensitive)."""
        return self._terms.get(normalized_term.lower())

    def terms(self) -> list[ReferenceTerm]:
        """All terms in insertion order."""
        return list(self._terms.values())

    def __contains__(self, normalized_term: object) -> bool:
        return isinstance(normalized_term, str) and normalized_term.lower() in self._terms

    def __len__(self) -> int:
        return len(self._terms)

    def __iter__(self) -> Iterator[ReferenceTerm]:
        return iter(list(self._terms.values()))

    @property
    def phonetic_index(self) -> PhoneticIndex:
        """Code index over the current terms, built on first use."""
        if self._index is None:
            self._index = PhoneticIndex(self._terms.values())
        return self._index

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": CORPUS_FORMAT_VERSION,
            "term_count": len(self._terms),
            "terms": [t.to_payload() for t in self._terms.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TermCorpus":
        """Create from dictionary."""
        return cls(ReferenceTerm.model_validate(t) for t in data.get("terms", []))

    def to_json_file(self, path: Path | str) -> Path:
        """Save the corpus to a JSON file with atomic write."""
        path = Path(path)
        atomic_write_json(path, self.to_dict())
        return path

    @classmethod
    def from_json_file(cls, path: Path | str) -> "TermCorpus":
        """Load a corpus saved with to_json_file.

        Raises:
            NotFoundError: If the file doesn't exist
            StorageError: If the file is not a valid corpus
        """
        path = Path(path)
        data = read_json(path)
        if not isinstance(data, dict):
            raise StorageError(f"Invalid corpus file {path}: expected an object")
        try:
            return cls.from_dict(data)
        except ValueError as e:
            raise StorageError(f"Invalid corpus file {path}: {e}") from e
