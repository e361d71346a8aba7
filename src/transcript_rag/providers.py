"""Collaborator interfaces for the correction pipeline.

The pipeline only depends on these abstractions:
- TermCorpusProvider: the indexed reference terms of a session
- SemanticSearchProvider: embedding-based nearest-neighbour term search
- DocumentTextProvider: raw document bytes to plain text

Reference in-memory/plain-text implementations are provided for the CLI
and tests. Generative completion providers live in ``transcript_rag.llm``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from transcript_rag.errors import ValidationError
from transcript_rag.logging import get_logger
from transcript_rag.models.terms import ReferenceTerm
from transcript_rag.vocabulary.corpus import TermCorpus

logger = get_logger(__name__)


@dataclass(frozen=True)
class SemanticHit:
    """A term returned by semantic search with its similarity score."""

    term: ReferenceTerm
    semantic_score: float


class TermCorpusProvider(ABC):
    """Source of a session's reference terms."""

    @abstractmethod
    def get_terms(self, session_id: str) -> list[ReferenceTerm]:
        """Return every indexed term for the session."""
        pass

    @abstractmethod
    def has_content(self, session_id: str) -> bool:
        """Check whether the session has any indexed terms."""
        pass


class WritableCorpusProvider(TermCorpusProvider):
    """Corpus provider that also accepts newly extracted terms."""

    @abstractmethod
    def add_terms(self, session_id: str, terms: Iterable[ReferenceTerm]) -> int:
        """Merge terms into the session's corpus.

        Returns:
            Number of new (previously unseen) terms
        """
        pass


class SemanticSearchProvider(ABC):
    """Embedding-based search over a session's terms."""

    @abstractmethod
    def search(self, session_id: str, query: str, top_k: int) -> list[SemanticHit]:
        """Return up to top_k hits ranked by semantic score."""
        pass


class DocumentTextProvider(ABC):
    """Converts raw document bytes to plain text."""

    @abstractmethod
    def to_text(self, data: bytes, content_type: str) -> str:
        """Decode a document.

        Raises:
            ValidationError: If the content type is not supported or the
                bytes cannot be decoded
        """
        pass


class InMemoryCorpusProvider(WritableCorpusProvider):
    """Keeps one TermCorpus per session in process memory.

    Each add replaces the session's corpus with a merged copy, so readers
    holding an earlier snapshot never see a partial update.
    """

    def __init__(self):
        self._sessions: dict[str, TermCorpus] = {}
        self._lock = threading.Lock()

    def get_corpus(self, session_id: str) -> TermCorpus:
        """Snapshot of the session's corpus (empty if unknown)."""
        return self._sessions.get(session_id) or TermCorpus()

    def get_terms(self, session_id: str) -> list[ReferenceTerm]:
        return self.get_corpus(session_id).terms()

    def has_content(self, session_id: str) -> bool:
        return len(self.get_corpus(session_id)) > 0

    def add_terms(self, session_id: str, terms: Iterable[ReferenceTerm]) -> int:
        terms = list(terms)
        with self._lock:
            current = self._sessions.get(session_id)
            updated = TermCorpus(current.terms() if current else ())
            added = updated.add_terms(terms)
            self._sessions[session_id] = updated

        logger.debug(
            f"Indexed {len(terms)} terms for session",
            extra={"session_id": session_id, "new_terms": added, "total": len(updated)},
        )
        return added

    def clear_session(self, session_id: str) -> int:
        """Drop a session's corpus.

        Returns:
            Number of terms removed
        """
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        return len(removed) if removed else 0

    def session_ids(self) -> list[str]:
        return sorted(self._sessions)

    def session_stats(self, session_id: str) -> dict[str, Any]:
        """Term counts for a session, by category and by source."""
        terms = self.get_terms(session_id)
        return {
            "session_id": session_id,
            "term_count": len(terms),
            "categories": dict(Counter(t.category.value for t in terms)),
            "sources": dict(Counter(t.source_id for t in terms)),
        }


class PlainTextDocumentProvider(DocumentTextProvider):
    """Decodes plain text and markdown documents as UTF-8."""

    SUPPORTED_TYPES = frozenset({"text/plain", "text/markdown", "text/x-markdown"})

    def to_text(self, data: bytes, content_type: str) -> str:
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type not in self.SUPPORTED_TYPES:
            raise ValidationError(
                f"Unsupported document type: {content_type}",
                context={"supported": ", ".join(sorted(self.SUPPORTED_TYPES))},
            )

        try:
            # utf-8-sig drops a leading byte order mark
            return data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError(f"Document is not valid UTF-8: {e.reason}") from e
