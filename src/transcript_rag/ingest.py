"""Document ingestion: bytes in, session corpus terms out.

Decodes an uploaded document, extracts its terms and merges them into the
session's corpus. Failures are reported on the result, never raised.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from transcript_rag.errors import TranscriptRagError
from transcript_rag.logging import (
    get_logger,
    log_operation_complete,
    log_operation_failed,
    log_operation_start,
)
from transcript_rag.providers import DocumentTextProvider, WritableCorpusProvider
from transcript_rag.vocabulary.extraction import TermExtractor

logger = get_logger(__name__)

# Highest-ranked terms kept from a single document
MAX_TERMS_PER_DOCUMENT = 500


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""

    source_id: str
    term_count: int = 0
    new_terms: int = 0
    processing_time_ms: float = 0.0
    warnings: list[str] = field(default_factory=list)
    success: bool = True
    error: str | None = None


class DocumentIngestor:
    """Feeds uploaded documents into a session's term corpus.

    Example:
        ingestor = DocumentIngestor(PlainTextDocumentProvider(), TermExtractor(), corpus)
        result = ingestor.ingest("session-1", data, "text/markdown", "talk.md")
    """

    def __init__(
        self,
        text_provider: DocumentTextProvider,
        extractor: TermExtractor,
        corpus_provider: WritableCorpusProvider,
        max_terms: int = MAX_TERMS_PER_DOCUMENT,
    ):
        self.text_provider = text_provider
        self.extractor = extractor
        self.corpus_provider = corpus_provider
        self.max_terms = max_terms

    def ingest(
        self,
        session_id: str,
        data: bytes,
        content_type: str,
        source_id: str,
    ) -> IngestResult:
        """Decode, extract and index a document.

        Args:
            session_id: Session whose corpus receives the terms
            data: Raw document bytes
            content_type: Declared MIME type
            source_id: Identifier recorded on each term (e.g. file name)

        Returns:
            IngestResult; success is False when decoding or extraction failed
        """
        start = time.perf_counter()
        log = logger.with_context(session_id=session_id, source_id=source_id)
        log_operation_start(log, "document ingest", content_type=content_type, size=len(data))

        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        try:
            text = self.text_provider.to_text(data, content_type)
        except (TranscriptRagError, ValueError) as e:
            log_operation_failed(log, "document decode", e)
            return IngestResult(
                source_id=source_id,
                processing_time_ms=elapsed_ms(),
                success=False,
                error=f"Failed to read document: {e}",
            )

        if not text.strip():
            return IngestResult(
                source_id=source_id,
                processing_time_ms=elapsed_ms(),
                success=False,
                error="Document appears to be empty",
            )

        try:
            terms = self.extractor.extract(text, source_id)
        except (TranscriptRagError, ValueError) as e:
            log_operation_failed(log, "term extraction", e)
            return IngestResult(
                source_id=source_id,
                processing_time_ms=elapsed_ms(),
                success=False,
                error=f"Failed to extract terms: {e}",
            )

        warnings = []
        if len(terms) > self.max_terms:
            warnings.append(f"Kept the top {self.max_terms} of {len(terms)} extracted terms")
            terms = terms[:self.max_terms]
        if not terms:
            warnings.append("No terms found in document")

        new_terms = self.corpus_provider.add_terms(session_id, terms)

        duration = elapsed_ms()
        log_operation_complete(
            log, "document ingest", duration_ms=duration, terms=len(terms), new_terms=new_terms
        )
        return IngestResult(
            source_id=source_id,
            term_count=len(terms),
            new_terms=new_terms,
            processing_time_ms=duration,
            warnings=warnings,
        )
