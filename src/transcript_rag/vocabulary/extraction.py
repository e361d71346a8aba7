"""Term extraction from reference documents.

Turns plain text into a ranked, classified list of reference terms:
- Acronyms, technical identifiers and proper nouns
- Frequently repeated words
- Multi-word proper-noun phrases ("Bank of England")
- Document headings

Each term carries a context snippet (one or two sentences) and a Soundex
phrase code for sound-alike lookup.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable

from transcript_rag.config import ExtractionSettings
from transcript_rag.logging import get_logger
from transcript_rag.models.terms import (
    ReferenceTerm,
    TermCategory,
    higher_priority,
)
from transcript_rag.vocabulary.lexicon import (
    LOCATION_INDICATORS,
    ORG_SUFFIXES,
    PERSON_PREFIXES,
    PHRASE_CONNECTORS,
    STOP_WORDS,
)
from transcript_rag.vocabulary.phonetic import phrase_code

logger = get_logger(__name__)

# Stands in for protected abbreviation periods while splitting sentences
_PLACEHOLDER = "\x00"

_ABBREVIATION = re.compile(r"\b(Mr|Mrs|Ms|Dr|Prof|Inc|Ltd|Corp|Jr|Sr|vs|etc|e\.g|i\.e)\.", re.IGNORECASE)
_SINGLE_LETTER = re.compile(r"\b([A-Z])\.")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])|(?<=[.!?])$")

_INDEX_CHARS = re.compile(r"[^a-z0-9'-]")
_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9'_.-]")
_HAS_LETTER = re.compile(r"[A-Za-z]")

_ACRONYM_PLAIN = re.compile(r"[A-Z]{2,6}")
_ACRONYM_DIGITS = re.compile(r"[A-Z0-9]{2,6}")
_ACRONYM_DOTTED = re.compile(r"(?:[A-Z]\.){2,}|(?:[A-Z]\.)+[A-Z]")

_TECHNICAL_PATTERNS = (
    re.compile(r"^[a-z]+[A-Z][a-zA-Z]*$"),  # camelCase
    re.compile(r"^[A-Z][a-z]+[A-Z][a-zA-Z]*$"),  # PascalCase
    re.compile(r"^[a-zA-Z]+[_-][a-zA-Z_-]+$"),  # snake_case / kebab-case
    re.compile(r"[a-zA-Z]+\d+[a-zA-Z]*|\d+[a-zA-Z]+"),  # v2, 3D, OAuth2
    re.compile(r"\.[a-z]{2,4}$", re.IGNORECASE),  # file extension
)
_HEX = re.compile(r"^(?=.*\d)(?=.*[a-f])[a-f0-9]{6,}$", re.IGNORECASE)

_PERSON_VERBS = re.compile(
    r"\b(said|says|told|asked|explained|noted|added|wrote|founded|led|manages?|directs?)\b",
    re.IGNORECASE,
)
_ORG_CUES = re.compile(
    r"\b(company|firm|corporation|organization|founded|headquartered|acquired|merged)\b",
    re.IGNORECASE,
)
_LOCATION_CUES = re.compile(r"\b(located|based|headquarters|capital|city of)\b", re.IGNORECASE)
_LOCATION_WORDS = re.compile(r"\b(" + "|".join(LOCATION_INDICATORS) + r")\b", re.IGNORECASE)
_PRODUCT_CUES = (
    re.compile(
        r"\b(version|release|feature|update|launch|product|platform|app|application|software)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(introducing|announcing|new|latest)\b", re.IGNORECASE),
)

_PROPER_NOUN_PHRASE = re.compile(
    r"\b[A-Z][a-z]+(?:[ \t]+(?:(?:" + "|".join(PHRASE_CONNECTORS) + r")[ \t]+)?[A-Z][a-z]+)+\b"
)
_GENERIC_PHRASE_START = re.compile(
    r"^(This|That|These|Those|There|Here|When|Where|What|Why|How)\s", re.IGNORECASE
)

_HEADING_PATTERNS = (
    re.compile(r"^#{1,6}[ \t]+(.+)$", re.MULTILINE),  # Markdown
    re.compile(r"^([A-Z][A-Z ]+)$", re.MULTILINE),  # ALL CAPS line
    re.compile(r"^\d+(?:\.\d+)*\.?[ \t]+([A-Z].+)$", re.MULTILINE),  # 1. / 2.3 numbered
)


def split_sentences(text: str) -> list[str]:
    """Split text into sentences without breaking on abbreviations.

    Title and corporate abbreviations ("Dr.", "Inc.") and single capital
    initials ("J.") are protected before splitting on terminal punctuation
    followed by a capitalized word or end of text.

    Args:
        text: Plain text

    Returns:
        Non-empty, stripped sentences; [] for blank input
    """
    if not text or not text.strip():
        return []

    protected = _ABBREVIATION.sub(lambda m: m.group(1) + _PLACEHOLDER, text)
    protected = _SINGLE_LETTER.sub(lambda m: m.group(1) + _PLACEHOLDER, protected)

    sentences = []
    for part in _SENTENCE_BOUNDARY.split(protected):
        sentence = part.replace(_PLACEHOLDER, ".").strip()
        if sentence:
            sentences.append(sentence)
    return sentences


def _index_key(word: str) -> str:
    return _INDEX_CHARS.sub("", word.lower())


def build_sentence_index(sentences: list[str]) -> dict[str, list[int]]:
    """Map each lowercase word to the sentences it appears in.

    Returns:
        word -> ascending, unique sentence indices
    """
    index: dict[str, list[int]] = {}
    for i, sentence in enumerate(sentences):
        for word in sentence.split():
            key = _index_key(word)
            if len(key) < 2:
                continue
            indices = index.setdefault(key, [])
            if not indices or indices[-1] != i:
                indices.append(i)
    return index


def is_acronym(word: str) -> bool:
    """Check for NASA, B2B or U.S.A style acronyms."""
    if _ACRONYM_PLAIN.fullmatch(word):
        return True
    if _ACRONYM_DIGITS.fullmatch(word) and re.search(r"[A-Z]", word):
        return True
    return bool(_ACRONYM_DOTTED.fullmatch(word))


def is_technical_term(word: str) -> bool:
    """Check for identifiers such as camelCase, snake_case, OAuth2 or config.yaml."""
    if any(pattern.search(word) for pattern in _TECHNICAL_PATTERNS):
        return True
    return bool(_HEX.match(word))


def is_proper_noun(word: str, at_sentence_start: bool) -> bool:
    """Check whether a word looks like a proper noun.

    A capitalized word at the start of a sentence needs more evidence: it
    must not be a stop-word.
    """
    if not word or not word[0].isupper() or not re.search(r"[a-z]", word):
        return False

    if at_sentence_start:
        return len(word) > 1 and word.lower() not in STOP_WORDS

    return True


def categorize_term(term: str, context: str, from_heading: bool = False) -> TermCategory:
    """Classify a term from its shape and the words around it.

    Args:
        term: Surface form
        context: Context snippet the term was found in
        from_heading: Whether the term came from the heading scan

    Returns:
        The term's category
    """
    if from_heading:
        return TermCategory.HEADING
    if is_acronym(term):
        return TermCategory.ACRONYM
    if is_technical_term(term):
        return TermCategory.TECHNICAL

    term_pattern = re.escape(term.lower())
    context_lower = context.lower()

    prefix_pattern = r"\b(" + "|".join(PERSON_PREFIXES) + r")\.?\s+" + term_pattern
    if _PERSON_VERBS.search(context_lower) or re.search(prefix_pattern, context_lower):
        return TermCategory.PERSON

    suffix_pattern = term_pattern + r"\s+(" + "|".join(ORG_SUFFIXES) + r")\b"
    if re.search(suffix_pattern, context_lower) or _ORG_CUES.search(context_lower):
        return TermCategory.ORGANIZATION

    if term.lower() in context_lower and _LOCATION_WORDS.search(context_lower):
        return TermCategory.LOCATION
    if _LOCATION_CUES.search(context_lower):
        return TermCategory.LOCATION

    if any(pattern.search(context_lower) for pattern in _PRODUCT_CUES):
        return TermCategory.PRODUCT

    return TermCategory.GENERAL


def extract_context(
    term: str,
    index: dict[str, list[int]],
    sentences: list[str],
    max_sentences: int = 2,
) -> str:
    """Get the sentences surrounding the first occurrence of a term.

    Args:
        term: Word or phrase
        index: Sentence index from build_sentence_index
        sentences: Sentences the index was built from
        max_sentences: Matching sentence plus up to this many minus one after it

    Returns:
        Context snippet, a ±100 character window when no sentence matches,
        or "" when the term never occurs
    """
    words = term.split()
    if not words:
        return ""

    indices = index.get(_index_key(words[0]), [])
    term_lower = term.lower()
    if len(words) > 1:
        indices = [i for i in indices if term_lower in sentences[i].lower()]

    if indices:
        first = indices[0]
        return " ".join(sentences[first:first + max_sentences]).strip()

    full_text = " ".join(sentences)
    position = full_text.lower().find(term_lower)
    if position == -1:
        return ""

    start = max(0, position - 100)
    end = min(len(full_text), position + len(term) + 100)
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(full_text) else ""
    return prefix + full_text[start:end].strip() + suffix


def term_phonetic_code(term: str) -> str:
    """Soundex phrase code stored on a ReferenceTerm."""
    return phrase_code(term, "soundex")


def extract_proper_noun_phrases(text: str, max_phrases: int = 200) -> list[str]:
    """Find runs of two or more capitalized words.

    Runs may be joined by of/the/and/for ("Bank of England"). Phrases that
    open with a demonstrative or question word are dropped.

    Args:
        text: Plain text
        max_phrases: Cap on the number of phrases returned

    Returns:
        Unique phrases in first-seen order
    """
    phrases: dict[str, None] = {}
    for match in _PROPER_NOUN_PHRASE.finditer(text):
        if len(phrases) >= max_phrases:
            break
        phrase = match.group(0)
        if not _GENERIC_PHRASE_START.match(phrase):
            phrases.setdefault(phrase, None)
    return list(phrases)


def extract_headings(text: str) -> list[tuple[str, str]]:
    """Find markdown, ALL-CAPS and numbered heading lines.

    Returns:
        (heading text, full line) pairs for headings of 3-100 characters
    """
    headings = []
    for pattern in _HEADING_PATTERNS:
        for match in pattern.finditer(text):
            heading = match.group(1).strip().rstrip("#").strip()
            if 3 <= len(heading) <= 100:
                headings.append((heading, match.group(0).strip()))
    return headings


def _clean_token(token: str) -> str:
    return _TOKEN_CHARS.sub("", token).strip("'_.-")


class TermExtractor:
    """Extracts reference terms from plain text.

    Example:
        extractor = TermExtractor()
        terms = extractor.extract(text, source_id="keynote.md")
    """

    def __init__(self, settings: ExtractionSettings | None = None):
        self.settings = settings or ExtractionSettings()

    def extract(self, text: str, source_id: str) -> list[ReferenceTerm]:
        """Extract and rank terms from a document.

        Args:
            text: Plain text of the document
            source_id: Identifier recorded on every term

        Returns:
            Terms ranked by frequency times category weight; [] for empty text
        """
        if not text or not text.strip():
            return []

        sentences = split_sentences(text)
        index = build_sentence_index(sentences)
        sentence_starters = {_clean_token(s.split()[0]) for s in sentences if s.split()}

        tokens = [_clean_token(t) for t in text.split()]
        tokens = [
            t for t in tokens
            if len(t) >= self.settings.min_word_length and _HAS_LETTER.search(t)
        ]
        frequencies = Counter(t.lower() for t in tokens)

        seen: dict[str, ReferenceTerm] = {}
        self._extract_words(tokens, frequencies, sentence_starters, index, sentences, source_id, seen)
        if self.settings.extract_phrases:
            self._extract_phrases(text, frequencies, index, sentences, source_id, seen)
        self._extract_headings(text, source_id, seen)

        terms = sorted(seen.values(), key=lambda t: t.weight, reverse=True)

        categories = Counter(t.category.value for t in terms)
        logger.info(
            f"Extracted {len(terms)} terms from {source_id}",
            extra={"categories": ", ".join(f"{k}:{v}" for k, v in categories.items())},
        )
        return terms

    def _extract_words(
        self,
        tokens: list[str],
        frequencies: Counter,
        sentence_starters: set[str],
        index: dict[str, list[int]],
        sentences: list[str],
        source_id: str,
        seen: dict[str, ReferenceTerm],
    ) -> None:
        settings = self.settings
        for word in tokens:
            normalized = word.lower()
            if normalized in STOP_WORDS or normalized in seen:
                continue

            frequency = frequencies[normalized]
            category: TermCategory | None = None

            if settings.extract_acronyms and is_acronym(word):
                category = TermCategory.ACRONYM
            elif settings.extract_technical_terms and is_technical_term(word):
                category = TermCategory.TECHNICAL
            elif is_proper_noun(word, word in sentence_starters):
                pass
            elif frequency < settings.min_frequency_for_general:
                continue

            context = extract_context(word, index, sentences, settings.max_context_sentences)
            if category is None:
                category = categorize_term(word, context)

            seen[normalized] = ReferenceTerm(
                term=word,
                normalized_term=normalized,
                context=context,
                source_id=source_id,
                phonetic_code=term_phonetic_code(word),
                frequency=frequency,
                is_proper_noun=is_proper_noun(word, False),
                category=category,
            )

    def _extract_phrases(
        self,
        text: str,
        frequencies: Counter,
        index: dict[str, list[int]],
        sentences: list[str],
        source_id: str,
        seen: dict[str, ReferenceTerm],
    ) -> None:
        settings = self.settings
        for phrase in extract_proper_noun_phrases(text, settings.max_phrases):
            normalized = phrase.lower()
            if normalized in seen or normalized in STOP_WORDS:
                continue

            words = normalized.split()
            if all(w in STOP_WORDS for w in words):
                continue
            if len(words) > settings.max_phrase_length:
                continue

            context = extract_context(phrase, index, sentences, settings.max_context_sentences)
            # Phrases are rarer than their rarest word
            frequency = max(1, min(frequencies.get(w, 1) for w in words) // 2)

            seen[normalized] = ReferenceTerm(
                term=phrase,
                normalized_term=normalized,
                context=context,
                source_id=source_id,
                phonetic_code=term_phonetic_code(phrase),
                frequency=frequency,
                is_proper_noun=True,
                category=categorize_term(phrase, context),
            )

    def _extract_headings(self, text: str, source_id: str, seen: dict[str, ReferenceTerm]) -> None:
        for heading, line in extract_headings(text):
            normalized = heading.lower()
            if normalized in seen or normalized in STOP_WORDS:
                continue

            seen[normalized] = ReferenceTerm(
                term=heading,
                normalized_term=normalized,
                context=line,
                source_id=source_id,
                phonetic_code=term_phonetic_code(heading),
                frequency=1,
                is_proper_noun=False,
                category=categorize_term(heading, line, from_heading=True),
                source_location="heading",
            )


def extract_terms(
    text: str,
    source_id: str,
    settings: ExtractionSettings | None = None,
) -> list[ReferenceTerm]:
    """Extract ranked reference terms from text."""
    return TermExtractor(settings).extract(text, source_id)


def merge_terms(term_lists: Iterable[Iterable[ReferenceTerm]]) -> list[ReferenceTerm]:
    """Merge term lists from several documents.

    Terms are unioned by normalized_term: frequencies are summed, new
    contexts are appended with " | " unless their first 50 characters are
    already present, and the higher-priority category wins.

    Returns:
        Merged terms in first-seen order
    """
    merged: dict[str, ReferenceTerm] = {}

    for terms in term_lists:
        for term in terms:
            existing = merged.get(term.normalized_term)
            if existing is None:
                merged[term.normalized_term] = term
                continue

            context = existing.context
            if not context:
                context = term.context
            elif term.context[:50] not in context:
                context = f"{context} | {term.context}"

            merged[term.normalized_term] = existing.model_copy(
                update={
                    "frequency": existing.frequency + term.frequency,
                    "context": context,
                    "category": higher_priority(existing.category, term.category),
                }
            )

    return list(merged.values())


def filter_terms_by_category(
    terms: Iterable[ReferenceTerm],
    categories: Iterable[TermCategory],
) -> list[ReferenceTerm]:
    """Keep only terms in the given categories."""
    wanted = set(categories)
    return [t for t in terms if t.category in wanted]


def top_terms(terms: list[ReferenceTerm], n: int) -> list[ReferenceTerm]:
    """First n terms of an already ranked list."""
    return terms[:max(0, n)]


def find_phonetic_code_matches(
    terms: Iterable[ReferenceTerm],
    word: str,
    max_results: int = 5,
) -> list[ReferenceTerm]:
    """Find terms by stored phonetic code.

    Exact code matches come first, then terms whose code contains the
    word's code or is contained in it (multi-word terms).
    """
    code = term_phonetic_code(word)
    if not code:
        return []

    terms = list(terms)
    exact = [t for t in terms if t.phonetic_code == code]
    partial = [
        t for t in terms
        if t.phonetic_code
        and t.phonetic_code != code
        and (code in t.phonetic_code or t.phonetic_code in code)
    ]
    return (exact + partial)[:max_results]
