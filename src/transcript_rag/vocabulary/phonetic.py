"""Phonetic encoding algorithms for fuzzy matching.

Implements Soundex and Metaphone codes for words and phrases, Levenshtein
distance, and the similarity scoring used to match mis-heard transcript
spans (e.g. "cooper netties") against reference terms ("Kubernetes").

Every function here is pure: no I/O, and no exceptions on string input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Literal

from transcript_rag.models.terms import ReferenceTerm
from transcript_rag.vocabulary.lexicon import STOP_WORDS

if TYPE_CHECKING:
    from transcript_rag.vocabulary.index import PhoneticIndex

Algorithm = Literal["soundex", "metaphone"]
MatchedBy = Literal["exact", "soundex", "metaphone", "word_by_word"]

# Separator between per-word codes in a phrase code
CODE_SEPARATOR = "-"
# Maximum number of significant words encoded in a phrase code
MAX_PHRASE_WORDS = 3

_NON_LETTERS = re.compile(r"[^A-Za-z]")

_SOUNDEX_CODES = {
    "B": "1", "F": "1", "P": "1", "V": "1",
    "C": "2", "G": "2", "J": "2", "K": "2", "Q": "2", "S": "2", "X": "2", "Z": "2",
    "D": "3", "T": "3",
    "L": "4",
    "M": "5", "N": "5",
    "R": "6",
}

_VOWELS = "AEIOU"


@dataclass(frozen=True)
class SimilarityScore:
    """Result of comparing two strings phonetically."""

    score: float
    matched_by: MatchedBy
    query_code: str
    term_code: str


@dataclass(frozen=True)
class PhoneticMatch:
    """A reference term matched against a query."""

    term: ReferenceTerm
    similarity: float
    matched_by: MatchedBy
    query_code: str
    term_code: str


def _letters(word: str) -> str:
    return _NON_LETTERS.sub("", word).upper()


def soundex(word: str) -> str:
    """Generate the American Soundex code for a word.

    Soundex encodes consonants by sound, ignoring vowels (except at start),
    to group words that sound similar together. H and W do not separate
    equal codes; vowels and Y do.

    Args:
        word: Word to encode

    Returns:
        Four-character code (e.g. "K165" for "Kubernetes"), or "" when the
        word has no letters
    """
    letters = _letters(word)
    if not letters:
        return ""

    result = [letters[0]]
    prev_code = _SOUNDEX_CODES.get(letters[0], "")

    for char in letters[1:]:
        if char in "HW":
            continue
        code = _SOUNDEX_CODES.get(char, "")
        if code and code != prev_code:
            result.append(code)
            if len(result) == 4:
                break
        prev_code = code

    return "".join(result).ljust(4, "0")


def metaphone(word: str) -> str:
    """Generate a Metaphone code for a word.

    Metaphone is a more expressive code than Soundex, handling English
    digraphs and silent letters. Vowels are kept only at the start.

    Args:
        word: Word to encode

    Returns:
        Metaphone code string ("" when the word has no letters)
    """
    word = _letters(word)
    if not word:
        return ""

    length = len(word)
    result: list[str] = []
    i = 0

    # Silent first letter
    if word.startswith(("KN", "GN", "PN", "AE", "WR")):
        i = 1
    elif word[0] == "X":
        result.append("S")
        i = 1

    while i < length:
        char = word[i]
        prev_char = word[i - 1] if i > 0 else ""
        next_char = word[i + 1] if i + 1 < length else ""
        next_next = word[i + 2] if i + 2 < length else ""
        next_is_vowel = next_char != "" and next_char in _VOWELS

        # Doubled letters sound once (except CC as in "accent")
        if char == prev_char and char != "C":
            i += 1
            continue

        if char in _VOWELS:
            if i == 0:
                result.append(char)

        elif char == "B":
            # Silent in a final "MB"
            if not (prev_char == "M" and i == length - 1):
                result.append("P")

        elif char == "C":
            if next_char in ("I", "E", "Y"):
                result.append("S")
            elif next_char == "H":
                result.append("K" if prev_char in ("A", "O", "U") else "X")
                i += 1
            elif next_char == "K":
                result.append("K")
                i += 1
            else:
                result.append("K")

        elif char == "D":
            if next_char == "G" and next_next in ("E", "I", "Y"):
                result.append("J")
                i += 1
            else:
                result.append("T")

        elif char == "G":
            if next_char == "H" and next_next == "T":
                i += 1
            elif next_char == "N" and i == length - 2:
                pass
            elif next_char in ("I", "E", "Y"):
                result.append("J")
            elif next_char != "H":
                result.append("K")

        elif char == "H":
            if (prev_char == "" or prev_char not in _VOWELS) and next_is_vowel:
                result.append("H")

        elif char == "K":
            if prev_char != "C":
                result.append("K")

        elif char == "P":
            if next_char == "H":
                result.append("F")
                i += 1
            else:
                result.append("P")

        elif char == "Q":
            result.append("K")

        elif char == "S":
            if next_char == "H":
                result.append("X")
                i += 1
            elif next_char == "I" and next_next in ("O", "A"):
                result.append("X")
            else:
                result.append("S")

        elif char == "T":
            if next_char == "H":
                result.append("0")  # TH sound
                i += 1
            elif next_char == "I" and next_next in ("O", "A"):
                result.append("X")
            else:
                result.append("T")

        elif char == "V":
            result.append("F")

        elif char in ("W", "Y"):
            if next_is_vowel:
                result.append(char)

        elif char == "X":
            result.append("KS")

        elif char == "Z":
            result.append("S")

        else:
            # F, J, L, M, N, R encode as themselves
            result.append(char)

        i += 1

    return "".join(result)


def _significant_words(phrase: str) -> list[str]:
    tokens = [t for t in (_NON_LETTERS.sub("", w) for w in phrase.split()) if t]
    significant = [t for t in tokens if t.lower() not in STOP_WORDS]
    # A phrase made only of stop-words still gets a code
    return (significant or tokens)[:MAX_PHRASE_WORDS]


def phrase_code(phrase: str, algorithm: Algorithm = "soundex") -> str:
    """Generate a phonetic code for a phrase.

    Stop-words are dropped and at most the first three significant words
    are encoded, joined with "-". Both algorithms share this policy.

    Args:
        phrase: Word or phrase to encode
        algorithm: "soundex" or "metaphone"

    Returns:
        Phrase code (e.g. "KPR-NTS" for "cooper netties" with metaphone)
    """
    encode = metaphone if algorithm == "metaphone" else soundex
    return CODE_SEPARATOR.join(encode(w) for w in _significant_words(phrase))


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein (edit) distance between two strings.

    The Levenshtein distance is the minimum number of single-character
    edits (insertions, deletions, substitutions) required to change
    one string into the other. Comparison is case-sensitive.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Number of edits needed
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    # Use two rows for space optimization
    previous_row = list(range(len(s2) + 1))
    current_row = [0] * (len(s2) + 1)

    for i, c1 in enumerate(s1):
        current_row[0] = i + 1

        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)

            current_row[j + 1] = min(insertions, deletions, substitutions)

        previous_row, current_row = current_row, previous_row

    return previous_row[len(s2)]


def code_similarity(code1: str, code2: str) -> float:
    """Distance-normalized similarity of two codes (0.0 when either is empty)."""
    if not code1 or not code2:
        return 0.0
    if code1 == code2:
        return 1.0
    return 1.0 - levenshtein_distance(code1, code2) / max(len(code1), len(code2))


def _word_by_word(query_words: list[str], target_words: list[str]) -> float:
    if not query_words or not target_words:
        return 0.0

    target_codes = [soundex(w) for w in target_words]
    total = 0.0
    for word in query_words:
        code = soundex(word)
        total += max(code_similarity(code, t) for t in target_codes)

    # 10% penalty per word of difference, never below half
    penalty = max(0.5, 1.0 - 0.1 * abs(len(query_words) - len(target_words)))
    return (total / len(query_words)) * penalty


def similarity(query: str, target: str) -> SimilarityScore:
    """Score how alike two words or phrases sound.

    Case-insensitive equality of non-empty text scores 1.0, even when the
    text is only whitespace. Otherwise the best of the Soundex
    phrase-code, Metaphone phrase-code and word-by-word alignment scores
    wins; ties prefer Soundex, then Metaphone.

    Args:
        query: Heard text
        target: Reference text

    Returns:
        SimilarityScore with the winning algorithm and its codes
    """
    normalized_query = query.strip().lower()
    normalized_target = target.strip().lower()

    identical = bool(query) and query.lower() == target.lower()
    if identical or (normalized_query and normalized_query == normalized_target):
        return SimilarityScore(1.0, "exact", normalized_query, normalized_target)

    if not normalized_query or not normalized_target:
        return SimilarityScore(0.0, "soundex", "", "")

    query_soundex = phrase_code(query, "soundex")
    target_soundex = phrase_code(target, "soundex")
    soundex_score = code_similarity(query_soundex, target_soundex)

    query_meta = phrase_code(query, "metaphone")
    target_meta = phrase_code(target, "metaphone")
    meta_score = code_similarity(query_meta, target_meta)

    word_score = _word_by_word(normalized_query.split(), normalized_target.split())

    if soundex_score >= meta_score and soundex_score >= word_score:
        return SimilarityScore(soundex_score, "soundex", query_soundex, target_soundex)
    if meta_score >= word_score:
        return SimilarityScore(meta_score, "metaphone", query_meta, target_meta)
    return SimilarityScore(word_score, "word_by_word", query_soundex, target_soundex)


def phonetic_similarity(word1: str, word2: str) -> float:
    """Similarity score from 0.0 (different) to 1.0 (identical)."""
    return similarity(word1, word2).score


def find_similar_terms(
    query: str,
    pool: Iterable[ReferenceTerm],
    min_similarity: float = 0.5,
    max_results: int = 10,
    exact_match_boost: float = 0.2,
    score_ceiling: float = 1.0,
) -> list[PhoneticMatch]:
    """Find reference terms that sound like the query.

    Args:
        query: Heard word or phrase
        pool: Terms to score
        min_similarity: Minimum score to keep a term
        max_results: Maximum number of matches returned
        exact_match_boost: Bonus added to perfect (1.0) scores
        score_ceiling: Upper bound for boosted scores

    Returns:
        Matches sorted by descending similarity (stable for ties)
    """
    matches = []
    for term in pool:
        result = similarity(query, term.term)
        if result.score < min_similarity:
            continue

        score = result.score
        if score == 1.0:
            score = min(score_ceiling, score + exact_match_boost)

        matches.append(
            PhoneticMatch(
                term=term,
                similarity=score,
                matched_by=result.matched_by,
                query_code=result.query_code,
                term_code=result.term_code,
            )
        )

    matches.sort(key=lambda m: m.similarity, reverse=True)
    return matches[:max_results]


def split_compound_word(word: str) -> list[str]:
    """Generate two-word readings of a run-together word.

    "coopernetties" may have been "cooper netties". Words shorter than six
    letters are returned as-is.

    Args:
        word: Word to split

    Returns:
        The word itself followed by every "a b" split with both parts at
        least three characters long
    """
    if len(word) < 6:
        return [word]

    results = [word]
    for i in range(3, len(word) - 2):
        results.append(f"{word[:i]} {word[i:]}")
    return results


def _expand_query(query: str) -> list[str]:
    words = query.split()
    variants = [query]

    for idx, word in enumerate(words):
        for split in split_compound_word(word)[1:]:
            variants.append(" ".join(words[:idx] + [split] + words[idx + 1:]))

    if len(words) > 1:
        for i in range(1, len(words)):
            left, right = words[:i], words[i:]
            variants.append(" ".join(["".join(left)] + right))
            variants.append(" ".join(left + ["".join(right)]))
        variants.append("".join(words))

    return list(dict.fromkeys(variants))


def find_best_match(
    query: str,
    pool: Iterable[ReferenceTerm],
    min_similarity: float = 0.5,
    max_results: int = 10,
    exact_match_boost: float = 0.2,
    score_ceiling: float = 1.0,
    high_confidence_cutoff: float = 0.8,
    index: PhoneticIndex | None = None,
) -> PhoneticMatch | None:
    """Find the single best-sounding term, trying re-spaced readings.

    The raw query is tried first and returned when it clears the
    high-confidence cutoff. Otherwise compound splits of each word, every
    join/re-split at word boundaries and the fully joined form are scored
    as well.

    Args:
        query: Heard word or phrase
        pool: Terms to score
        min_similarity: Minimum score for a match
        max_results: Passed through to find_similar_terms
        exact_match_boost: Bonus added to perfect scores
        score_ceiling: Upper bound for boosted scores
        high_confidence_cutoff: Raw-query score that skips expansion
        index: Optional code index built over the same pool; an exact code
            hit is returned without scanning the pool

    Returns:
        Best match across all readings, or None
    """
    pool = list(pool)
    exact_score = min(score_ceiling, 1.0 + exact_match_boost)

    def best_for(variant: str) -> PhoneticMatch | None:
        if index is not None:
            hit = index.best_hit(variant)
            if hit is not None:
                term, matched_by, code = hit
                return PhoneticMatch(term, exact_score, matched_by, code, code)
        matches = find_similar_terms(
            variant,
            pool,
            min_similarity=min_similarity,
            max_results=max_results,
            exact_match_boost=exact_match_boost,
            score_ceiling=score_ceiling,
        )
        return matches[0] if matches else None

    best = best_for(query)
    if best is not None and best.similarity >= high_confidence_cutoff:
        return best

    for variant in _expand_query(query)[1:]:
        match = best_for(variant)
        if match is not None and (best is None or match.similarity > best.similarity):
            best = match

    return best


def normalize_for_phonetic(text: str) -> str:
    """Lowercase, strip punctuation (keeping hyphens/apostrophes), squeeze spaces."""
    text = re.sub(r"[^\w\s'-]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def are_phonetically_similar(phrase1: str, phrase2: str, min_similarity: float = 0.7) -> bool:
    """Quick check whether two phrases sound alike."""
    return similarity(phrase1, phrase2).score >= min_similarity


def all_phonetic_codes(text: str) -> dict[str, str]:
    """Get every code for a text, for display and debugging.

    Returns:
        Dict with soundex/metaphone of the first word and both phrase codes
    """
    words = text.split()
    first_word = words[0] if words else text
    return {
        "soundex": soundex(first_word),
        "metaphone": metaphone(first_word),
        "phrase_soundex": phrase_code(text, "soundex"),
        "phrase_metaphone": phrase_code(text, "metaphone"),
    }
