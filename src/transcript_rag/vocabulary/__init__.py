"""Vocabulary module for transcript correction.

Provides phonetic matching, term extraction from reference documents and
the per-session term corpus.
"""

from transcript_rag.vocabulary.corpus import TermCorpus
from transcript_rag.vocabulary.extraction import (
    TermExtractor,
    extract_terms,
    merge_terms,
)
from transcript_rag.vocabulary.index import PhoneticIndex
from transcript_rag.vocabulary.phonetic import (
    PhoneticMatch,
    SimilarityScore,
    find_best_match,
    find_similar_terms,
    levenshtein_distance,
    metaphone,
    phrase_code,
    similarity,
    soundex,
    split_compound_word,
)

__all__ = [
    "TermCorpus",
    "TermExtractor",
    "extract_terms",
    "merge_terms",
    "PhoneticIndex",
    "PhoneticMatch",
    "SimilarityScore",
    "find_best_match",
    "find_similar_terms",
    "levenshtein_distance",
    "metaphone",
    "phrase_code",
    "similarity",
    "soundex",
    "split_compound_word",
]
