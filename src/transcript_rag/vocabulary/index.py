"""Precomputed phonetic code index over a term pool.

Looking a query up by its phrase codes is O(1) per query instead of
scoring every term, which matters once the compound-split expansion of
``find_best_match`` multiplies the number of queries.
"""

from __future__ import annotations

from typing import Iterable

from transcript_rag.models.terms import ReferenceTerm
from transcript_rag.vocabulary.phonetic import MatchedBy, phrase_code


class PhoneticIndex:
    """Maps Soundex and Metaphone phrase codes to the terms that have them.

    Example:
        index = PhoneticIndex(terms)
        index.lookup("cubernetes")  # [ReferenceTerm(term="Kubernetes", ...)]
    """

    def __init__(self, terms: Iterable[ReferenceTerm] = ()):
        self._soundex: dict[str, list[ReferenceTerm]] = {}
        self._metaphone: dict[str, list[ReferenceTerm]] = {}
        self._size = 0
        for term in terms:
            self.add(term)

    def add(self, term: ReferenceTerm) -> None:
        """Index a term under both of its phrase codes."""
        for table, algorithm in ((self._soundex, "soundex"), (self._metaphone, "metaphone")):
            code = phrase_code(term.term, algorithm)
            if code:
                table.setdefault(code, []).append(term)
        self._size += 1

    def __len__(self) -> int:
        return self._size

    def by_soundex(self, code: str) -> list[ReferenceTerm]:
        return list(self._soundex.get(code, []))

    def by_metaphone(self, code: str) -> list[ReferenceTerm]:
        return list(self._metaphone.get(code, []))

    def lookup(self, query: str) -> list[ReferenceTerm]:
        """Terms whose Soundex or Metaphone phrase code equals the query's.

        Soundex hits come first; each term appears once.
        """
        seen: set[str] = set()
        results = []
        for term in self.by_soundex(phrase_code(query, "soundex")) + self.by_metaphone(
            phrase_code(query, "metaphone")
        ):
            if term.normalized_term not in seen:
                seen.add(term.normalized_term)
                results.append(term)
        return results

    def best_hit(self, query: str) -> tuple[ReferenceTerm, MatchedBy, str] | None:
        """First exact-code hit for a query with the codec and code that hit."""
        code = phrase_code(query, "soundex")
        hits = self._soundex.get(code) if code else None
        if hits:
            return hits[0], "soundex", code

        code = phrase_code(query, "metaphone")
        hits = self._metaphone.get(code) if code else None
        if hits:
            return hits[0], "metaphone", code

        return None
