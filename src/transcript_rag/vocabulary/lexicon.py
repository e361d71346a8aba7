"""Word lists used by phonetic coding and term classification."""

from __future__ import annotations

# Common English words that are never kept as terms or phrase-code words
STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "up", "about", "into", "through", "during",
    "before", "after", "above", "below", "between", "under", "again",
    "further", "then", "once", "here", "there", "when", "where", "why",
    "how", "all", "each", "few", "more", "most", "other", "some", "such",
    "no", "nor", "not", "only", "own", "same", "so", "than", "too", "very",
    "can", "will", "just", "should", "now", "also", "like", "even", "way",
    "because", "any", "these", "those", "this", "that", "which", "what",
    "who", "whom", "whose", "its", "their", "our", "your", "his", "her",
    "we", "they", "you", "he", "she", "it", "i", "me", "my", "mine",
    "us", "them", "him", "be", "been", "being", "have", "has", "had",
    "do", "does", "did", "done", "say", "said", "says", "go", "going",
    "get", "got", "make", "made", "know", "known", "think", "see", "come",
    "take", "want", "use", "find", "give", "tell", "work", "may", "would",
    "could", "if", "as", "is", "are", "was", "were", "am",
})

# Titles that precede a person's name
PERSON_PREFIXES = (
    "mr", "mrs", "ms", "miss", "dr", "prof", "professor", "sir", "madam",
    "rev", "reverend", "hon", "honorable", "pres", "president", "gov",
    "governor", "sen", "senator", "rep", "representative", "ceo", "cto",
    "cfo", "coo", "vp", "director", "manager", "chairman", "founder",
)

# Words that follow an organization's name
ORG_SUFFIXES = (
    "inc", "corp", "corporation", "ltd", "limited", "llc", "llp", "plc",
    "co", "company", "companies", "group", "holdings", "partners",
    "associates", "foundation", "institute", "university", "college",
    "technologies", "tech", "software", "systems", "solutions", "services",
    "labs", "laboratory", "research", "consulting", "international",
)

LOCATION_INDICATORS = (
    "city", "town", "village", "county", "state", "province", "country",
    "region", "district", "street", "avenue", "road", "boulevard", "lane",
    "drive", "plaza", "square", "park", "building", "tower", "center",
    "north", "south", "east", "west", "central", "downtown", "uptown",
)

# Words that may join capitalized words inside a proper-noun phrase
PHRASE_CONNECTORS = ("of", "the", "and", "for")


def is_stop_word(word: str) -> bool:
    """Check whether a word (any case) is a stop-word."""
    return word.lower() in STOP_WORDS
