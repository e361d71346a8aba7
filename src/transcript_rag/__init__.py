"""transcript-rag - Domain term correction for live speech-to-text.

Builds a reference corpus of terms from uploaded documents and uses it to
repair mis-heard domain terms in confidence-scored transcripts:
1. Term extraction: rank and classify the vocabulary of plain-text documents
2. Phonetic matching: sound-alike fingerprints and similarity scoring
3. Correction: retrieve candidates and apply rule-based or generative fixes
"""

__version__ = "0.1.0"
