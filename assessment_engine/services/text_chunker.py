"""
Text Chunker - Sentence-Window Chunking and Concept Extraction

Features:
- Whitespace normalization and non-printable character stripping
- Sentence splitting on . ! ? boundaries
- Fixed windows of consecutive sentences joined into chunks
- Per-chunk "core summary" built from the most lexically dense sentences
"""
import re
import logging
from typing import List, Dict, Any
from dataclasses import dataclass, asdict, field

from .exceptions import InsufficientContent
from .keyword_index import content_tokens

logger = logging.getLogger(__name__)

MIN_CORPUS_CHARS = 600
MIN_SENTENCE_CHARS = 35
MIN_CHUNK_CHARS = 120
SENTENCE_WINDOW = 4

# Core summary sentence bounds (exclusive)
SUMMARY_SENTENCE_MIN = 30
SUMMARY_SENTENCE_MAX = 500
SUMMARY_SENTENCES = 3
SUMMARY_FALLBACK_CHARS = 200

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\n\r\t]")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


@dataclass
class TextChunk:
    """A window of consecutive sentences"""
    chunk_id: str
    chunk_index: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConceptSummary:
    """Most informative sentences of a chunk"""
    summary: str
    sentences: List[str] = field(default_factory=list)


def clean_text(text: str) -> str:
    """Replace non-printable characters and collapse whitespace"""
    text = _NON_PRINTABLE.sub(" ", str(text or ""))
    return _WHITESPACE.sub(" ", text).strip()


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def combine_documents(texts: List[str]) -> str:
    """Join several extracted documents into one cleaned corpus"""
    return clean_text(" ".join(str(t or "") for t in texts))


class TextChunker:
    """
    Sentence-window chunker

    Args:
        sentence_window: Consecutive sentences per chunk (default: 4)
        min_sentence_chars: Sentences must be longer than this (default: 35)
        min_chunk_chars: Chunks must be longer than this (default: 120)
        min_corpus_chars: Cleaned corpus minimum length (default: 600)
    """

    def __init__(
        self,
        sentence_window: int = SENTENCE_WINDOW,
        min_sentence_chars: int = MIN_SENTENCE_CHARS,
        min_chunk_chars: int = MIN_CHUNK_CHARS,
        min_corpus_chars: int = MIN_CORPUS_CHARS
    ):
        self.sentence_window = sentence_window
        self.min_sentence_chars = min_sentence_chars
        self.min_chunk_chars = min_chunk_chars
        self.min_corpus_chars = min_corpus_chars

    def chunk_text(self, text: str) -> List[TextChunk]:
        """
        Split raw text into sentence-window chunks

        Args:
            text: Raw text, possibly several documents concatenated

        Returns:
            Chunks with stable ids chunk_1, chunk_2, ...

        Raises:
            InsufficientContent: corpus under the minimum or no chunk survived
        """
        cleaned = clean_text(text)
        if len(cleaned) < self.min_corpus_chars:
            raise InsufficientContent(
                f"Source content is too short ({len(cleaned)} chars, "
                f"need {self.min_corpus_chars}). Upload richer material."
            )

        sentences = [s for s in split_sentences(cleaned) if len(s) > self.min_sentence_chars]

        chunks: List[TextChunk] = []
        for start in range(0, len(sentences), self.sentence_window):
            part = " ".join(sentences[start:start + self.sentence_window])
            if len(part) > self.min_chunk_chars:
                chunks.append(TextChunk(
                    chunk_id=f"chunk_{len(chunks) + 1}",
                    chunk_index=len(chunks),
                    text=part
                ))

        if not chunks:
            raise InsufficientContent("Could not extract enough content from the documents.")

        logger.info(f"[CHUNKER] Created {len(chunks)} chunks from {len(sentences)} sentences ({len(cleaned)} chars)")
        return chunks

    def extract_core_concepts(self, chunk_text: str) -> ConceptSummary:
        """
        Pick the most information-dense sentences of a chunk.

        Sentences are scored by the number of distinct content words they
        contain; the top three (in score order) form the summary.
        """
        sentences = [
            s for s in split_sentences(chunk_text)
            if SUMMARY_SENTENCE_MIN < len(s) < SUMMARY_SENTENCE_MAX
        ]

        if not sentences:
            fallback = chunk_text[:SUMMARY_FALLBACK_CHARS]
            return ConceptSummary(summary=fallback, sentences=[fallback])

        scored = sorted(
            sentences,
            key=lambda s: len(set(content_tokens(s))),
            reverse=True
        )
        best = scored[:SUMMARY_SENTENCES]
        return ConceptSummary(summary=" ".join(best), sentences=best)


# Convenience function
def create_chunks(text: str, sentence_window: int = SENTENCE_WINDOW) -> List[TextChunk]:
    """Chunk text with default thresholds"""
    return TextChunker(sentence_window=sentence_window).chunk_text(text)
