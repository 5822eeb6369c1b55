"""
Tests for Text Chunker - sentence windows and core concept summaries
"""
import pytest

from assessment_engine.services.exceptions import InsufficientContent
from assessment_engine.services.text_chunker import (
    TextChunker,
    clean_text,
    combine_documents,
    create_chunks,
    split_sentences,
)


class TestCleaning:
    """Test normalization helpers"""

    def test_clean_text_strips_non_printables_and_collapses_whitespace(self):
        assert clean_text("alpha\x00beta \n\n\t gamma’s") == "alpha beta gamma s"

    def test_clean_text_handles_none(self):
        assert clean_text(None) == ""

    def test_split_sentences(self):
        assert split_sentences("One. Two! Three? Four") == ["One.", "Two!", "Three?", "Four"]

    def test_combine_documents_joins_texts(self):
        assert combine_documents(["First  part.", "Second part."]) == "First part. Second part."


class TestChunking:
    """Test sentence-window chunking"""

    def test_sample_text_produces_chunks(self, sample_text):
        chunks = TextChunker().chunk_text(sample_text)

        assert len(chunks) >= 1
        assert [c.chunk_id for c in chunks] == [f"chunk_{i + 1}" for i in range(len(chunks))]
        assert all(len(c.text) > 120 for c in chunks)

    def test_four_sentences_per_window(self, sample_text):
        chunks = TextChunker().chunk_text(sample_text)

        assert len(split_sentences(chunks[0].text)) == 4

    def test_short_corpus_rejected(self):
        with pytest.raises(InsufficientContent):
            TextChunker().chunk_text("Too short to build anything useful from.")

    def test_short_sentences_only_rejected(self):
        # long enough overall, but every sentence is under the length floor
        text = "Tiny sentence here. " * 60

        with pytest.raises(InsufficientContent):
            TextChunker().chunk_text(text)

    def test_short_sentences_are_dropped(self, sample_text):
        text = sample_text + " Too short. Also short."
        chunks = TextChunker().chunk_text(text)

        assert all("Too short." not in c.text for c in chunks)

    def test_create_chunks_convenience(self, sample_text):
        assert len(create_chunks(sample_text)) == len(TextChunker().chunk_text(sample_text))


class TestCoreConcepts:
    """Test lexical-density summaries"""

    def test_densest_sentences_first(self):
        chunker = TextChunker()
        text = (
            "This is a sentence that is not very dense at all. "
            "Chlorophyll pigments absorb photons driving electron transport across thylakoid membranes. "
            "It is what it is and that is all there is to it."
        )

        concepts = chunker.extract_core_concepts(text)

        assert concepts.sentences[0].startswith("Chlorophyll pigments")
        assert len(concepts.sentences) == 3

    def test_keeps_at_most_three_sentences(self, sample_text):
        chunk = TextChunker().chunk_text(sample_text)[0]
        concepts = TextChunker().extract_core_concepts(chunk.text + " " + chunk.text)

        assert len(concepts.sentences) == 3
        assert concepts.summary == " ".join(concepts.sentences)

    def test_fallback_to_raw_slice(self):
        text = "Tiny. " * 50

        concepts = TextChunker().extract_core_concepts(text)

        assert concepts.summary == text[:200]
