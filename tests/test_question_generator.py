"""
Tests for Question Bank Synthesizer
"""
import pytest

from assessment_engine.services.question_generator import (
    MCQ_FILLER_CHOICE,
    MCQ_INSTRUCTION,
    PROMPT_TEMPLATES,
    QuestionBankSynthesizer,
    first_sentence,
    unique_choices,
)
from assessment_engine.services.quiz_models import LEVELS
from assessment_engine.services.seeded_random import SeededRandom
from assessment_engine.services.text_chunker import TextChunker

from conftest import make_question


@pytest.fixture
def chunks(sample_text):
    return TextChunker().chunk_text(sample_text)


@pytest.fixture
def synthesizer():
    return QuestionBankSynthesizer()


class TestBankGeneration:
    """Test seeded bank generation"""

    def test_two_questions_per_chunk(self, synthesizer, chunks):
        bank = synthesizer.generate_bank(chunks, "set-1_notes")

        assert len(bank) == 2 * len(chunks)

    def test_same_seed_same_bank(self, synthesizer, chunks):
        first = synthesizer.generate_bank(chunks, "set-1_notes")
        second = synthesizer.generate_bank(chunks, "set-1_notes")

        assert list(first) == list(second)
        assert [q.prompt for q in first.values()] == [q.prompt for q in second.values()]

    def test_different_seed_different_ids(self, synthesizer, chunks):
        first = synthesizer.generate_bank(chunks, "set-1_notes")
        second = synthesizer.generate_bank(chunks, "set-2_notes")

        assert list(first) != list(second)

    def test_question_fields(self, synthesizer, chunks):
        bank = synthesizer.generate_bank(chunks, "seed")

        for question in bank.values():
            assert question.difficulty in LEVELS
            assert question.type == "subjective"
            assert question.id.startswith("q_")
            assert question.id.split("_")[2] == question.difficulty
            assert question.reference in [c.text for c in chunks]
            assert 0 < len(question.keywords) <= 10
            assert question.summary

    def test_max_chunks_limits_bank(self, chunks):
        bank = QuestionBankSynthesizer(max_chunks=2).generate_bank(chunks, "seed")

        assert len(bank) == 4
        assert {q.source_chunk_id for q in bank.values()} == {"chunk_1", "chunk_2"}


class TestPrompts:
    """Test template filling"""

    def test_prompt_uses_tier_templates(self, synthesizer):
        rng = SeededRandom("prompt")
        prompt = synthesizer.generate_prompt(["enzyme", "substrate", "catalyst"], "beginner", rng)

        rendered = {
            t.format(kw1="enzyme", kw2="substrate", kw3="catalyst")
            for t in PROMPT_TEMPLATES["beginner"]
        }
        assert prompt in rendered

    def test_missing_keywords_use_fallbacks(self, synthesizer):
        prompt = synthesizer.generate_prompt([], "beginner", SeededRandom("x"))

        assert "this concept" in prompt

    def test_unknown_tier_uses_advanced_templates(self, synthesizer):
        prompt = synthesizer.generate_prompt(["a1", "b1", "c1"], "expert", SeededRandom("x"))

        rendered = {t.format(kw1="a1", kw2="b1", kw3="c1") for t in PROMPT_TEMPLATES["advanced"]}
        assert prompt in rendered


class TestMcq:
    """Test MCQ derivation"""

    def test_first_sentence(self):
        assert first_sentence("Hello world. Second one.") == "Hello world."
        assert first_sentence("x" * 300) == "x" * 220
        assert first_sentence("") == ""

    def test_unique_choices_case_insensitive(self):
        assert unique_choices(["Alpha", "alpha", "", "Beta", "Gamma"], 2) == ["Alpha", "Beta"]

    def test_lonely_question_padded_with_fillers(self, synthesizer):
        question = make_question("q1", reference="Only passage here. More text.")

        variant = synthesizer.build_mcq(question, [question], SeededRandom("mcq"))

        assert len(variant.choices) == 4
        assert variant.choices.count(MCQ_FILLER_CHOICE) == 3
        assert variant.choices[variant.correct_index] == "Only passage here."

    def test_distractors_from_other_passages(self, synthesizer, chunks):
        bank = list(synthesizer.generate_bank(chunks, "seed").values())
        question = bank[0]

        variant = synthesizer.build_mcq(question, bank, SeededRandom("mcq"))

        assert len(variant.choices) == 4
        assert variant.choices[variant.correct_index] == first_sentence(question.reference)
        assert len({c.lower() for c in variant.choices if c != MCQ_FILLER_CHOICE}) == len(
            [c for c in variant.choices if c != MCQ_FILLER_CHOICE]
        )


class TestQuestionFormat:
    """Test subjective / mcq / mixed formatting"""

    def test_mixed_alternates_and_leaves_input_untouched(self, synthesizer, chunks):
        bank = list(synthesizer.generate_bank(chunks, "seed").values())[:4]

        formatted = synthesizer.apply_question_format(bank, "mixed", "fmt-seed")

        assert [q.type for q in formatted] == ["mcq", "subjective", "mcq", "subjective"]
        assert formatted[0].prompt.startswith(MCQ_INSTRUCTION)
        assert len(formatted[0].choices) == 4
        assert formatted[1].choices is None
        assert all(q.type == "subjective" and q.choices is None for q in bank)
        assert [q.id for q in formatted] == [q.id for q in bank]

    def test_mcq_format_is_deterministic(self, synthesizer, chunks):
        bank = list(synthesizer.generate_bank(chunks, "seed").values())

        first = synthesizer.apply_question_format(bank, "mcq", "fmt-seed")
        second = synthesizer.apply_question_format(bank, "mcq", "fmt-seed")

        assert [(q.choices, q.correct_index) for q in first] == [(q.choices, q.correct_index) for q in second]

    def test_empty_flow(self, synthesizer):
        assert synthesizer.apply_question_format([], "mcq", "seed") == []
