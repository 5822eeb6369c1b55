"""
Tests for Topic Filter and Flow Builder
"""
from datetime import datetime

from assessment_engine.services.flow_builder import (
    FlowBuilder,
    filter_bank_by_topic,
    flow_fingerprint,
    topic_match_score,
)
from assessment_engine.services.keyword_index import sentence_stem_tokens
from assessment_engine.services.quiz_models import SourceDocumentSet

from conftest import make_question


def volcano_question(qid):
    return make_question(
        qid,
        keywords=("volcano", "lava", "eruption"),
        reference="Volcano eruption releases lava and ash into the atmosphere."
    )


def make_set(questions, set_id="set-1"):
    return SourceDocumentSet(
        id=set_id,
        owner_id="teacher-1",
        title="notes",
        file_names=["notes.txt"],
        created_at=datetime(2024, 3, 1),
        question_bank={q.id: q for q in questions}
    )


class TestTopicFilter:
    """Test topic relevance filtering"""

    def test_blank_topic_returns_same_bank(self):
        bank = [make_question("q1")]

        assert filter_bank_by_topic(bank, "  ") is bank
        assert filter_bank_by_topic(bank, None) is bank

    def test_stop_word_topic_returns_same_bank(self):
        bank = [make_question("q1")]

        assert filter_bank_by_topic(bank, "the and of") is bank

    def test_match_score_in_unit_range(self):
        score = topic_match_score(sentence_stem_tokens("volcano eruption"), volcano_question("v1"))

        assert 0.12 <= score <= 1.0

    def test_unrelated_question_scores_zero(self):
        assert topic_match_score(sentence_stem_tokens("volcano"), make_question("q1")) == 0.0

    def test_filter_keeps_relevant_questions(self):
        volcanoes = [volcano_question(f"v{i}") for i in range(12)]
        others = [make_question(f"q{i}") for i in range(5)]

        filtered = filter_bank_by_topic(others + volcanoes, "volcano eruption")

        assert {q.id for q in filtered} == {q.id for q in volcanoes}

    def test_too_few_matches_falls_back_to_full_bank(self):
        bank = [make_question(f"q{i}") for i in range(5)] + [volcano_question(f"v{i}") for i in range(9)]

        assert filter_bank_by_topic(bank, "volcano eruption") is bank


class TestFlowBuilder:
    """Test per-student flow assembly"""

    def test_ordinal_and_fingerprint(self):
        document_set = make_set([make_question(f"q{i}") for i in range(12)])

        first = FlowBuilder().build_flow(document_set, "student-1", 4)
        second = FlowBuilder().build_flow(document_set, "student-2", 4)

        assert (first.flow_ordinal, second.flow_ordinal) == (1, 2)
        assert first.fingerprint == flow_fingerprint(first.questions, 4)
        assert first.fingerprint.count("|") == 3
        assert document_set.flow_log.issued_fingerprints == {first.fingerprint, second.fingerprint}

    def test_flow_is_permutation_of_bank(self):
        questions = [make_question(f"q{i}") for i in range(12)]
        document_set = make_set(questions)

        flow = FlowBuilder().build_flow(document_set, "student-1", 4)

        assert sorted(q.id for q in flow.questions) == sorted(q.id for q in questions)

    def test_fingerprint_capped_at_eight(self):
        document_set = make_set([make_question(f"q{i}") for i in range(12)])

        flow = FlowBuilder().build_flow(document_set, "student-1", 20)

        assert len(flow.fingerprint.split("|")) == 8

    def test_issued_fingerprint_is_rotated_away(self):
        document_set = make_set([make_question(q) for q in ("a", "b", "c")])
        document_set.flow_log.issued_fingerprints.update({"a", "b"})

        flow = FlowBuilder().build_flow(document_set, "student-1", 1)

        assert flow.fingerprint == "c"
        assert flow.questions[0].id == "c"
        assert not flow.duplicate

    def test_distinct_flows_until_rotations_exhausted(self):
        document_set = make_set([make_question(q) for q in ("a", "b", "c")])
        builder = FlowBuilder()

        flows = [builder.build_flow(document_set, f"student-{i}", 1) for i in range(4)]

        assert len({f.fingerprint for f in flows[:3]}) == 3
        assert not any(f.duplicate for f in flows[:3])
        assert flows[3].duplicate

    def test_single_question_bank_accepts_duplicate(self):
        document_set = make_set([make_question("only")])
        builder = FlowBuilder()

        builder.build_flow(document_set, "student-1", 1)
        again = builder.build_flow(document_set, "student-1", 1)

        assert again.duplicate
        assert again.fingerprint == "only"
        assert [q.id for q in again.questions] == ["only"]

    def test_flow_is_a_private_copy(self):
        document_set = make_set([make_question(f"q{i}") for i in range(4)])

        flow = FlowBuilder().build_flow(document_set, "student-1", 4)
        flow.questions.pop()

        assert len(document_set.question_bank) == 4

    def test_mcq_format_applied(self):
        document_set = make_set([make_question(f"q{i}") for i in range(4)])

        flow = FlowBuilder().build_flow(document_set, "student-1", 4, question_format="mcq")

        assert all(q.type == "mcq" and len(q.choices) == 4 for q in flow.questions)
        assert all(q.type == "subjective" for q in document_set.question_bank.values())

    def test_unknown_format_is_subjective(self):
        document_set = make_set([make_question(f"q{i}") for i in range(4)])

        flow = FlowBuilder().build_flow(document_set, "student-1", 4, question_format="essay")

        assert all(q.type == "subjective" for q in flow.questions)

    def test_topic_applied_flag(self):
        bank = [volcano_question(f"v{i}") for i in range(12)] + [make_question("q1")]
        document_set = make_set(bank)

        flow = FlowBuilder().build_flow(document_set, "student-1", 5, topic="volcano")

        assert flow.topic_applied
        assert "q1" not in {q.id for q in flow.questions}

    def test_same_student_and_ordinal_reproduce_order(self):
        questions = [make_question(f"q{i}") for i in range(12)]

        first = FlowBuilder().build_flow(make_set(questions), "student-1", 4)
        second = FlowBuilder().build_flow(make_set(questions), "student-1", 4)

        assert [q.id for q in first.questions] == [q.id for q in second.questions]
