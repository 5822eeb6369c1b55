"""
Topic Filter & Flow Fingerprinting

Narrows a question bank to a topic, then assembles one student's seeded,
shuffled question flow. A fingerprint of the first questions of each
issued flow is recorded per document set, and a repeat is avoided by
rotating the flow (best effort: once every rotation has been issued the
duplicate is accepted).
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .keyword_index import sentence_stem_tokens, stem_keywords, jaccard
from .question_generator import QuestionBankSynthesizer, get_question_synthesizer
from .quiz_models import Question, SourceDocumentSet, normalize_question_format
from .seeded_random import SeededRandom

logger = logging.getLogger(__name__)

TOPIC_KEYWORD_WEIGHT = 0.35
TOPIC_REFERENCE_WEIGHT = 0.65
TOPIC_MATCH_THRESHOLD = 0.12
MIN_TOPIC_MATCHES = 10

MAX_FINGERPRINT_LENGTH = 8
FINGERPRINT_DELIMITER = "|"


@dataclass
class FlowAssignment:
    """Result of assembling one quiz flow"""
    flow_ordinal: int
    fingerprint: str
    questions: List[Question]
    duplicate: bool = False
    topic_applied: bool = False


def topic_match_score(topic_tokens: Sequence[str], question: Question) -> float:
    """Weighted Jaccard of topic stems against keyword and reference stems, in [0, 1]"""
    if not topic_tokens:
        return 0.0
    key_score = jaccard(topic_tokens, stem_keywords(question.keywords))
    ref_score = jaccard(topic_tokens, sentence_stem_tokens(question.reference))
    return max(0.0, min(1.0, TOPIC_KEYWORD_WEIGHT * key_score + TOPIC_REFERENCE_WEIGHT * ref_score))


def filter_bank_by_topic(questions: List[Question], topic: Optional[str]) -> List[Question]:
    """
    Keep questions relevant to a topic, best match first.

    A blank topic (or one with no content words) returns the bank unchanged.
    If fewer than 10 questions qualify the filter is discarded and the full
    bank is returned.
    """
    topic = str(topic or "").strip()
    if not topic:
        return questions

    topic_tokens = sentence_stem_tokens(topic)
    if not topic_tokens:
        return questions

    scored = sorted(
        ((topic_match_score(topic_tokens, q), q) for q in questions),
        key=lambda pair: pair[0],
        reverse=True
    )
    strong = [q for score, q in scored if score >= TOPIC_MATCH_THRESHOLD]

    if len(strong) < MIN_TOPIC_MATCHES:
        logger.info(f"[FLOW] Topic '{topic}' matched {len(strong)} questions, using full bank")
        return questions
    return strong


def flow_fingerprint(questions: Sequence[Question], length: int) -> str:
    return FINGERPRINT_DELIMITER.join(q.id for q in questions[:length])


class FlowBuilder:
    """
    Assembles per-student quiz flows from a document set's bank.

    Callers must hold the document set's lock: build_flow advances the
    set's flow counter and records the issued fingerprint.
    """

    def __init__(self, synthesizer: Optional[QuestionBankSynthesizer] = None):
        self.synthesizer = synthesizer or get_question_synthesizer()

    def build_flow(
        self,
        document_set: SourceDocumentSet,
        student_id: str,
        question_count: int,
        topic: Optional[str] = None,
        question_format: Optional[str] = None
    ) -> FlowAssignment:
        """
        Build the ordered, formatted question list for one quiz attempt.

        Args:
            document_set: Source set owning the bank and the issuance log
            student_id: Student starting the quiz
            question_count: Questions the session will ask
            topic: Optional topic filter
            question_format: subjective | mcq | mixed

        Returns:
            FlowAssignment with the private, formatted question list
        """
        student = student_id or "anon"
        flow_log = document_set.flow_log
        ordinal = flow_log.next_ordinal()
        rng = SeededRandom(f"{student}_{document_set.id}_{ordinal}")

        bank = list(document_set.question_bank.values())
        filtered = filter_bank_by_topic(bank, topic)
        flow = rng.shuffle(filtered)

        length = min(question_count, MAX_FINGERPRINT_LENGTH)
        fingerprint = flow_fingerprint(flow, length)
        duplicate = bool(flow)
        for _ in range(len(flow)):
            fingerprint = flow_fingerprint(flow, length)
            if fingerprint not in flow_log.issued_fingerprints:
                duplicate = False
                break
            flow = flow[1:] + flow[:1]

        if duplicate:
            # a full cycle of rotations restores the original order
            fingerprint = flow_fingerprint(flow, length)
            logger.warning(
                f"[FLOW] All rotations already issued for set={document_set.id[:8]}... "
                f"accepting duplicate flow"
            )
        if flow:
            flow_log.issued_fingerprints.add(fingerprint)

        fmt = normalize_question_format(question_format)
        formatted = self.synthesizer.apply_question_format(
            flow, fmt, f"{student}_{document_set.id}_{ordinal}_{fmt}"
        )

        logger.info(
            f"[FLOW] Issued flow #{ordinal} set={document_set.id[:8]}... student={student} "
            f"questions={len(formatted)} format={fmt}"
        )
        return FlowAssignment(
            flow_ordinal=ordinal,
            fingerprint=fingerprint,
            questions=formatted,
            duplicate=duplicate,
            topic_applied=filtered is not bank
        )
