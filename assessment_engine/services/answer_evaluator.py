"""
Answer Evaluator Service
========================

Scores student answers for a quiz session.

- MCQ: exact match on the selected choice index (100 or 0)
- Subjective: blended lexical similarity against the reference passage,
  or an external LLM scoring oracle when one is configured
- A proctoring risk penalty is applied to either path's raw percentage

The oracle and lexical scorers sit behind one strategy interface with an
identical output contract. Oracle timeouts and failures always degrade to
the lexical scorer and are never surfaced to the caller.
"""
import asyncio
import logging
import math
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

from ..config import settings
from .exceptions import AnswerTooShort, InvalidChoice
from .keyword_index import cosine, jaccard, sentence_stem_tokens, tokenize
from .quiz_models import Question
from .scoring_oracle import LLMScoringOracle, get_scoring_oracle

logger = logging.getLogger(__name__)

MIN_SUBJECTIVE_CHARS = 10

# Penalty: 4% per full 35 points of risk
PENALTY_RISK_STEP = 35
PENALTY_PER_STEP = 4

FEEDBACK_STRONG = "Strong answer. Good concept coverage and alignment with source material."
FEEDBACK_DECENT = "Decent answer. Improve depth and add more key terminology."
FEEDBACK_WEAK = "Weak answer. Add core definitions and technical points from the concept."

MCQ_CORRECT_FEEDBACK = "Correct. Good selection based on the reference."
MCQ_INCORRECT_FEEDBACK = "Incorrect. Re-check the concept in the reference text."

ORACLE_DISABLED_NOTE = "(Note: true AI scoring is currently disabled)"
ORACLE_FAILED_NOTE = "(Note: AI scoring was unavailable, lexical scoring applied)"


@dataclass
class Evaluation:
    """Scored answer, before and after the risk penalty"""
    percentage: float
    feedback: str
    explanation: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    is_ai: bool = False
    reasoning: Optional[str] = None
    confidence: Optional[float] = None
    rubric: Optional[Dict[str, Any]] = None
    base_percentage: Optional[float] = None
    cheating_penalty: int = 0
    marks_per_question: Optional[float] = None
    marks_awarded: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ============================================================================
# MCQ
# ============================================================================

def evaluate_mcq(question: Question, choice: Any) -> Evaluation:
    """
    Score an MCQ selection.

    Raises:
        InvalidChoice: choice is not an integer index into question.choices
    """
    choices = question.choices or ()
    if choice is None or isinstance(choice, bool):
        raise InvalidChoice()
    try:
        number = float(choice)
    except (TypeError, ValueError):
        raise InvalidChoice()
    if not number.is_integer() or not 0 <= number < len(choices):
        raise InvalidChoice()
    index = int(number)

    correct_index = question.correct_index
    correct = correct_index is not None and index == correct_index
    return Evaluation(
        percentage=100 if correct else 0,
        feedback=MCQ_CORRECT_FEEDBACK if correct else MCQ_INCORRECT_FEEDBACK,
        explanation=question.explanation or question.reference or "",
        details={"correct": correct, "choice": index, "correct_index": correct_index}
    )


# ============================================================================
# Subjective scoring
# ============================================================================

def validate_subjective_answer(answer: Optional[str]) -> str:
    """Raise AnswerTooShort for answers under 10 chars after trimming"""
    text = str(answer or "")
    if len(text.strip()) < MIN_SUBJECTIVE_CHARS:
        raise AnswerTooShort()
    return text


class LexicalScorer:
    """
    Blended lexical similarity scorer.

    score = round(100 * clamp(0.5*cosine + 0.3*keywordCoverage + 0.2*jaccard))

    cosine and jaccard run over stemmed content tokens of the answer and
    the reference; keyword coverage is the share of the question's raw
    keywords present among the answer's raw lowercase tokens.
    """

    COSINE_WEIGHT = 0.5
    COVERAGE_WEIGHT = 0.3
    JACCARD_WEIGHT = 0.2

    def score(self, answer: str, question: Question) -> Evaluation:
        answer_tokens = sentence_stem_tokens(answer)
        reference_tokens = sentence_stem_tokens(question.reference)

        cos = cosine(answer_tokens, reference_tokens)
        jac = jaccard(answer_tokens, reference_tokens)

        answer_raw = set(tokenize(answer))
        keywords = list(question.keywords)
        hits = sum(1 for k in keywords if k in answer_raw)
        coverage = hits / len(keywords) if keywords else 0.0

        combined = self.COSINE_WEIGHT * cos + self.COVERAGE_WEIGHT * coverage + self.JACCARD_WEIGHT * jac
        percentage = max(0, min(100, _round_half_up(combined * 100)))

        if percentage >= 75:
            feedback = FEEDBACK_STRONG
        elif percentage >= 50:
            feedback = FEEDBACK_DECENT
        else:
            feedback = FEEDBACK_WEAK

        return Evaluation(
            percentage=percentage,
            feedback=feedback,
            explanation=question.reference or "",
            details={
                "cosine": round(cos, 3),
                "keyword_coverage": round(coverage, 3),
                "jaccard": round(jac, 3)
            }
        )


class LexicalScoringStrategy:
    """Lexical scoring used when no oracle is configured"""

    def __init__(self, scorer: Optional[LexicalScorer] = None, note: Optional[str] = ORACLE_DISABLED_NOTE):
        self.scorer = scorer or LexicalScorer()
        self.note = note

    async def evaluate(self, answer: str, question: Question) -> Evaluation:
        evaluation = self.scorer.score(answer, question)
        if self.note:
            evaluation.feedback = f"{evaluation.feedback} {self.note}"
        return evaluation


class OracleScoringStrategy:
    """
    Oracle scoring bounded by a timeout, with lexical fallback.

    Args:
        oracle: Object exposing async evaluate_subjective_answer(...)
        timeout: Seconds to wait for the oracle
    """

    def __init__(
        self,
        oracle: LLMScoringOracle,
        timeout: float = None,
        scorer: Optional[LexicalScorer] = None
    ):
        self.oracle = oracle
        self.timeout = timeout or settings.SCORING_ORACLE_TIMEOUT_SECONDS
        self.fallback = LexicalScoringStrategy(scorer, note=ORACLE_FAILED_NOTE)

    async def evaluate(self, answer: str, question: Question) -> Evaluation:
        try:
            verdict = await asyncio.wait_for(
                self.oracle.evaluate_subjective_answer(answer, question.prompt, question.reference, 100),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"[EVAL] Oracle timed out after {self.timeout}s for {question.id}, using lexical scorer")
            return await self.fallback.evaluate(answer, question)
        except Exception as e:
            logger.warning(f"[EVAL] Oracle failed for {question.id}: {e}, using lexical scorer")
            return await self.fallback.evaluate(answer, question)

        return Evaluation(
            percentage=verdict.score,
            feedback=verdict.feedback,
            explanation=question.reference or "",
            is_ai=True,
            reasoning=verdict.reasoning,
            confidence=verdict.confidence,
            rubric=verdict.rubric
        )


def select_scoring_strategy(oracle: Optional[LLMScoringOracle] = None, timeout: float = None):
    """Oracle strategy when an oracle is available, lexical otherwise"""
    if oracle is None:
        return LexicalScoringStrategy()
    return OracleScoringStrategy(oracle, timeout=timeout)


# ============================================================================
# Risk penalty
# ============================================================================

def risk_penalty(risk_score: float) -> int:
    """
    Percentage points deducted for proctoring risk.

    >>> risk_penalty(70)
    8
    """
    return int(max(0, risk_score) // PENALTY_RISK_STEP) * PENALTY_PER_STEP


def apply_risk_penalty(
    evaluation: Evaluation,
    risk_score: float,
    marks_per_question: Optional[float]
) -> Evaluation:
    """Deduct the risk penalty and compute marks awarded (2dp)"""
    penalty = risk_penalty(risk_score)
    evaluation.base_percentage = evaluation.percentage
    evaluation.cheating_penalty = penalty
    evaluation.percentage = max(0, evaluation.percentage - penalty)
    if penalty > 0:
        evaluation.feedback = f"{evaluation.feedback} Proctoring risk penalty applied ({penalty}%)."

    evaluation.marks_per_question = marks_per_question
    if marks_per_question is not None:
        evaluation.marks_awarded = round((evaluation.percentage / 100) * marks_per_question, 2)
    return evaluation


# ============================================================================
# Service
# ============================================================================

class AnswerEvaluatorService:
    """
    Evaluates one answer for the current question of a session.

    Features:
    - MCQ validation and exact-match scoring
    - Subjective scoring through the selected strategy
    - Risk penalty and marks computation
    """

    def __init__(self, oracle: Optional[LLMScoringOracle] = None, timeout: float = None):
        self.strategy = select_scoring_strategy(oracle, timeout)
        logger.info(f"[EVAL] Initialized with {type(self.strategy).__name__}")

    @staticmethod
    def validate(question: Question, answer: Optional[str], mcq_choice: Any):
        """Reject invalid input before any scoring"""
        if question.is_mcq:
            evaluate_mcq(question, mcq_choice)
        else:
            validate_subjective_answer(answer)

    async def evaluate(
        self,
        question: Question,
        answer: Optional[str] = None,
        mcq_choice: Any = None,
        risk_score: float = 0,
        marks_per_question: Optional[float] = None
    ) -> Evaluation:
        """
        Score an answer and apply the risk penalty.

        Raises:
            InvalidChoice: bad MCQ index
            AnswerTooShort: subjective answer under 10 chars
        """
        if question.is_mcq:
            evaluation = evaluate_mcq(question, mcq_choice)
        else:
            text = validate_subjective_answer(answer)
            evaluation = await self.strategy.evaluate(text, question)

        evaluation = apply_risk_penalty(evaluation, risk_score, marks_per_question)
        logger.info(
            f"[EVAL] {question.id} type={question.type} base={evaluation.base_percentage} "
            f"penalty={evaluation.cheating_penalty} final={evaluation.percentage} ai={evaluation.is_ai}"
        )
        return evaluation


_evaluator: Optional[AnswerEvaluatorService] = None


def get_answer_evaluator() -> AnswerEvaluatorService:
    """Get singleton evaluator wired to the configured oracle"""
    global _evaluator
    if _evaluator is None:
        _evaluator = AnswerEvaluatorService(oracle=get_scoring_oracle())
    return _evaluator
