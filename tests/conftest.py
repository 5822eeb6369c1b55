"""
Pytest Configuration for Assessment Engine Tests
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from assessment_engine.services.answer_evaluator import AnswerEvaluatorService
from assessment_engine.services.quiz_engine import QuizEngine
from assessment_engine.services.quiz_models import Question, QuizSession
from assessment_engine.services.quiz_telemetry import QuizTelemetry


SAMPLE_TEXT = (
    "Photosynthesis is the process by which green plants convert light energy into chemical energy. "
    "Chlorophyll molecules inside the chloroplasts absorb mostly red and blue wavelengths of sunlight. "
    "The light dependent reactions take place in the thylakoid membranes and split water molecules. "
    "Splitting water releases oxygen gas as a byproduct that diffuses out through the leaf stomata. "
    "The energy captured from light is stored temporarily in molecules called ATP and NADPH. "
    "The Calvin cycle uses ATP and NADPH to fix carbon dioxide into three carbon sugar molecules. "
    "The enzyme rubisco catalyzes the first major step of carbon fixation in the stroma. "
    "Rubisco can also bind oxygen instead of carbon dioxide, which leads to photorespiration. "
    "Photorespiration wastes energy and reduces the overall efficiency of sugar production in plants. "
    "C4 plants such as maize concentrate carbon dioxide in bundle sheath cells to limit photorespiration. "
    "CAM plants such as cacti open their stomata at night to reduce water loss in dry climates. "
    "Stored carbon dioxide is released during the day so the Calvin cycle can continue with closed stomata. "
    "The rate of photosynthesis depends on light intensity, temperature, and carbon dioxide concentration. "
    "When one factor is in short supply it becomes the limiting factor for the whole process. "
    "Glucose produced by photosynthesis is used for cellular respiration and for building cellulose. "
    "Plants store excess glucose as starch in roots, seeds, and specialized storage tissues. "
    "Cellular respiration in mitochondria breaks glucose down to release usable energy as ATP. "
    "Aerobic respiration requires oxygen and produces carbon dioxide and water as waste products. "
    "Photosynthesis and respiration together form a cycle that links producers and consumers in ecosystems. "
    "Almost every food chain on Earth ultimately depends on energy fixed by photosynthetic organisms. "
    "Algae and cyanobacteria perform a large share of global photosynthesis in oceans and lakes. "
    "Cyanobacteria were responsible for the oxygenation of the early atmosphere billions of years ago. "
    "Scientists study artificial photosynthesis to produce clean fuels directly from sunlight and water. "
    "Improving rubisco efficiency in crops is an active research goal for increasing agricultural yields. "
)


class FakeClock:
    """Manually advanced clock for deadline tests"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_question(qid: str, difficulty: str = "intermediate", **kwargs) -> Question:
    """Build a small question for unit tests"""
    defaults = dict(
        prompt=f"Explain {qid}.",
        reference=kwargs.pop("reference", f"Reference passage for {qid} about chlorophyll and light energy."),
        keywords=("chlorophyll", "light", "energy"),
        source_chunk_id="chunk_1"
    )
    defaults.update(kwargs)
    return Question(id=qid, difficulty=difficulty, **defaults)


def make_session(bank, question_count: int = 3, level: str = "intermediate", **kwargs) -> QuizSession:
    """Build a bare session over a question list"""
    now = datetime(2024, 3, 1, 9, 0, 0)
    defaults = dict(
        id="quiz-0001-test",
        source_document_set_id="set-1",
        student_id="student-1",
        initial_level=level,
        current_level=level,
        question_count=question_count,
        assigned_bank=list(bank),
        started_at=now,
        deadline_at=now + timedelta(minutes=20),
        total_marks=100.0,
        marks_per_question=round(100 / question_count, 2)
    )
    defaults.update(kwargs)
    return QuizSession(**defaults)


@pytest.fixture
def sample_text():
    return SAMPLE_TEXT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def telemetry():
    return QuizTelemetry()


@pytest.fixture
def engine(clock, telemetry):
    """Engine with lexical scoring, no persistence and a fake clock"""
    return QuizEngine(
        evaluator=AnswerEvaluatorService(oracle=None),
        telemetry=telemetry,
        clock=clock
    )


@pytest.fixture
def mock_oracle():
    """Scoring oracle double returning a fixed verdict"""
    from assessment_engine.services.scoring_oracle import OracleVerdict

    oracle = MagicMock()

    async def evaluate(answer, prompt, reference, max_score=100):
        return OracleVerdict(
            score=90,
            feedback="Clear and accurate.",
            reasoning="Covers the key facts of the reference.",
            confidence=0.8,
            rubric={"accuracy": 90, "completeness": 88, "clarity": 92}
        )

    oracle.evaluate_subjective_answer = MagicMock(side_effect=evaluate)
    return oracle
