"""
Result Aggregation

Final score report for one quiz session and per-test analytics over all
attempts. Draft (autosaved) responses never count.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .quiz_models import QuizSession, Response, LEVELS

logger = logging.getLogger(__name__)

REMARK_TIERS = (
    (90, "Outstanding"),
    (75, "Great work"),
    (60, "Good progress"),
    (40, "Needs improvement"),
)
REMARK_FLOOR = "Critical: revise basics"

# Upper bounds (exclusive) of the low / medium / high risk buckets
RISK_BUCKETS = (("low", 30), ("medium", 55), ("high", 80))


def remark_for(score: float) -> str:
    for threshold, label in REMARK_TIERS:
        if score >= threshold:
            return label
    return REMARK_FLOOR


def _is_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _mean(values: List[float]) -> Optional[float]:
    return round(sum(values) / len(values), 2) if values else None


def response_marks(response: Response, marks_per_question: float) -> Optional[float]:
    """Stored marks, or marks derived from the percentage when missing"""
    if response.marks_awarded is not None:
        return response.marks_awarded
    if response.percentage is not None:
        return round((response.percentage / 100) * marks_per_question, 2)
    return None


def effective_marks_obtained(session: QuizSession, rows: List[Dict[str, Any]]) -> float:
    """
    Teacher overall marks once published, else the sum of per-response
    effective marks (teacher override when published, else scored marks).
    """
    publish = session.publish
    if publish.is_published and _is_number(publish.teacher_overall_marks):
        return round(float(publish.teacher_overall_marks), 2)

    total = 0.0
    for row in rows:
        teacher = row["teacher_marks_awarded"]
        effective = teacher if publish.is_published and _is_number(teacher) else row["marks_awarded"]
        total += float(effective) if _is_number(effective) else 0.0
    return round(total, 2)


def build_result(session: QuizSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the score report of a session.

    Args:
        session: Quiz session (completed or not)
        now: Clock used for the timed_out flag

    Returns:
        Dict with averages, marks, remark, difficulty breakdown, proctoring
        summary and per-response rows
    """
    now = now or datetime.utcnow()
    marks_per_question = session.marks_per_question or session.total_marks / max(1, session.question_count)
    responses = session.answered

    rows = []
    for idx, r in enumerate(responses):
        rows.append({
            "question_no": idx + 1,
            "question_id": r.question_id,
            "difficulty": r.difficulty,
            "percentage": r.percentage,
            "marks_awarded": response_marks(r, marks_per_question),
            "teacher_marks_awarded": r.teacher_marks_awarded,
            "teacher_feedback": r.teacher_feedback,
            "feedback": r.feedback,
            "is_ai": r.is_ai,
            "ai_reasoning": r.ai_reasoning,
            "ai_confidence": r.ai_confidence
        })

    scores = [float(r.percentage or 0) for r in responses]
    average = round(sum(scores) / len(scores), 2) if scores else 0.0

    by_difficulty: Dict[str, List[float]] = {level: [] for level in LEVELS}
    for r in responses:
        by_difficulty.setdefault(r.difficulty, []).append(float(r.percentage or 0))

    obtained = effective_marks_obtained(session, rows)
    marks_percent = None
    if session.total_marks:
        marks_percent = max(0.0, min(100.0, round(obtained / session.total_marks * 100, 2)))

    score_for_remark = marks_percent if marks_percent is not None else average
    publish = session.publish

    return {
        "quiz_id": session.id,
        "total_questions": len(responses),
        "average_percentage": average,
        "total_marks": session.total_marks,
        "marks_obtained": obtained,
        "marks_percent": marks_percent,
        "remark": remark_for(score_for_remark),
        "teacher_overall_remark": publish.teacher_overall_remark,
        "level_progression": {
            "started": session.initial_level,
            "ended": session.current_level
        },
        "difficulty_breakdown": {level: _mean(by_difficulty[level]) for level in LEVELS},
        "proctoring": {
            "risk_score": session.proctor.risk_score,
            "warning_count": session.proctor.warning_count,
            "warning_messages": list(session.proctor.warning_messages)
        },
        "completed": session.completed,
        "timed_out": session.timed_out or now > session.deadline_at,
        "teacher_published": publish.is_published,
        "teacher_published_at": publish.teacher_published_at.isoformat() if publish.teacher_published_at else None,
        "publish_count": publish.publish_count,
        "responses": rows
    }


def risk_bucket(risk_score: float) -> str:
    for name, upper in RISK_BUCKETS:
        if risk_score < upper:
            return name
    return "critical"


def build_test_analytics(sessions: Iterable[QuizSession], test_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Aggregate all attempts of one test.

    Scores are the teacher's overall marks over completed attempts
    (unset marks count as 0). Risk covers every attempt.
    """
    attempts = [s for s in sessions if test_id is None or s.test_id == test_id]
    if not attempts:
        return {"test_id": test_id, "empty": True}

    completed = [s for s in attempts if s.completed]
    distribution = {"low": 0, "medium": 0, "high": 0, "critical": 0}
    for s in attempts:
        distribution[risk_bucket(s.proctor.risk_score)] += 1

    scores = [
        float(s.publish.teacher_overall_marks) if _is_number(s.publish.teacher_overall_marks) else 0.0
        for s in completed
    ]
    total_risk = sum(s.proctor.risk_score for s in attempts)

    return {
        "test_id": test_id,
        "empty": False,
        "total_students": len(attempts),
        "completed_count": len(completed),
        "completion_rate": round(len(completed) / len(attempts) * 100, 1),
        "average_score": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "highest_score": max(scores) if scores else 0.0,
        "lowest_score": min(scores) if scores else 0.0,
        "average_risk": round(total_risk / len(attempts), 1),
        "risk_distribution": distribution
    }
