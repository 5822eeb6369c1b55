"""
Quiz Telemetry - Structured logging and metrics for quiz lifecycles

Tracks:
- Question bank creation
- Quiz lifecycle events (start, answer, complete, time out)
- Proctoring events and auto-cancellations
- Teacher publishes
"""
import logging
from typing import Optional, Dict, Any
from datetime import datetime
from collections import defaultdict

logger = logging.getLogger(__name__)


class QuizTelemetry:
    """
    Structured telemetry for quiz events.

    All events are logged with [TELEMETRY] prefix for easy filtering.
    Metrics are aggregated in-memory.
    """

    def __init__(self):
        self._metrics = defaultdict(int)
        self._started_at = datetime.utcnow()

    # ========================================================================
    # Bank Events
    # ========================================================================

    def log_bank_created(self, document_set_id: str, chunks: int, questions: int):
        """Log question bank derivation"""
        self._metrics["banks_created"] += 1
        self._metrics["questions_generated"] += questions
        logger.info(
            f"[TELEMETRY] event=bank_created "
            f"set_id={document_set_id[:8]}... chunks={chunks} questions={questions}"
        )

    # ========================================================================
    # Quiz Events
    # ========================================================================

    def log_quiz_started(
        self,
        session_id: str,
        student_id: str,
        question_count: int,
        question_format: str,
        duplicate_flow: bool = False
    ):
        """Log quiz start"""
        self._metrics["quizzes_started"] += 1
        if duplicate_flow:
            self._metrics["duplicate_flows"] += 1
        logger.info(
            f"[TELEMETRY] event=quiz_started "
            f"session_id={session_id[:8]}... student_id={student_id} "
            f"questions={question_count} format={question_format} duplicate_flow={duplicate_flow}"
        )

    def log_answer_submitted(
        self,
        session_id: str,
        question_id: str,
        percentage: float,
        cheating_penalty: int,
        is_ai: bool
    ):
        """Log a scored answer"""
        self._metrics["answers_total"] += 1
        self._metrics["answers_ai" if is_ai else "answers_lexical"] += 1
        if cheating_penalty:
            self._metrics["answers_penalized"] += 1
        logger.info(
            f"[TELEMETRY] event=answer_submitted "
            f"session_id={session_id[:8]}... question_id={question_id} "
            f"percentage={percentage} penalty={cheating_penalty} ai={is_ai}"
        )

    def log_quiz_completed(self, session_id: str, average_percentage: float):
        self._metrics["quizzes_completed"] += 1
        logger.info(
            f"[TELEMETRY] event=quiz_completed "
            f"session_id={session_id[:8]}... average={average_percentage}"
        )

    def log_quiz_timed_out(self, session_id: str):
        self._metrics["quizzes_timed_out"] += 1
        logger.info(f"[TELEMETRY] event=quiz_timed_out session_id={session_id[:8]}...")

    # ========================================================================
    # Proctoring & Publish Events
    # ========================================================================

    def log_proctor_event(self, session_id: str, event_type: str, risk_score: int, cancelled: bool):
        """Log a proctoring signal"""
        self._metrics["proctor_events"] += 1
        if cancelled:
            self._metrics["quizzes_auto_cancelled"] += 1
        logger.info(
            f"[TELEMETRY] event=proctor_event "
            f"session_id={session_id[:8]}... type={event_type} risk={risk_score} cancelled={cancelled}"
        )

    def log_review_published(self, session_id: str, publish_count: int):
        self._metrics["reviews_published"] += 1
        logger.info(
            f"[TELEMETRY] event=review_published "
            f"session_id={session_id[:8]}... publish_count={publish_count}"
        )

    # ========================================================================
    # Metrics
    # ========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get aggregated metrics.

        Returns:
            Dict with all telemetry metrics
        """
        uptime_seconds = (datetime.utcnow() - self._started_at).total_seconds()

        answers_total = self._metrics["answers_total"]
        ai_rate = self._metrics["answers_ai"] / answers_total if answers_total > 0 else 0

        started = self._metrics["quizzes_started"]
        completion_rate = self._metrics["quizzes_completed"] / started if started > 0 else 0

        return {
            "uptime_seconds": int(uptime_seconds),
            "banks": {
                "created": self._metrics["banks_created"],
                "questions": self._metrics["questions_generated"]
            },
            "quizzes": {
                "started": started,
                "completed": self._metrics["quizzes_completed"],
                "timed_out": self._metrics["quizzes_timed_out"],
                "auto_cancelled": self._metrics["quizzes_auto_cancelled"],
                "duplicate_flows": self._metrics["duplicate_flows"],
                "completion_rate": round(completion_rate, 3)
            },
            "answers": {
                "total": answers_total,
                "ai": self._metrics["answers_ai"],
                "lexical": self._metrics["answers_lexical"],
                "penalized": self._metrics["answers_penalized"],
                "ai_rate": round(ai_rate, 3)
            },
            "proctor_events": self._metrics["proctor_events"],
            "reviews_published": self._metrics["reviews_published"]
        }

    def reset_metrics(self):
        """Reset all metrics"""
        self._metrics = defaultdict(int)
        self._started_at = datetime.utcnow()
        logger.info("[TELEMETRY] Metrics reset")


_telemetry: Optional[QuizTelemetry] = None


def get_quiz_telemetry() -> QuizTelemetry:
    """Get singleton telemetry instance"""
    global _telemetry
    if _telemetry is None:
        _telemetry = QuizTelemetry()
    return _telemetry
