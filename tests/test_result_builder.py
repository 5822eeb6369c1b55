"""
Tests for Result Aggregation and Test Analytics
"""
from datetime import datetime, timedelta

import pytest

from assessment_engine.services.quiz_models import ProctorState, PublishState, Response
from assessment_engine.services.result_builder import (
    build_result,
    build_test_analytics,
    remark_for,
    response_marks,
    risk_bucket,
)

from conftest import make_question, make_session


NOW = datetime(2024, 3, 1, 9, 10)


@pytest.fixture
def scored_session():
    bank = [make_question("i1"), make_question("a1", "advanced"), make_question("b1", "beginner")]
    session = make_session(bank, question_count=4, total_marks=100.0, marks_per_question=25.0)
    session.current_level = "advanced"
    session.responses = [
        Response(question_id="i1", difficulty="intermediate", percentage=80, marks_awarded=20.0, feedback="ok"),
        Response(question_id="a1", difficulty="advanced", percentage=100, marks_awarded=25.0),
        Response(question_id="b1", difficulty="beginner", percentage=40, marks_awarded=10.0),
        Response(question_id="x9", difficulty="advanced", answer="draft text", is_draft=True),
    ]
    return session


class TestRemarks:
    """Test remark tiers and helpers"""

    @pytest.mark.parametrize("score,remark", [
        (95, "Outstanding"),
        (90, "Outstanding"),
        (75, "Great work"),
        (60, "Good progress"),
        (40, "Needs improvement"),
        (39.99, "Critical: revise basics"),
    ])
    def test_remark_tiers(self, score, remark):
        assert remark_for(score) == remark

    def test_response_marks_derived_from_percentage(self):
        response = Response(question_id="q", difficulty="beginner", percentage=50)

        assert response_marks(response, 25) == 12.5

    def test_response_marks_missing(self):
        assert response_marks(Response(question_id="q", difficulty="beginner"), 25) is None

    @pytest.mark.parametrize("risk,bucket", [(0, "low"), (29, "low"), (30, "medium"), (55, "high"), (80, "critical")])
    def test_risk_buckets(self, risk, bucket):
        assert risk_bucket(risk) == bucket


class TestBuildResult:
    """Test per-session score reports"""

    def test_scored_report(self, scored_session):
        result = build_result(scored_session, now=NOW)

        assert result["total_questions"] == 3
        assert result["average_percentage"] == 73.33
        assert result["marks_obtained"] == 55.0
        assert result["marks_percent"] == 55.0
        assert result["remark"] == "Needs improvement"
        assert result["level_progression"] == {"started": "intermediate", "ended": "advanced"}
        assert result["difficulty_breakdown"] == {"beginner": 40.0, "intermediate": 80.0, "advanced": 100.0}
        assert [r["question_no"] for r in result["responses"]] == [1, 2, 3]
        assert not result["timed_out"]
        assert not result["teacher_published"]

    def test_drafts_never_count(self, scored_session):
        result = build_result(scored_session, now=NOW)

        assert "x9" not in [r["question_id"] for r in result["responses"]]

    def test_empty_session(self):
        session = make_session([make_question("i1")])

        result = build_result(session, now=NOW)

        assert result["average_percentage"] == 0.0
        assert result["marks_obtained"] == 0.0
        assert result["remark"] == "Critical: revise basics"
        assert result["difficulty_breakdown"] == {"beginner": None, "intermediate": None, "advanced": None}

    def test_past_deadline_reported_as_timed_out(self, scored_session):
        result = build_result(scored_session, now=scored_session.deadline_at + timedelta(seconds=1))

        assert result["timed_out"]

    def test_teacher_marks_ignored_until_published(self, scored_session):
        scored_session.responses[0].teacher_marks_awarded = 22.0
        scored_session.publish.teacher_overall_marks = 70.0

        assert build_result(scored_session, now=NOW)["marks_obtained"] == 55.0

    def test_published_overall_marks_win(self, scored_session):
        scored_session.publish = PublishState(
            teacher_overall_marks=70.0,
            teacher_overall_remark="Solid effort",
            teacher_published_at=NOW,
            publish_count=1
        )

        result = build_result(scored_session, now=NOW)

        assert result["marks_obtained"] == 70.0
        assert result["marks_percent"] == 70.0
        assert result["remark"] == "Good progress"
        assert result["teacher_overall_remark"] == "Solid effort"
        assert result["teacher_published_at"] == NOW.isoformat()

    def test_published_row_overrides_without_overall(self, scored_session):
        scored_session.responses[0].teacher_marks_awarded = 22.0
        scored_session.publish = PublishState(teacher_published_at=NOW, publish_count=1)

        assert build_result(scored_session, now=NOW)["marks_obtained"] == 57.0

    def test_proctoring_summary(self, scored_session):
        scored_session.proctor = ProctorState(risk_score=40, warning_count=1, warning_messages=["Early warning"])

        proctoring = build_result(scored_session, now=NOW)["proctoring"]

        assert proctoring == {"risk_score": 40, "warning_count": 1, "warning_messages": ["Early warning"]}


class TestTestAnalytics:
    """Test per-test aggregation"""

    def make_attempt(self, test_id, completed, overall, risk):
        session = make_session([make_question("i1")], test_id=test_id, completed=completed)
        session.publish.teacher_overall_marks = overall
        session.proctor.risk_score = risk
        return session

    def test_no_attempts(self):
        assert build_test_analytics([], "t1") == {"test_id": "t1", "empty": True}

    def test_aggregates(self):
        sessions = [
            self.make_attempt("t1", True, 80.0, 10),
            self.make_attempt("t1", True, None, 60),
            self.make_attempt("t1", False, 95.0, 85),
            self.make_attempt("t2", True, 50.0, 0),
        ]

        analytics = build_test_analytics(sessions, "t1")

        assert analytics["total_students"] == 3
        assert analytics["completed_count"] == 2
        assert analytics["completion_rate"] == 66.7
        assert analytics["average_score"] == 40.0
        assert analytics["highest_score"] == 80.0
        assert analytics["lowest_score"] == 0.0
        assert analytics["average_risk"] == 51.7
        assert analytics["risk_distribution"] == {"low": 1, "medium": 0, "high": 1, "critical": 1}
