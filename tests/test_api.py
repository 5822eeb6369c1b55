"""
Tests for the Assessment API routes
"""
import pytest
from fastapi.testclient import TestClient

from assessment_engine.main import app
from assessment_engine.services.quiz_engine import get_quiz_engine


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_quiz_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def document_set_id(client, sample_text):
    response = client.post("/api/documents", json={
        "owner_id": "teacher-1",
        "texts": [sample_text],
        "file_names": ["photosynthesis.txt"]
    })
    assert response.status_code == 200
    return response.json()["id"]


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestDocuments:
    """Test ingestion endpoint"""

    def test_ingest(self, client, sample_text):
        response = client.post("/api/documents", json={
            "owner_id": "teacher-1",
            "texts": [sample_text],
            "file_names": ["photosynthesis.txt"]
        })

        body = response.json()
        assert body["title"] == "photosynthesis"
        assert body["question_count"] == 2 * body["chunk_count"]

    def test_insufficient_content(self, client):
        response = client.post("/api/documents", json={"owner_id": "teacher-1", "texts": ["Too short."]})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "insufficient_content"

    def test_unknown_document_set(self, client):
        response = client.post("/api/quiz/start", json={"document_set_id": "missing", "student_id": "s1"})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "document_set_not_found"


class TestQuizFlow:
    """Test a quiz attempt over HTTP"""

    def test_full_attempt_and_review(self, client, engine, document_set_id):
        started = client.post("/api/quiz/start", json={
            "document_set_id": document_set_id,
            "student_id": "student-1",
            "question_count": 2,
            "test_id": "t1"
        }).json()
        quiz_id = started["quiz_id"]
        assert started["question"]["number"] == 1

        event = client.post(f"/api/quiz/{quiz_id}/proctor-event", json={"type": "window_blur"}).json()
        assert event["risk_score"] == 6 and not event["completed"]

        draft = client.patch(f"/api/quiz/{quiz_id}/autosave", json={"answer": "draft words"}).json()
        assert draft["saved"] and draft["word_count"] == 2

        for _ in range(2):
            session = engine.sessions.get(quiz_id)
            reply = client.post(f"/api/quiz/{quiz_id}/answer", json={
                "answer": session.current_question.reference
            }).json()
        assert reply["completed"]
        assert reply["result"]["total_questions"] == 2

        result = client.get(f"/api/quiz/{quiz_id}/result").json()
        assert result["average_percentage"] == 100.0

        logs = client.get(f"/api/quiz/{quiz_id}/proctor-logs").json()
        assert logs["proctor"]["events"][0]["type"] == "window_blur"

        review = client.patch(f"/api/quizzes/{quiz_id}/review", json={
            "teacher_overall_marks": "95",
            "teacher_overall_remark": "Excellent",
            "publish_final": True
        })
        assert review.status_code == 200
        assert review.json()["publish_count"] == 1

        again = client.patch(f"/api/quizzes/{quiz_id}/review", json={"publish_final": True})
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "no_changes_since_publish"

        analytics = client.get("/api/tests/t1/analytics").json()
        assert analytics["average_score"] == 95.0

    def test_unknown_quiz(self, client):
        response = client.get("/api/quiz/missing")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "Quiz session not found."

    def test_short_answer(self, client, document_set_id):
        quiz_id = client.post("/api/quiz/start", json={
            "document_set_id": document_set_id,
            "student_id": "student-1"
        }).json()["quiz_id"]

        response = client.post(f"/api/quiz/{quiz_id}/answer", json={"answer": "short"})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "answer_too_short"

    def test_review_before_completion(self, client, document_set_id):
        quiz_id = client.post("/api/quiz/start", json={
            "document_set_id": document_set_id,
            "student_id": "student-1"
        }).json()["quiz_id"]

        response = client.patch(f"/api/quizzes/{quiz_id}/review", json={
            "teacher_overall_marks": 50,
            "publish_final": True
        })

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "session_not_completed"

    def test_bulk_publish_reports_failures(self, client):
        response = client.post("/api/tests/t1/bulk-publish", json={"quiz_ids": ["missing"]})

        body = response.json()
        assert body["failure_count"] == 1
        assert body["results"][0]["error"] == "Quiz not found"
