"""
Assessment API Routes

POST  /api/documents                    - Ingest extracted texts, build question bank
POST  /api/quiz/start                   - Start a quiz attempt
GET   /api/quiz/{quiz_id}               - Current state and question
POST  /api/quiz/{quiz_id}/answer        - Submit an answer
PATCH /api/quiz/{quiz_id}/autosave      - Save a draft answer
POST  /api/quiz/{quiz_id}/proctor-event - Report a proctoring signal
GET   /api/quiz/{quiz_id}/result        - Score report
GET   /api/quiz/{quiz_id}/proctor-logs  - Full proctoring state
PATCH /api/quizzes/{quiz_id}/review     - Teacher review / publish
POST  /api/tests/{test_id}/bulk-publish - Publish many attempts
GET   /api/tests/{test_id}/analytics    - Per-test statistics
"""
from fastapi import APIRouter, Depends, HTTPException

from ...services.exceptions import AssessmentError
from ...services.publish_workflow import UNSET, ReviewEdit
from ...services.quiz_engine import QuizEngine, get_quiz_engine
from ...utils.logging import log_error
from ..schemas.quiz import (
    AnswerRequest,
    AutosaveRequest,
    BulkPublishRequest,
    DocumentSetResponse,
    IngestDocumentsRequest,
    ProctorEventRequest,
    ProctorEventResponse,
    ReviewRequest,
    ReviewResponse,
    StartQuizRequest,
)

router = APIRouter(prefix="/api", tags=["Assessment"])


def _http_error(error: AssessmentError) -> HTTPException:
    log_error(type(error).__name__, error.message)
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


@router.post("/documents", response_model=DocumentSetResponse)
async def ingest_documents(request: IngestDocumentsRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    """Combine uploaded texts and derive the question bank."""
    try:
        document_set = await engine.ingest_documents(
            owner_id=request.owner_id,
            texts=request.texts,
            file_names=request.file_names,
            title=request.title
        )
    except AssessmentError as e:
        raise _http_error(e)

    return DocumentSetResponse(
        id=document_set.id,
        title=document_set.title,
        file_names=document_set.file_names,
        chunk_count=len(document_set.chunks),
        question_count=len(document_set.question_bank)
    )


@router.post("/quiz/start")
async def start_quiz(request: StartQuizRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    """Start a quiz attempt and return its first question."""
    try:
        session = await engine.create_quiz_session(
            document_set_id=request.document_set_id,
            student_id=request.student_id,
            initial_level=request.initial_level,
            question_count=request.question_count,
            topic=request.topic,
            question_format=request.question_format,
            duration_minutes=request.duration_minutes,
            test_id=request.test_id,
            roll_no=request.roll_no
        )
    except AssessmentError as e:
        raise _http_error(e)

    return engine.session_view(session)


@router.get("/quiz/{quiz_id}")
async def get_quiz(quiz_id: str, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        session = await engine.get_session(quiz_id)
    except AssessmentError as e:
        raise _http_error(e)
    return engine.session_view(session)


@router.post("/quiz/{quiz_id}/answer")
async def submit_answer(quiz_id: str, request: AnswerRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    """Score the current question and return the next one (or the result)."""
    try:
        outcome = await engine.submit_answer(quiz_id, answer=request.answer, mcq_choice=request.mcq_choice)
    except AssessmentError as e:
        raise _http_error(e)
    return outcome.to_dict()


@router.patch("/quiz/{quiz_id}/autosave")
async def autosave(quiz_id: str, request: AutosaveRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        return await engine.autosave_draft(quiz_id, request.answer)
    except AssessmentError as e:
        raise _http_error(e)


@router.post("/quiz/{quiz_id}/proctor-event", response_model=ProctorEventResponse)
async def proctor_event(quiz_id: str, request: ProctorEventRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        return await engine.register_proctor_event(quiz_id, request.type, request.meta)
    except AssessmentError as e:
        raise _http_error(e)


@router.get("/quiz/{quiz_id}/result")
async def quiz_result(quiz_id: str, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        return await engine.build_result(quiz_id)
    except AssessmentError as e:
        raise _http_error(e)


@router.get("/quiz/{quiz_id}/proctor-logs")
async def proctor_logs(quiz_id: str, engine: QuizEngine = Depends(get_quiz_engine)):
    try:
        return await engine.proctor_log(quiz_id)
    except AssessmentError as e:
        raise _http_error(e)


@router.patch("/quizzes/{quiz_id}/review", response_model=ReviewResponse)
async def review_quiz(quiz_id: str, request: ReviewRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    """
    Apply teacher marks/feedback and optionally publish.

    Fields missing from the body are left unchanged; an explicit null
    overall mark clears it.
    """
    sent = request.model_fields_set
    edits = []
    for item in request.responses:
        item_sent = item.model_fields_set
        edits.append(ReviewEdit(
            question_id=item.question_id,
            teacher_marks_awarded=item.teacher_marks_awarded if "teacher_marks_awarded" in item_sent else UNSET,
            teacher_feedback=item.teacher_feedback if "teacher_feedback" in item_sent else UNSET
        ))

    try:
        return await engine.submit_review(
            quiz_id,
            edits=edits,
            overall_marks=request.teacher_overall_marks if "teacher_overall_marks" in sent else UNSET,
            overall_remark=request.teacher_overall_remark if "teacher_overall_remark" in sent else UNSET,
            publish_final=request.publish_final
        )
    except AssessmentError as e:
        raise _http_error(e)


@router.post("/tests/{test_id}/bulk-publish")
async def bulk_publish(test_id: str, request: BulkPublishRequest, engine: QuizEngine = Depends(get_quiz_engine)):
    return await engine.bulk_publish(request.quiz_ids, test_id=test_id)


@router.get("/tests/{test_id}/analytics")
async def test_analytics(test_id: str, engine: QuizEngine = Depends(get_quiz_engine)):
    return engine.test_analytics(test_id)
