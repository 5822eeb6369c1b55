"""
Pydantic Schemas for the Assessment API
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional, Union


# ============================================================================
# Request Schemas
# ============================================================================

class IngestDocumentsRequest(BaseModel):
    """Extracted plain texts of uploaded study material."""
    owner_id: str = Field(..., min_length=1, description="Instructor user ID")
    texts: List[str] = Field(..., min_length=1, description="Plain text per uploaded file")
    file_names: List[str] = Field(default_factory=list, description="Original file names")
    title: Optional[str] = Field(None, description="Display title (default: first file name)")


class StartQuizRequest(BaseModel):
    """Request to start a quiz attempt."""
    document_set_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    initial_level: Optional[str] = Field(None, description="beginner | intermediate | advanced, or easy | medium | hard")
    question_count: Optional[int] = Field(None, description="Clamped to 1-20 (default 8)")
    topic: Optional[str] = None
    question_format: Optional[Literal["subjective", "mcq", "mixed"]] = None
    duration_minutes: Optional[int] = Field(None, description="At least 5 (default 20)")
    test_id: Optional[str] = None
    roll_no: Optional[str] = None


class AnswerRequest(BaseModel):
    """Answer to the current question."""
    answer: Optional[str] = None
    mcq_choice: Optional[int] = None


class AutosaveRequest(BaseModel):
    answer: str = ""


class ProctorEventRequest(BaseModel):
    """Browser or camera signal."""
    type: str = Field("", description="tab_hidden, window_blur, mobile_phone, ...")
    meta: Dict[str, Any] = Field(default_factory=dict)


class ReviewEditRequest(BaseModel):
    """Teacher override for one response."""
    question_id: str
    teacher_marks_awarded: Optional[Union[float, str]] = None
    teacher_feedback: Optional[str] = None


class ReviewRequest(BaseModel):
    """Teacher review; omitted fields are left unchanged."""
    responses: List[ReviewEditRequest] = Field(default_factory=list)
    teacher_overall_marks: Optional[Union[float, str]] = None
    teacher_overall_remark: Optional[str] = None
    publish_final: bool = False


class BulkPublishRequest(BaseModel):
    quiz_ids: List[str] = Field(..., min_length=1)


# ============================================================================
# Response Schemas
# ============================================================================

class DocumentSetResponse(BaseModel):
    """Ingested document set summary."""
    id: str
    title: str
    file_names: List[str]
    chunk_count: int
    question_count: int


class ProctorEventResponse(BaseModel):
    risk_score: int
    warning: str
    warning_count: int
    cancelled: bool
    completed: bool


class ReviewResponse(BaseModel):
    quiz_id: str
    teacher_published_at: Optional[str] = None
    publish_count: int
    publish_limit: int
    last_review_edited_at: Optional[str] = None
