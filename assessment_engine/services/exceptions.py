"""
Assessment Engine Errors

Validation errors are caller-correctable (HTTP 400); state errors
describe a session or publish workflow that cannot accept the call.
"""


class AssessmentError(Exception):
    """Base error for every caller-visible engine failure"""
    status_code = 400
    code = "assessment_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


# ============================================================================
# Validation errors
# ============================================================================

class InsufficientContent(AssessmentError):
    """Source content is too short to build a question bank."""
    code = "insufficient_content"


class EmptyQuestionBank(AssessmentError):
    """Unable to start quiz due to empty question pool."""
    code = "empty_question_bank"


class InvalidChoice(AssessmentError):
    """Invalid MCQ choice."""
    code = "invalid_choice"


class AnswerTooShort(AssessmentError):
    """Answer is too short for subjective evaluation."""
    code = "answer_too_short"


class InvalidEventType(AssessmentError):
    """Proctor event type is required."""
    code = "invalid_event_type"


# ============================================================================
# State errors
# ============================================================================

class SessionNotFound(AssessmentError):
    """Quiz session not found."""
    status_code = 404
    code = "session_not_found"


class DocumentSetNotFound(AssessmentError):
    """Source document set not found."""
    status_code = 404
    code = "document_set_not_found"


class NoActiveQuestion(AssessmentError):
    """No active question found."""
    code = "no_active_question"


class SessionCompleted(AssessmentError):
    """Quiz session is already completed."""
    status_code = 409
    code = "session_completed"


class SessionNotCompleted(AssessmentError):
    """Cannot publish before the student completes the test."""
    code = "session_not_completed"


class OverallMarksMissing(AssessmentError):
    """Overall marks are required before publishing."""
    code = "overall_marks_missing"


class PublishLimitReached(AssessmentError):
    """Republish limit reached (3/3). No further publishing allowed."""
    status_code = 409
    code = "publish_limit_reached"


class NoChangesSincePublish(AssessmentError):
    """No changes detected since last publish. Edit the review to republish."""
    status_code = 409
    code = "no_changes_since_publish"
