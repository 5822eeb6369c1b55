"""
Teacher Review & Publish Workflow

Teachers override per-response marks/feedback and set overall marks and a
remark, then publish. Publishing is rate-limited (3 times per session) and
idempotent: a republish needs a review whose canonical signature differs
from the last published one.
"""
import hashlib
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import (
    AssessmentError,
    NoChangesSincePublish,
    OverallMarksMissing,
    PublishLimitReached,
    SessionNotCompleted,
)
from .quiz_models import QuizSession, Response

logger = logging.getLogger(__name__)

PUBLISH_LIMIT = 3


class _Unset:
    """Marker for a review field the teacher did not send"""

    def __repr__(self):
        return "UNSET"


UNSET = _Unset()


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _marks_2dp(value: Any) -> Optional[float]:
    number = _finite(value)
    return round(number, 2) if number is not None else None


def review_signature(
    responses: Iterable[Response],
    overall_marks: Any,
    overall_remark: Optional[str]
) -> str:
    """
    SHA-256 over the canonical review content.

    Each response contributes (question id, teacher marks at 2dp, trimmed
    teacher feedback); entries are sorted by question id, so response
    order and sub-cent float noise do not change the signature.
    """
    entries = []
    for r in responses:
        qid = str(r.question_id or "").strip()
        if not qid:
            continue
        entries.append({
            "qid": qid,
            "marks": _marks_2dp(r.teacher_marks_awarded),
            "feedback": str(r.teacher_feedback or "").strip()
        })
    entries.sort(key=lambda e: e["qid"])

    payload = {
        "responses": entries,
        "overall_marks": _marks_2dp(overall_marks),
        "overall_remark": str(overall_remark or "").strip() or None
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def session_signature(session: QuizSession) -> str:
    return review_signature(
        session.answered,
        session.publish.teacher_overall_marks,
        session.publish.teacher_overall_remark
    )


@dataclass
class ReviewEdit:
    """Teacher override for one response; UNSET fields are left alone"""
    question_id: str
    teacher_marks_awarded: Any = UNSET
    teacher_feedback: Any = UNSET


def apply_review_edits(
    session: QuizSession,
    edits: Iterable[ReviewEdit],
    overall_marks: Any = UNSET,
    overall_remark: Any = UNSET,
    now: Optional[datetime] = None
):
    """
    Write teacher edits onto a session.

    Per-response marks are clamped at 0 and non-numeric marks are ignored.
    Overall marks of None or blank clear the value; negatives clamp to 0.
    The remark is trimmed and a blank remark becomes None.
    """
    by_question = {e.question_id: e for e in edits}
    for response in session.answered:
        edit = by_question.get(response.question_id)
        if edit is None:
            continue
        if edit.teacher_feedback is not UNSET:
            response.teacher_feedback = str(edit.teacher_feedback or "")
        if edit.teacher_marks_awarded is not UNSET:
            marks = _finite(edit.teacher_marks_awarded)
            if marks is not None:
                response.teacher_marks_awarded = max(0.0, marks)

    publish = session.publish
    if overall_marks is not UNSET:
        if overall_marks is None or str(overall_marks).strip() == "":
            publish.teacher_overall_marks = None
        else:
            marks = _finite(overall_marks)
            if marks is not None:
                publish.teacher_overall_marks = max(0.0, marks)
    if overall_remark is not UNSET:
        publish.teacher_overall_remark = str(overall_remark or "").strip() or None

    publish.last_review_edited_at = now or datetime.utcnow()


def publish(session: QuizSession, now: Optional[datetime] = None, baseline: Optional[str] = None) -> str:
    """
    Publish the current review.

    Args:
        session: Session under review
        now: Publish timestamp
        baseline: Signature to compare against (default: last published)

    Returns:
        The new review signature

    Raises:
        SessionNotCompleted, OverallMarksMissing, PublishLimitReached,
        NoChangesSincePublish
    """
    state = session.publish
    if not session.completed:
        raise SessionNotCompleted()
    if _finite(state.teacher_overall_marks) is None:
        raise OverallMarksMissing()
    if state.publish_count >= PUBLISH_LIMIT:
        raise PublishLimitReached()

    signature = session_signature(session)
    last = baseline if baseline is not None else state.last_published_review_hash
    if state.publish_count > 0 and last and signature == last:
        raise NoChangesSincePublish()

    state.teacher_published_at = now or datetime.utcnow()
    state.publish_count += 1
    state.last_published_review_hash = signature

    logger.info(
        f"[PUBLISH] session={session.id[:8]}... published "
        f"({state.publish_count}/{PUBLISH_LIMIT}) marks={state.teacher_overall_marks}"
    )
    return signature


def submit_review(
    session: QuizSession,
    edits: Iterable[ReviewEdit] = (),
    overall_marks: Any = UNSET,
    overall_remark: Any = UNSET,
    publish_final: bool = False,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Apply a teacher review and optionally publish it.

    Edits are kept even when the publish step is rejected. A session
    published before without a stored signature uses its pre-edit review
    as the baseline.
    """
    now = now or datetime.utcnow()
    state = session.publish
    baseline = state.last_published_review_hash
    if baseline is None and state.is_published:
        baseline = session_signature(session)

    apply_review_edits(session, edits, overall_marks, overall_remark, now)

    if publish_final:
        publish(session, now, baseline)

    return {
        "quiz_id": session.id,
        "teacher_published_at": state.teacher_published_at.isoformat() if state.teacher_published_at else None,
        "publish_count": state.publish_count,
        "publish_limit": PUBLISH_LIMIT,
        "last_review_edited_at": state.last_review_edited_at.isoformat() if state.last_review_edited_at else None
    }


# ============================================================================
# Bulk publish
# ============================================================================

def bulk_publish_item(
    quiz_id: str,
    session: Optional[QuizSession],
    test_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Publish one session of a batch; failures are reported, never raised"""
    if session is None:
        return {"quiz_id": quiz_id, "success": False, "error": "Quiz not found"}
    if test_id is not None and session.test_id != test_id:
        return {"quiz_id": quiz_id, "success": False, "error": "Quiz does not belong to this test"}

    try:
        publish(session, now)
    except AssessmentError as e:
        return {"quiz_id": quiz_id, "success": False, "error": e.message, "code": e.code}

    return {
        "quiz_id": quiz_id,
        "success": True,
        "publish_count": session.publish.publish_count,
        "teacher_published_at": session.publish.teacher_published_at.isoformat()
    }


def bulk_publish_report(results: List[Dict[str, Any]], test_id: Optional[str] = None) -> Dict[str, Any]:
    success_count = sum(1 for r in results if r["success"])
    logger.info(f"[PUBLISH] Bulk publish test={test_id}: {success_count}/{len(results)} published")
    return {
        "test_id": test_id,
        "results": results,
        "success_count": success_count,
        "failure_count": len(results) - success_count
    }
