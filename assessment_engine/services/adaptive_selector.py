"""
Adaptive Question Selection

Difficulty tracking for a quiz session: the next question is biased toward
the session's current level, and the level moves one step after each
scored answer.
"""
import logging
from typing import List, Optional

from .quiz_models import Question, QuizSession, LEVELS, LEVEL_INDEX

logger = logging.getLogger(__name__)

PROMOTE_THRESHOLD = 82
DEMOTE_THRESHOLD = 45


def adjust_level(level: str, percentage: float) -> str:
    """
    Move one level up on a strong answer, one level down on a weak one.

    >>> adjust_level("intermediate", 82)
    'advanced'
    >>> adjust_level("beginner", 30)
    'beginner'
    """
    idx = LEVEL_INDEX.get(level, LEVEL_INDEX["intermediate"])
    if percentage >= PROMOTE_THRESHOLD and idx < len(LEVELS) - 1:
        idx += 1
    elif percentage <= DEMOTE_THRESHOLD and idx > 0:
        idx -= 1
    return LEVELS[idx]


def pick_next_question(session: QuizSession, bank: Optional[List[Question]] = None) -> Optional[Question]:
    """
    Select and record the next question of a session.

    Preference order is same level, one level higher, one level lower,
    then any remaining candidate. The chosen id is appended to
    askedQuestionIds.

    Returns:
        The question, or None once question_count questions were asked or
        no candidates remain
    """
    if len(session.asked_question_ids) >= session.question_count:
        return None

    bank = session.assigned_bank if bank is None else bank
    asked = set(session.asked_question_ids)
    candidates = [q for q in bank if q.id not in asked]
    if not candidates:
        return None

    target = LEVEL_INDEX.get(session.current_level, LEVEL_INDEX["intermediate"])
    higher = min(len(LEVELS) - 1, target + 1)
    lower = max(0, target - 1)

    same = [q for q in candidates if LEVEL_INDEX.get(q.difficulty) == target]
    above = [q for q in candidates if LEVEL_INDEX.get(q.difficulty) == higher]
    below = [q for q in candidates if LEVEL_INDEX.get(q.difficulty) == lower]

    ordered = same + above + below
    chosen = ordered[0] if ordered else candidates[0]
    session.asked_question_ids.append(chosen.id)

    logger.debug(
        f"[ADAPTIVE] session={session.id[:8]}... level={session.current_level} "
        f"picked={chosen.id} ({chosen.difficulty})"
    )
    return chosen
