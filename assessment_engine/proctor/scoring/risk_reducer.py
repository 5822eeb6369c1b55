"""
Risk Reducer - Folds proctoring events into a session's ProctorState

Risk update:
    risk_score = min(100, risk_score + EVENT_WEIGHTS.get(type, 5))

Escalation (first match wins):
    mobile_phone      -> warn "(n/3)", auto-cancel on the 3rd occurrence
    multiple_faces    -> always warn
    risk >= 100       -> auto-cancel
    risk >= 80/55/30  -> critical / high / early warning, each once per session

reduce_proctor_event is pure; apply_proctor_event writes the outcome back
onto a QuizSession.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from ...services.quiz_models import ProctorEvent, ProctorState, QuizSession
from ..utils.logging import log_auto_cancel, log_proctor_event, log_warning_issued

logger = logging.getLogger(__name__)

EVENT_WEIGHTS: Dict[str, int] = {
    "tab_hidden": 10,
    "window_blur": 6,
    "fullscreen_exit": 12,
    "media_muted": 14,
    "copy_attempt": 5,
    "paste_attempt": 8,
    "context_menu": 3,
    "no_face": 10,
    "multiple_faces": 20,
    "mobile_phone": 30,
    "suspicious_noise": 7,
}
DEFAULT_EVENT_WEIGHT = 5
MAX_RISK = 100
MOBILE_PHONE_LIMIT = 3

# (threshold, warning shown, tag recorded in warning_messages)
WARNING_LADDER = (
    (80, "Critical warning: suspicious behavior detected repeatedly.", "Critical warning"),
    (55, "High warning: return to fullscreen and focus on the exam.", "High warning"),
    (30, "Warning: unusual exam behavior detected.", "Early warning"),
)
RISK_CANCEL_MESSAGE = "Auto-cancelled: Cheating risk reached 100%"
MOBILE_CANCEL_MESSAGE = f"Auto-cancelled: Mobile phone detected {MOBILE_PHONE_LIMIT} times"
MULTIPLE_FACES_WARNING = "Warning: More than 1 person in the camera"


@dataclass
class ProctorOutcome:
    """New state plus the warning (empty if none) and cancel flag"""
    state: ProctorState
    warning: str = ""
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_score": self.state.risk_score,
            "warning": self.warning,
            "warning_count": self.state.warning_count,
            "cancelled": self.cancelled
        }


def event_weight(event_type: str) -> int:
    return EVENT_WEIGHTS.get(event_type, DEFAULT_EVENT_WEIGHT)


def reduce_proctor_event(
    state: ProctorState,
    event_type: str,
    meta: Optional[Dict[str, Any]] = None,
    timestamp: Optional[str] = None,
    session_active: bool = True
) -> ProctorOutcome:
    """
    Compute the state after one proctoring event.

    Args:
        state: Current state (not mutated)
        event_type: Signal name; unknown types weigh 5
        meta: Free-form event details
        timestamp: ISO timestamp recorded on the event
        session_active: False if the session already completed; warnings
            are still computed but warning_count does not grow

    Returns:
        ProctorOutcome with the new state
    """
    risk = min(MAX_RISK, state.risk_score + event_weight(event_type))
    events = list(state.events)
    events.append(ProctorEvent(
        type=event_type,
        meta=dict(meta or {}),
        timestamp=timestamp or datetime.utcnow().isoformat(),
        risk_score=risk
    ))
    messages = list(state.warning_messages)

    warning = ""
    cancelled = False

    if event_type == "mobile_phone":
        seen = sum(1 for e in events if e.type == "mobile_phone")
        if seen >= MOBILE_PHONE_LIMIT:
            warning = MOBILE_CANCEL_MESSAGE
            cancelled = True
        else:
            warning = f"Warning: Mobile phone detected ({seen}/{MOBILE_PHONE_LIMIT})"
            messages.append("Mobile phone detected")
    elif event_type == "multiple_faces":
        warning = MULTIPLE_FACES_WARNING
        messages.append("Multiple persons detected")
    elif risk >= MAX_RISK:
        warning = RISK_CANCEL_MESSAGE
        cancelled = True
    else:
        for threshold, text, tag in WARNING_LADDER:
            if risk >= threshold:
                # first reached rung whose tag is not yet recorded
                if tag not in messages:
                    warning = text
                    messages.append(tag)
                    break

    warning_count = state.warning_count
    if warning and not cancelled and session_active:
        warning_count += 1
    if cancelled and session_active:
        messages.append(warning)

    new_state = replace(
        state,
        risk_score=risk,
        warning_count=warning_count,
        warning_messages=messages,
        events=events
    )
    return ProctorOutcome(state=new_state, warning=warning, cancelled=cancelled)


def apply_proctor_event(
    session: QuizSession,
    event_type: str,
    meta: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None
) -> ProctorOutcome:
    """Reduce one event onto a session, completing it on auto-cancel"""
    now = now or datetime.utcnow()
    active = not session.completed
    outcome = reduce_proctor_event(
        session.proctor,
        event_type,
        meta,
        timestamp=now.isoformat(),
        session_active=active
    )
    session.proctor = outcome.state

    log_proctor_event(session.id, event_type, {"risk": outcome.state.risk_score}, level="debug")

    if outcome.cancelled and active:
        session.complete(now)
        log_auto_cancel(session.id, outcome.warning, outcome.state.risk_score)
    elif outcome.warning:
        log_warning_issued(session.id, outcome.warning, outcome.state.risk_score, outcome.state.warning_count)

    return outcome
