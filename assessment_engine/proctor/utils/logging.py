"""
Proctoring Logger - Logs proctoring events, warnings and cancellations
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Quiz session ID
        event_type: Event name (tab_hidden, mobile_phone, warning, ...)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_warning_issued(session_id: str, warning: str, risk_score: int, warning_count: int):
    """Log a warning shown to the student"""
    log_proctor_event(
        session_id=session_id,
        event_type="warning",
        details={
            "risk": risk_score,
            "count": warning_count,
            "message": f'"{warning}"'
        },
        level="warning"
    )


def log_auto_cancel(session_id: str, reason: str, risk_score: int):
    """Log an auto-cancelled attempt"""
    log_proctor_event(
        session_id=session_id,
        event_type="auto_cancel",
        details={
            "risk": risk_score,
            "reason": f'"{reason}"'
        },
        level="error"
    )
