"""
Proctoring Risk Module

Accumulates a bounded cheating-risk score (0-100) from browser and camera
signals reported during a quiz, issues escalating warnings and
auto-cancels the attempt on repeated or severe violations.
"""

from .scoring import EVENT_WEIGHTS, ProctorOutcome, apply_proctor_event, reduce_proctor_event

__all__ = ["EVENT_WEIGHTS", "ProctorOutcome", "apply_proctor_event", "reduce_proctor_event"]
