"""Scoring modules"""

from .risk_reducer import EVENT_WEIGHTS, ProctorOutcome, apply_proctor_event, reduce_proctor_event

__all__ = ["EVENT_WEIGHTS", "ProctorOutcome", "apply_proctor_event", "reduce_proctor_event"]
