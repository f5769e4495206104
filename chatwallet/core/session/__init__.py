"""
Session Module

Per-user dialogue state machine: IDLE -> AWAITING_PARAM -> EXECUTING -> IDLE.
"""

from .models import InvalidTransitionError, Session, SessionState
from .store import SessionStore

__all__ = [
    "InvalidTransitionError",
    "Session",
    "SessionState",
    "SessionStore",
]
