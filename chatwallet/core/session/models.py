"""
Session Models

Per-user dialogue state for multi-turn parameter collection.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..intent.models import Action


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_PARAM = "awaiting_param"
    EXECUTING = "executing"


@dataclass
class Session:
    user_id: int
    state: SessionState = SessionState.IDLE
    awaiting_param: Optional[str] = None
    pending_action: Optional[Action] = None
    collected_params: Dict[str, Any] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=utc_now)

    @property
    def is_idle(self) -> bool:
        return self.state == SessionState.IDLE

    @property
    def is_executing(self) -> bool:
        return self.state == SessionState.EXECUTING

    @property
    def is_awaiting(self) -> bool:
        return self.state == SessionState.AWAITING_PARAM


class InvalidTransitionError(Exception):
    """Raised when an invalid session state transition is attempted."""

    def __init__(
        self,
        from_state: SessionState,
        to_state: SessionState,
        message: Optional[str] = None,
    ):
        self.from_state = from_state
        self.to_state = to_state
        self.message = message or f"Cannot transition from {from_state.value} to {to_state.value}"
        super().__init__(self.message)
