"""
Session Store

Keyed, in-process session storage with per-user serialization. Every
mutation is validated against the allowed transition map; callers hold
``locked(user_id)`` across a read-decide-write sequence so two updates
from the same user cannot interleave.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Set

from ..intent.models import Action
from .models import InvalidTransitionError, Session, SessionState, utc_now


class SessionStore:
    """One Session per user, created lazily and never deleted."""

    TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
        SessionState.IDLE: {
            SessionState.AWAITING_PARAM,
            SessionState.EXECUTING,
        },
        SessionState.AWAITING_PARAM: {
            SessionState.AWAITING_PARAM,  # Next parameter
            SessionState.EXECUTING,
            SessionState.IDLE,            # Cancel or replaced by a non-collecting action
        },
        SessionState.EXECUTING: {
            SessionState.IDLE,
        },
    }

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._sessions: Dict[int, Session] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def locked(self, user_id: int) -> AsyncIterator[Session]:
        """Exclusive access to one user's session."""
        async with self._lock_for(user_id):
            yield self.get_or_create(user_id)

    def get_or_create(self, user_id: int) -> Session:
        session = self._sessions.get(user_id)
        if session is None:
            session = self._sessions[user_id] = Session(user_id=user_id)
        return session

    def can_transition(self, session: Session, to_state: SessionState) -> bool:
        return to_state in self.TRANSITIONS.get(session.state, set())

    def _transition(self, session: Session, to_state: SessionState) -> None:
        from_state = session.state
        if not self.can_transition(session, to_state):
            allowed = sorted(s.value for s in self.TRANSITIONS.get(from_state, set()))
            raise InvalidTransitionError(
                from_state=from_state,
                to_state=to_state,
                message=f"Invalid transition from {from_state.value} to {to_state.value}. Allowed: {allowed}",
            )
        session.state = to_state
        session.last_updated = utc_now()
        self.logger.debug("Session %s: %s -> %s", session.user_id, from_state.value, to_state.value)

    def apply_partial(self, user_id: int, name: str, value: Any) -> Session:
        """Merge one collected value into the session (new values win)."""
        session = self.get_or_create(user_id)
        if session.is_executing:
            raise InvalidTransitionError(
                session.state,
                session.state,
                f"Cannot collect '{name}' while an operation is executing",
            )
        session.collected_params[name] = value
        if session.pending_action is not None:
            session.pending_action.params[name] = value
        session.last_updated = utc_now()
        return session

    def discard_param(self, user_id: int, name: str) -> Session:
        session = self.get_or_create(user_id)
        session.collected_params.pop(name, None)
        if session.pending_action is not None:
            session.pending_action.params.pop(name, None)
        return session

    def await_param(self, user_id: int, action: Action, name: str) -> Session:
        """Park ``action`` until the user supplies ``name``."""
        session = self.get_or_create(user_id)
        self._transition(session, SessionState.AWAITING_PARAM)
        session.pending_action = action
        session.collected_params = action.params
        session.awaiting_param = name
        return session

    def begin_execution(self, user_id: int, action: Action) -> Session:
        session = self.get_or_create(user_id)
        self._transition(session, SessionState.EXECUTING)
        session.pending_action = action
        session.collected_params = action.params
        session.awaiting_param = None
        return session

    def reset(self, user_id: int) -> Session:
        """Back to IDLE with nothing pending."""
        session = self.get_or_create(user_id)
        if not session.is_idle:
            self._transition(session, SessionState.IDLE)
        session.awaiting_param = None
        session.pending_action = None
        session.collected_params = {}
        session.last_updated = utc_now()
        return session

    def __len__(self) -> int:
        return len(self._sessions)
