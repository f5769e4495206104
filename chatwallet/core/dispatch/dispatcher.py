"""
Action Dispatcher

Owns the per-user session. For each incoming Action it merges the new
parameters, asks for the first missing one, or normalizes and hands the
complete action to the execution engine. The session is back to IDLE after
every execution, whatever the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ...services.address import is_valid_evm_address, normalize_chain, supported_chain_names
from ..amounts import parse_amount
from ..errors import ValidationFailed, WalletRequired
from ..execution.engine import ExecutionEngine
from ..execution.models import ExecutionResult
from ..intent.models import WALLET_KINDS, Action, ActionKind
from ..session import Session, SessionStore
from ..wallet import KeyStore

logger = logging.getLogger(__name__)

BUSY_TEXT = "⏳ Your previous request is still being processed. Please wait for it to finish."
CANCELLED_TEXT = "❌ Cancelled."
NOTHING_TO_CANCEL_TEXT = "Nothing to cancel."


class OutcomeKind(str, Enum):
    PROMPT = "prompt"          # waiting for one parameter
    RESULT = "result"          # engine ran, or a wallet precondition failed
    REPLY = "reply"            # conversational answer, nothing executed
    BUSY = "busy"              # refused: an execution is in flight
    CANCELLED = "cancelled"


@dataclass
class DispatchOutcome:
    kind: OutcomeKind
    action: Optional[Action] = None
    text: Optional[str] = None
    param: Optional[str] = None
    result: Optional[ExecutionResult] = None


def param_prompt(kind: ActionKind, name: str, params: Dict[str, Any]) -> str:
    """The question asked when ``name`` is the next missing parameter."""
    if name == "amount":
        if kind == ActionKind.SWAP:
            token = str(params.get("from_token") or "tokens").upper()
            return f'How much {token} do you want to swap? (e.g., 10, 50% or "all")'
        if kind == ActionKind.BRIDGE:
            token = str(params.get("token") or "SOL").upper()
            return f"How much {token} do you want to bridge? (minimum 0.05 SOL)"
        return 'Enter the amount to send (e.g., 0.5 or "all")'
    prompts = {
        "recipient": "Enter recipient address, .sol domain, or @username",
        "from_token": "Which token do you want to swap from? (e.g., SOL, USDC)",
        "to_token": "Which token do you want to receive? (e.g., USDC, BONK)",
        "from_chain": "Which chain are you bridging from?",
        "to_chain": f"Which chain should the funds arrive on? ({supported_chain_names()})",
        "to_address": "Enter the destination wallet address (0x...)",
        "private_key": "Send your private key (JSON array format, or base58)",
    }
    return prompts.get(name, f"Please provide the {name.replace('_', ' ')}.")


def normalize_action(action: Action) -> Tuple[Dict[str, Any], Optional[ValidationFailed]]:
    """Canonicalize present params; the first invalid one is dropped and reported."""
    params = {
        key: value.strip() if isinstance(value, str) else value
        for key, value in action.params.items()
    }

    if action.kind == ActionKind.BRIDGE:
        params.setdefault("from_chain", "solana")
        for name in ("from_chain", "to_chain"):
            if name not in params:
                continue
            chain = normalize_chain(str(params[name]))
            if chain is None:
                bad = params.pop(name)
                return params, ValidationFailed(
                    f"I don't know the chain '{bad}'. Supported chains: {supported_chain_names()}.",
                    param=name,
                )
            params[name] = chain
        if "to_address" in params and not is_valid_evm_address(str(params["to_address"])):
            bad = params.pop("to_address")
            return params, ValidationFailed(
                f"'{bad}' is not a valid EVM address.",
                param="to_address",
            )

    if action.kind in (ActionKind.TRANSFER, ActionKind.SWAP, ActionKind.BRIDGE):
        if params.get("amount") not in (None, "") or params.get("percentage") not in (None, ""):
            try:
                parse_amount(params.get("amount"), params.get("percentage"))
            except ValidationFailed as exc:
                params.pop("amount", None)
                params.pop("percentage", None)
                exc.param = "amount"
                return params, exc

    return params, None


class ActionDispatcher:
    def __init__(self, sessions: SessionStore, engine: ExecutionEngine, keystore: KeyStore):
        self.sessions = sessions
        self.engine = engine
        self.keystore = keystore

    def awaiting(self, user_id: int) -> Tuple[Optional[str], Optional[ActionKind]]:
        """Snapshot of what the user's next plain-text message will answer."""
        session = self.sessions.get_or_create(user_id)
        if not session.is_awaiting or session.pending_action is None:
            return None, None
        return session.awaiting_param, session.pending_action.kind

    def is_busy(self, user_id: int) -> bool:
        return self.sessions.get_or_create(user_id).is_executing

    async def cancel(self, user_id: int) -> DispatchOutcome:
        async with self.sessions.locked(user_id) as session:
            if session.is_executing:
                return DispatchOutcome(OutcomeKind.BUSY, text=BUSY_TEXT)
            had_pending = session.is_awaiting
            self.sessions.reset(user_id)
        return DispatchOutcome(
            OutcomeKind.CANCELLED,
            text=CANCELLED_TEXT if had_pending else NOTHING_TO_CANCEL_TEXT,
        )

    async def dispatch(self, user_id: int, action: Action) -> DispatchOutcome:
        if action.kind == ActionKind.CHAT:
            return DispatchOutcome(OutcomeKind.REPLY, action=action, text=action.reply_text or "")

        async with self.sessions.locked(user_id) as session:
            if session.is_executing:
                logger.info("Refusing %s for user %s: execution in flight", action.kind.value, user_id)
                return DispatchOutcome(OutcomeKind.BUSY, action=action, text=BUSY_TEXT)

            merged = self._merge(session, action)

            if merged.kind in WALLET_KINDS and not await self.keystore.has(user_id):
                self.sessions.reset(user_id)
                return DispatchOutcome(
                    OutcomeKind.RESULT,
                    action=merged,
                    result=ExecutionResult.from_error(merged.kind, WalletRequired()),
                )

            merged.params, problem = normalize_action(merged)
            missing = merged.missing_params()
            if missing:
                name = problem.param if problem is not None and problem.param in missing else missing[0]
                self.sessions.await_param(user_id, merged, name)
                prompt = param_prompt(merged.kind, name, merged.params)
                if problem is not None:
                    prompt = f"⚠️ {problem.message}\n\n{prompt}"
                logger.debug("User %s: %s awaiting %s", user_id, merged.kind.value, name)
                return DispatchOutcome(OutcomeKind.PROMPT, action=merged, text=prompt, param=name)

            self.sessions.begin_execution(user_id, merged)

        try:
            result = await self.engine.execute(user_id, merged)
        finally:
            async with self.sessions.locked(user_id):
                self.sessions.reset(user_id)
        return DispatchOutcome(OutcomeKind.RESULT, action=merged, result=result)

    def _merge(self, session: Session, action: Action) -> Action:
        pending = session.pending_action
        if session.is_awaiting and pending is not None and pending.kind == action.kind:
            params = dict(pending.params)
            params.update({k: v for k, v in action.params.items() if v is not None})
            return Action(
                kind=action.kind,
                params=params,
                raw_text=pending.raw_text or action.raw_text,
                reply_text=action.reply_text,
            )
        if pending is not None:
            logger.debug(
                "User %s: %s replaces pending %s", session.user_id, action.kind.value, pending.kind.value,
            )
        return Action(
            kind=action.kind,
            params={k: v for k, v in action.params.items() if v is not None},
            raw_text=action.raw_text,
            reply_text=action.reply_text,
        )
