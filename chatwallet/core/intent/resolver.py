"""
Intent Resolver

Maps commands, button callbacks and freeform text onto Actions or
Commands. Freeform text goes through the NLU client; anything the model
returns that is not a well-formed action degrades to a CHAT action.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

from ...providers.llm import LLMMessage, LLMProvider, LLMProviderError
from ..errors import UnknownIntent
from .models import Action, ActionKind, Command, CommandKind
from .prompts import NLU_SYSTEM_PROMPT, UNKNOWN_INTENT_PROMPT, build_user_message

logger = logging.getLogger(__name__)

Intent = Union[Action, Command]

_ACTION_ALIASES: Dict[str, ActionKind] = {
    "send": ActionKind.TRANSFER,
    "transfer": ActionKind.TRANSFER,
    "swap": ActionKind.SWAP,
    "buy": ActionKind.SWAP,
    "sell": ActionKind.SWAP,
    "bridge": ActionKind.BRIDGE,
    "balance": ActionKind.BALANCE,
    "tx": ActionKind.HISTORY,
    "history": ActionKind.HISTORY,
    "transactions": ActionKind.HISTORY,
    "connect": ActionKind.CONNECT,
    "wallet": ActionKind.CONNECT,
    "create_wallet": ActionKind.CREATE_WALLET,
    "chat": ActionKind.CHAT,
}

_PARAM_ALIASES: Dict[str, str] = {
    "to": "recipient",
    "domain": "recipient",
    "tousername": "recipient",
    "username": "recipient",
    "recipient": "recipient",
    "address": "recipient",
    "fromtoken": "from_token",
    "totoken": "to_token",
    "fromchain": "from_chain",
    "tochain": "to_chain",
    "toaddress": "to_address",
    "amount": "amount",
    "percentage": "percentage",
    "percent": "percentage",
    "token": "token",
}

_COMMANDS: Dict[str, Intent] = {
    "/start": Command(CommandKind.START),
    "/help": Command(CommandKind.HELP),
    "/cancel": Command(CommandKind.CANCEL),
    "/menu": Command(CommandKind.MAIN_MENU),
    "/settings": Command(CommandKind.SETTINGS),
}

_COMMAND_ACTIONS: Dict[str, ActionKind] = {
    "/balance": ActionKind.BALANCE,
    "/history": ActionKind.HISTORY,
    "/wallet": ActionKind.CONNECT,
    "/create": ActionKind.CREATE_WALLET,
    "/import": ActionKind.IMPORT_WALLET,
    "/send": ActionKind.TRANSFER,
}

_CALLBACK_COMMANDS: Dict[str, CommandKind] = {
    "main_menu": CommandKind.MAIN_MENU,
    "settings": CommandKind.SETTINGS,
    "swap": CommandKind.SWAP_HELP,
    "bridge": CommandKind.BRIDGE_HELP,
    "cancel": CommandKind.CANCEL,
}

_CALLBACK_ACTIONS: Dict[str, ActionKind] = {
    "balance": ActionKind.BALANCE,
    "send": ActionKind.TRANSFER,
    "history": ActionKind.HISTORY,
    "create_wallet": ActionKind.CREATE_WALLET,
    "import_wallet": ActionKind.IMPORT_WALLET,
}

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass
class NluResult:
    action: str
    params: Dict[str, Any] = field(default_factory=dict)
    response: str = ""
    raw: str = ""
    provider: Optional[str] = None


class NluClient:
    """Tries each configured LLM provider in order until one answers."""

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        *,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self.providers = list(providers)
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def available(self) -> bool:
        return bool(self.providers)

    async def interpret(self, text: str, replied_to: Optional[str] = None) -> Optional[NluResult]:
        """Structured interpretation of ``text``, or None if no provider answered."""
        messages = [
            LLMMessage(role="system", content=NLU_SYSTEM_PROMPT),
            LLMMessage(role="user", content=build_user_message(text, replied_to)),
        ]
        for provider in self.providers:
            try:
                response = await provider.generate_response(
                    messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    json_mode=True,
                )
            except LLMProviderError as exc:
                logger.warning("NLU provider %s failed: %s", provider.name, exc)
                continue
            if not response.content:
                logger.warning("NLU provider %s returned an empty response", provider.name)
                continue
            return parse_nlu_payload(response.content, provider=provider.name)
        return None


def parse_nlu_payload(content: str, provider: Optional[str] = None) -> NluResult:
    """Never raises: anything that isn't ``{action, params, response}`` becomes chat."""
    text = _FENCE_RE.sub("", content.strip())
    try:
        payload = json.loads(text)
    except ValueError:
        start, end = text.find("{"), text.rfind("}")
        payload = None
        if 0 <= start < end:
            try:
                payload = json.loads(text[start:end + 1])
            except ValueError:
                payload = None

    if not isinstance(payload, dict):
        return NluResult(action="chat", response=content.strip(), raw=content, provider=provider)

    params = payload.get("params")
    response = payload.get("response")
    return NluResult(
        action=str(payload.get("action") or "chat"),
        params=params if isinstance(params, dict) else {},
        response=response if isinstance(response, str) and response else content.strip(),
        raw=content,
        provider=provider,
    )


def _snake_key(key: str) -> str:
    return re.sub(r"[^a-z]", "", key.lower())


def normalize_params(kind: ActionKind, raw: Dict[str, Any]) -> Dict[str, Any]:
    """NLU param names to canonical names; nulls dropped, scalars stringified."""
    params: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        compact = _snake_key(str(key))
        name = _PARAM_ALIASES.get(compact)
        if name is None:
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        elif isinstance(value, str):
            value = value.strip()
        else:
            continue

        if compact in ("tousername", "username") and not value.startswith("@"):
            value = f"@{value}"
        if kind == ActionKind.BRIDGE and name == "recipient":
            name = "to_address"
        # Explicit recipient forms win over the generic "to"
        if name in params and compact in ("to", "address"):
            continue
        params[name] = value
    return params


class IntentResolver:
    """Deterministic commands and callbacks first, NLU for everything else."""

    def __init__(self, nlu: Optional[NluClient] = None):
        self.nlu = nlu

    def resolve_command(self, text: str) -> Intent:
        head, _, rest = text.strip().partition(" ")
        # "/start@my_bot" addresses a specific bot in groups
        name = head.split("@", 1)[0].lower()

        command = _COMMANDS.get(name)
        if command is not None:
            return Command(command.kind, raw_text=text)

        kind = _COMMAND_ACTIONS.get(name)
        if kind is None:
            return Command(CommandKind.UNKNOWN_COMMAND, raw_text=text)

        params: Dict[str, Any] = {}
        if kind == ActionKind.IMPORT_WALLET and rest.strip():
            params["private_key"] = rest.strip()
        return Action(kind, params, raw_text=text)

    def resolve_callback(self, data: str) -> Intent:
        key = (data or "").strip()
        if key in _CALLBACK_COMMANDS:
            return Command(_CALLBACK_COMMANDS[key], raw_text=key)
        if key in _CALLBACK_ACTIONS:
            return Action(_CALLBACK_ACTIONS[key], {}, raw_text=key)
        return Command(CommandKind.UNKNOWN_COMMAND, raw_text=key)

    async def resolve_text(
        self,
        text: str,
        *,
        awaiting_param: Optional[str] = None,
        pending_kind: Optional[ActionKind] = None,
        replied_to: Optional[str] = None,
    ) -> Intent:
        """Resolve one message.

        While a parameter is being collected, plain text is that parameter's
        value and the NLU model is not consulted.

        Raises:
            UnknownIntent: no NLU provider is configured or every provider failed
        """
        stripped = text.strip()
        if stripped.startswith("/"):
            return self.resolve_command(stripped)
        if stripped.lower() in ("cancel", "stop", "abort"):
            return Command(CommandKind.CANCEL, raw_text=text)

        if awaiting_param and pending_kind is not None:
            return Action(pending_kind, {awaiting_param: stripped}, raw_text=text)

        if self.nlu is None or not self.nlu.available:
            raise UnknownIntent("No language model is configured.", prompt=UNKNOWN_INTENT_PROMPT)

        result = await self.nlu.interpret(stripped, replied_to)
        if result is None:
            raise UnknownIntent("The language model is unavailable right now.", prompt=UNKNOWN_INTENT_PROMPT)

        kind = _ACTION_ALIASES.get(result.action.strip().lower())
        if kind is None:
            logger.info("NLU returned unknown action %r; treating as chat", result.action)
            return Action(ActionKind.CHAT, {}, raw_text=text, reply_text=result.response)

        logger.info("NLU (%s) resolved %s", result.provider, kind.value)
        return Action(
            kind,
            normalize_params(kind, result.params) if kind != ActionKind.CHAT else {},
            raw_text=text,
            reply_text=result.response,
        )
