"""
Intent Module

Turns raw user input into Actions (wallet operations) or Commands
(menus, help cards, cancel).
"""

from .models import Action, ActionKind, Command, CommandKind, REQUIRED_PARAMS, WALLET_KINDS
from .resolver import Intent, IntentResolver, NluClient, NluResult, normalize_params, parse_nlu_payload

__all__ = [
    "Action",
    "ActionKind",
    "Command",
    "CommandKind",
    "REQUIRED_PARAMS",
    "WALLET_KINDS",
    "Intent",
    "IntentResolver",
    "NluClient",
    "NluResult",
    "normalize_params",
    "parse_nlu_payload",
]
