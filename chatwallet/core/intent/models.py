"""
Intent Models

Actions are what a user asked the wallet to do; Commands are control
inputs (menus, help cards, cancel) that never touch the wallet.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ActionKind(str, Enum):
    """Wallet operations the dispatcher knows how to run."""
    TRANSFER = "transfer"
    SWAP = "swap"
    BRIDGE = "bridge"
    BALANCE = "balance"
    HISTORY = "history"
    CONNECT = "connect"
    CREATE_WALLET = "create_wallet"
    IMPORT_WALLET = "import_wallet"
    CHAT = "chat"


# Canonical collection order; the dispatcher asks for the first missing one.
REQUIRED_PARAMS: Dict[ActionKind, Tuple[str, ...]] = {
    ActionKind.TRANSFER: ("amount", "recipient"),
    ActionKind.SWAP: ("from_token", "to_token", "amount"),
    ActionKind.BRIDGE: ("from_chain", "to_chain", "to_address", "amount"),
    ActionKind.IMPORT_WALLET: ("private_key",),
}

# "amount" is also satisfied by a percentage for these kinds.
_PERCENTAGE_KINDS = {ActionKind.TRANSFER, ActionKind.SWAP}

# Kinds that move funds and therefore need a wallet before collecting params.
WALLET_KINDS = {ActionKind.TRANSFER, ActionKind.SWAP, ActionKind.BRIDGE}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


@dataclass
class Action:
    kind: ActionKind
    params: Dict[str, Any] = field(default_factory=dict)
    raw_text: str = ""
    reply_text: Optional[str] = None

    def has_param(self, name: str) -> bool:
        if _present(self.params.get(name)):
            return True
        return (
            name == "amount"
            and self.kind in _PERCENTAGE_KINDS
            and _present(self.params.get("percentage"))
        )

    def missing_params(self) -> List[str]:
        return [name for name in REQUIRED_PARAMS.get(self.kind, ()) if not self.has_param(name)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_params()


class CommandKind(str, Enum):
    """Control inputs handled without the dispatcher's param collection."""
    START = "start"
    HELP = "help"
    MAIN_MENU = "main_menu"
    SETTINGS = "settings"
    CANCEL = "cancel"
    SWAP_HELP = "swap_help"
    BRIDGE_HELP = "bridge_help"
    UNKNOWN_COMMAND = "unknown_command"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    raw_text: str = ""

