"""
User-facing outcome errors.

Every failure that reaches the dispatcher is one of these; each maps to
an ExecutionStatus and carries a message safe to show to the user plus an
optional suggestion. Transport-level retries happen below this layer.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ExecutionStatus(str, Enum):
    """Final status of an executed action."""
    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    NETWORK_FAILED = "network_failed"
    NO_ROUTE = "no_route"
    ON_CHAIN_FAILED = "on_chain_failed"


class WalletOperationError(Exception):
    """Base class for terminal outcomes of a wallet operation."""

    status: ExecutionStatus = ExecutionStatus.VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        suggestion: Optional[str] = None,
        param: Optional[str] = None,
        transaction_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.param = param
        self.transaction_id = transaction_id
        self.details = details or {}


class ValidationFailed(WalletOperationError):
    """Input rejected before anything was submitted."""
    status = ExecutionStatus.VALIDATION_FAILED


class WalletRequired(ValidationFailed):
    """The user has no custodial wallet yet."""

    def __init__(self, message: str = "No wallet found. Please create or import a wallet first."):
        super().__init__(message, suggestion="Use /start to create or import a wallet.")


class RecipientNotFound(ValidationFailed):
    """A domain or handle did not resolve to an address."""

    def __init__(self, recipient: str, message: Optional[str] = None):
        super().__init__(
            message or f"Recipient {recipient} could not be resolved to a wallet address.",
            param="recipient",
            suggestion="Check the spelling, or send to a wallet address instead.",
        )
        self.recipient = recipient


class InsufficientFunds(ValidationFailed):
    """Requested amount exceeds the spendable balance."""

    def __init__(self, message: str, *, available: Optional[str] = None, required: Optional[str] = None):
        super().__init__(
            message,
            param="amount",
            details={"available": available, "required": required},
        )


class NoRoute(WalletOperationError):
    """The aggregator has no usable route or quote."""
    status = ExecutionStatus.NO_ROUTE


class NetworkFailed(WalletOperationError):
    """Every endpoint and retry was exhausted."""
    status = ExecutionStatus.NETWORK_FAILED


class OnChainFailed(WalletOperationError):
    """The network rejected or failed the transaction."""
    status = ExecutionStatus.ON_CHAIN_FAILED


class UnknownIntent(Exception):
    """Input could not be mapped to any action."""

    def __init__(self, message: str, *, prompt: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.prompt = prompt
