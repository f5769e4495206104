"""
Error Classification

Transport-level errors raised by RPC and aggregator clients.
Errors are classified as recoverable (retry or fall back to another
endpoint) or unrecoverable (terminal for the current operation).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    NETWORK = "network"           # Network/connectivity issues
    RATE_LIMIT = "rate_limit"     # API rate limits
    TIMEOUT = "timeout"           # Operation timed out
    NODE_BEHIND = "node_behind"   # Endpoint lagging the cluster
    BLOCKHASH_EXPIRED = "blockhash_expired"  # Blockhash unknown or too old
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Not enough balance
    TRANSACTION_REJECTED = "transaction_rejected"  # Preflight or on-chain failure
    VALIDATION = "validation"     # Malformed request
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    endpoint: Optional[str] = None
    signature: Optional[str] = None
    # The request may have been processed although no usable answer came back
    ambiguous: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - Network issues
    - Rate limits
    - Timeouts
    - Lagging or expired blockhash state on one endpoint
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """
    Base class for errors that cannot be retried.

    Resubmitting would not change the outcome:
    - Insufficient funds
    - Simulation or on-chain program failure
    - Malformed parameters
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


class RpcError(Exception):
    """Raw JSON-RPC error payload, prior to classification."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


_RATE_LIMIT_PATTERNS = ("rate limit", "too many requests", "429", "throttl", "quota exceeded")
_NETWORK_PATTERNS = ("connection", "network", "unreachable", "refused", "dns", "socket", "ssl", "502", "503", "504")
_TIMEOUT_PATTERNS = ("timeout", "timed out", "deadline")
_NODE_BEHIND_PATTERNS = ("node is behind", "node is unhealthy", "slot was skipped", "minimum context slot")
_BLOCKHASH_PATTERNS = ("blockhash not found", "block height exceeded", "blockhash expired")
_FUNDS_PATTERNS = (
    "insufficient funds",
    "insufficient lamports",
    "attempt to debit an account but found no record of a prior credit",
    "exceeds balance",
)
_REJECTION_PATTERNS = (
    "transaction simulation failed",
    "custom program error",
    "instructionerror",
    "program failed",
    "signature verification failure",
    "invalid transaction",
)
_VALIDATION_PATTERNS = ("invalid param", "invalid request", "wrongsize", "invalid public key")


def classify_rpc_error(error: Exception) -> ErrorContext:
    """
    Classify an RPC or transport exception and return its error context.

    Already-classified errors return their own context; anything else is
    matched against the diagnostic text returned by Solana RPC nodes.
    """
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    message = str(error).lower()
    code = getattr(error, "code", None)
    data = getattr(error, "data", None)
    if data:
        message = f"{message} {data}".lower()

    def matches(patterns) -> bool:
        return any(p in message for p in patterns)

    # Preflight failures carry the simulation result; they are final.
    if code == -32002 or matches(_REJECTION_PATTERNS):
        if matches(_FUNDS_PATTERNS):
            return ErrorContext(
                category=ErrorCategory.INSUFFICIENT_FUNDS,
                recoverable=False,
                suggested_action="Add funds to wallet or reduce the amount",
            )
        if matches(_BLOCKHASH_PATTERNS):
            return ErrorContext(
                category=ErrorCategory.BLOCKHASH_EXPIRED,
                recoverable=True,
                suggested_action="Rebuild with a fresh blockhash",
            )
        return ErrorContext(
            category=ErrorCategory.TRANSACTION_REJECTED,
            recoverable=False,
            suggested_action="Review transaction parameters",
        )

    if matches(_RATE_LIMIT_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.RATE_LIMIT,
            recoverable=True,
            retry_after_seconds=2.0,
            suggested_action="Wait before retrying",
        )

    if matches(_BLOCKHASH_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.BLOCKHASH_EXPIRED,
            recoverable=True,
            suggested_action="Rebuild with a fresh blockhash",
        )

    if code == -32005 or matches(_NODE_BEHIND_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.NODE_BEHIND,
            recoverable=True,
            suggested_action="Try another endpoint",
        )

    if matches(_TIMEOUT_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.TIMEOUT,
            recoverable=True,
            suggested_action="Retry with longer timeout",
        )

    if matches(_NETWORK_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            recoverable=True,
            suggested_action="Check network connectivity",
        )

    if matches(_FUNDS_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            recoverable=False,
            suggested_action="Add funds to wallet",
        )

    if code in (-32602, -32600) or matches(_VALIDATION_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.VALIDATION,
            recoverable=False,
            suggested_action="Check request parameters",
        )

    # Default to unknown but recoverable (safer to retry)
    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=True,
        suggested_action="Retry operation",
    )


def to_recovery_error(error: Exception, endpoint: Optional[str] = None) -> Exception:
    """Wrap a raw exception into RecoverableError or UnrecoverableError."""
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error

    ctx = classify_rpc_error(error)
    ctx.endpoint = endpoint
    if isinstance(error, RpcError):
        ctx.details["code"] = error.code
        if error.data is not None:
            ctx.details["data"] = error.data

    if ctx.recoverable:
        return RecoverableError(
            str(error),
            category=ctx.category,
            retry_after=ctx.retry_after_seconds,
            context=ctx,
        )
    return UnrecoverableError(str(error), category=ctx.category, context=ctx)
