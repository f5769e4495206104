"""
Error Recovery Module

Provides error classification and the shared retry policy used by the
RPC and aggregator clients.
"""

from .errors import (
    ErrorCategory,
    ErrorContext,
    RecoverableError,
    UnrecoverableError,
    RpcError,
    classify_rpc_error,
    to_recovery_error,
)
from .policy import RetryPolicy

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RecoverableError",
    "UnrecoverableError",
    "RpcError",
    "classify_rpc_error",
    "to_recovery_error",
    "RetryPolicy",
]
