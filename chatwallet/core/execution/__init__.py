"""
Execution Module

Builds, signs, submits and confirms wallet operations over Solana RPC.
"""

from .bridge import BridgeExecutor
from .engine import ExecutionEngine
from .models import ExecutionResult, ExecutionStatus
from .rpc import ResilientRpcClient, RpcSession, SignedTransaction, SubmissionResult
from .swap import SwapExecutor
from .transfer import TransferExecutor

__all__ = [
    "BridgeExecutor",
    "ExecutionEngine",
    "ExecutionResult",
    "ExecutionStatus",
    "ResilientRpcClient",
    "RpcSession",
    "SignedTransaction",
    "SubmissionResult",
    "SwapExecutor",
    "TransferExecutor",
]
