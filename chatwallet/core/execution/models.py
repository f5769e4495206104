"""Execution outcome model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import ExecutionStatus, WalletOperationError
from ..intent.models import ActionKind


@dataclass
class ExecutionResult:
    kind: ActionKind
    status: ExecutionStatus
    transaction_id: Optional[str] = None
    error_detail: Optional[str] = None
    suggestion: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @classmethod
    def success(cls, kind: ActionKind, transaction_id: Optional[str] = None, **data: Any) -> "ExecutionResult":
        return cls(kind=kind, status=ExecutionStatus.SUCCESS, transaction_id=transaction_id, data=data)

    @classmethod
    def from_error(cls, kind: ActionKind, error: WalletOperationError) -> "ExecutionResult":
        data = dict(error.details)
        if error.param:
            data["param"] = error.param
        data["error_type"] = type(error).__name__
        return cls(
            kind=kind,
            status=error.status,
            transaction_id=error.transaction_id,
            error_detail=error.message,
            suggestion=error.suggestion,
            data=data,
        )
