"""Read-only Solana ledger access: native balance and recent history."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .base import Provider
from ..core.amounts import LAMPORTS_PER_SOL
from ..core.errors import NetworkFailed
from ..core.execution.rpc import ResilientRpcClient

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    signature: str
    direction: str                      # "in", "out" or "other"
    amount_change: Optional[Decimal]    # SOL; None when the transaction could not be loaded
    timestamp: Optional[datetime]
    status: str                         # "confirmed" or "failed"


class SolanaLedger(Provider):
    """Balance and history lookups through the shared resilient RPC client."""

    name = "solana_rpc"

    def __init__(self, rpc: ResilientRpcClient):
        super().__init__()
        self.rpc = rpc

    async def ready(self) -> bool:
        return bool(self.rpc.endpoints)

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.rpc.call("getHealth", [])
        except NetworkFailed as exc:
            return {"status": "error", "reason": exc.message, "endpoints": len(self.rpc.endpoints)}
        return {"status": "healthy", "endpoints": len(self.rpc.endpoints)}

    async def get_balance(self, address: str) -> int:
        """Native balance in lamports."""
        return await self.rpc.get_balance(address)

    async def get_history(self, address: str, limit: int = 10) -> List[HistoryEntry]:
        signatures = await self.rpc.get_signatures_for_address(address, limit=limit)
        if not signatures:
            return []

        transactions = await asyncio.gather(
            *(self._load_transaction(item["signature"]) for item in signatures)
        )
        return [
            _history_entry(address, info, tx)
            for info, tx in zip(signatures, transactions)
        ]

    async def _load_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.rpc.get_transaction(signature)
        except NetworkFailed as exc:
            logger.warning("Could not load transaction %s for history: %s", signature, exc.message)
            return None


def _account_keys(tx: Dict[str, Any]) -> List[str]:
    message = (tx.get("transaction") or {}).get("message") or {}
    keys = []
    for key in message.get("accountKeys") or []:
        keys.append(key.get("pubkey") if isinstance(key, dict) else key)
    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    keys.extend(loaded.get("writable") or [])
    keys.extend(loaded.get("readonly") or [])
    return keys


def _history_entry(address: str, info: Dict[str, Any], tx: Optional[Dict[str, Any]]) -> HistoryEntry:
    block_time = info.get("blockTime") or (tx or {}).get("blockTime")
    timestamp = datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else None
    status = "failed" if info.get("err") is not None else "confirmed"

    change: Optional[Decimal] = None
    direction = "other"
    if tx:
        meta = tx.get("meta") or {}
        keys = _account_keys(tx)
        pre = meta.get("preBalances") or []
        post = meta.get("postBalances") or []
        if address in keys:
            index = keys.index(address)
            if index < len(pre) and index < len(post):
                delta = int(post[index]) - int(pre[index])
                change = Decimal(delta) / Decimal(LAMPORTS_PER_SOL)
                if delta > 0:
                    direction = "in"
                elif delta < 0:
                    direction = "out"
        if meta.get("err") is not None:
            status = "failed"

    return HistoryEntry(
        signature=info["signature"],
        direction=direction,
        amount_change=change,
        timestamp=timestamp,
        status=status,
    )
