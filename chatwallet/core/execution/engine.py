"""
Execution Engine

Runs a complete Action against the user's custodial wallet. Every
terminal outcome, success or failure, comes back as an ExecutionResult;
only programming errors escape.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict

from solders.keypair import Keypair

from ..amounts import SOL_DECIMALS, format_decimal, from_base_units
from ..errors import WalletOperationError, WalletRequired
from ..intent.models import Action, ActionKind
from ..wallet import KeyStore
from .bridge import BridgeExecutor
from .models import ExecutionResult
from .swap import SwapExecutor
from .transfer import TransferExecutor

if TYPE_CHECKING:
    from ...providers.solana import SolanaLedger

logger = logging.getLogger(__name__)

Handler = Callable[[int, Dict[str, Any]], Awaitable[ExecutionResult]]


class ExecutionEngine:
    def __init__(
        self,
        keystore: KeyStore,
        ledger: "SolanaLedger",
        transfer: TransferExecutor,
        swap: SwapExecutor,
        bridge: BridgeExecutor,
        *,
        history_limit: int = 10,
    ):
        self.keystore = keystore
        self.ledger = ledger
        self.transfer = transfer
        self.swap = swap
        self.bridge = bridge
        self.history_limit = history_limit
        self._handlers: Dict[ActionKind, Handler] = {
            ActionKind.TRANSFER: self._run_transfer,
            ActionKind.SWAP: self._run_swap,
            ActionKind.BRIDGE: self._run_bridge,
            ActionKind.BALANCE: self._balance,
            ActionKind.HISTORY: self._history,
            ActionKind.CONNECT: self._connect,
            ActionKind.CREATE_WALLET: self._create_wallet,
            ActionKind.IMPORT_WALLET: self._import_wallet,
        }

    def supports(self, kind: ActionKind) -> bool:
        return kind in self._handlers

    async def execute(self, user_id: int, action: Action) -> ExecutionResult:
        handler = self._handlers.get(action.kind)
        if handler is None:
            raise ValueError(f"No executor for action kind {action.kind.value}")

        try:
            result = await handler(user_id, dict(action.params))
        except WalletOperationError as exc:
            logger.info(
                "%s for user %s ended with %s: %s",
                action.kind.value, user_id, exc.status.value, exc.message,
            )
            return ExecutionResult.from_error(action.kind, exc)

        logger.info("%s for user %s succeeded (tx=%s)", action.kind.value, user_id, result.transaction_id)
        return result

    async def _keypair(self, user_id: int) -> Keypair:
        keypair = await self.keystore.get(user_id)
        if keypair is None:
            raise WalletRequired()
        return keypair

    async def _address(self, user_id: int) -> str:
        address = await self.keystore.address_of(user_id)
        if not address:
            raise WalletRequired()
        return address

    async def _run_transfer(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        return await self.transfer.execute(await self._keypair(user_id), params)

    async def _run_swap(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        return await self.swap.execute(await self._keypair(user_id), params)

    async def _run_bridge(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        return await self.bridge.execute(await self._keypair(user_id), params)

    async def _balance(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        address = await self._address(user_id)
        lamports = await self.ledger.get_balance(address)
        return ExecutionResult.success(
            ActionKind.BALANCE,
            address=address,
            lamports=lamports,
            balance=format_decimal(from_base_units(lamports, SOL_DECIMALS)),
        )

    async def _history(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        address = await self._address(user_id)
        entries = await self.ledger.get_history(address, limit=self.history_limit)
        return ExecutionResult.success(ActionKind.HISTORY, address=address, entries=entries)

    async def _connect(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        return ExecutionResult.success(ActionKind.CONNECT, address=await self._address(user_id))

    async def _create_wallet(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        info = await self.keystore.create(user_id)
        return ExecutionResult.success(ActionKind.CREATE_WALLET, address=info.address, is_new=info.is_new)

    async def _import_wallet(self, user_id: int, params: Dict[str, Any]) -> ExecutionResult:
        info = await self.keystore.import_key(user_id, str(params.get("private_key", "")))
        return ExecutionResult.success(ActionKind.IMPORT_WALLET, address=info.address, is_new=info.is_new)
