"""Solana to EVM bridging through the Bungee aggregator."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from solders.keypair import Keypair

from ...providers.bungee import BungeeError, BungeeProvider
from ...services.address import (
    BUNGEE_CHAIN_IDS,
    is_evm_chain,
    is_valid_evm_address,
    normalize_chain,
    supported_chain_names,
)
from ..amounts import AmountKind, format_decimal, from_base_units, parse_amount, resolve_amount, to_base_units
from ..errors import NetworkFailed, NoRoute, ValidationFailed
from ..intent.models import ActionKind
from ..recovery.errors import ErrorCategory, RecoverableError
from ..routing import DEFAULT_BRIDGE_ETA, BridgeRoute, bridge_no_route, parse_bridge_quote, select_bridge_route
from ..tokens import NATIVE_PLACEHOLDER, bridge_input_token, bridge_output_token, known_solana_token
from .models import ExecutionResult
from .rpc import ResilientRpcClient, RpcSession, SignedTransaction
from .transactions import (
    TransactionBuildError,
    compile_instructions,
    keypairs_from_secrets,
    parse_instructions,
    parse_lookup_table,
    sign_serialized,
)

logger = logging.getLogger(__name__)


def shorten_address(address: str, keep: int = 8) -> str:
    if len(address) <= keep * 2 + 3:
        return address
    return f"{address[:keep]}...{address[-keep:]}"


def _tx_data(payload: Any) -> Any:
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if isinstance(result, dict):
        return result.get("txData")
    return payload.get("txData")


def _tracking_id(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if isinstance(result, list) and result:
        result = result[0]
    if isinstance(result, dict):
        value = result.get("bridgeTxId") or result.get("id")
        return str(value) if value else None
    return None


class BridgeExecutor:
    def __init__(
        self,
        rpc: ResilientRpcClient,
        bungee: BungeeProvider,
        *,
        min_amount_sol: Decimal = Decimal("0.05"),
        fee_reserve_lamports: int = 5000,
    ):
        self.rpc = rpc
        self.bungee = bungee
        self.min_amount_sol = min_amount_sol
        self.fee_reserve_lamports = fee_reserve_lamports

    def _chains(self, params: Dict[str, Any]) -> tuple:
        from_chain = normalize_chain(str(params.get("from_chain") or "solana"))
        to_chain = normalize_chain(str(params.get("to_chain") or ""))
        if to_chain is None:
            raise ValidationFailed(
                f"Unsupported destination chain. Supported chains: {supported_chain_names()}.",
                param="to_chain",
            )
        if from_chain != "solana" or not is_evm_chain(to_chain):
            raise ValidationFailed(
                "Only bridges from Solana to EVM chains are supported right now.",
                param="to_chain",
                suggestion="Try something like \"bridge 0.1 SOL to base 0x...\".",
            )
        return from_chain, to_chain

    def _too_small(self, amount_display: str, to_chain: str, output_token: str) -> NoRoute:
        return bridge_no_route(
            amount_display=amount_display,
            to_chain=to_chain,
            output_token=output_token,
            min_amount=self.min_amount_sol,
        )

    async def execute(self, keypair: Keypair, params: Dict[str, Any]) -> ExecutionResult:
        from_chain, to_chain = self._chains(params)

        to_address = str(params.get("to_address") or "").strip()
        if not is_valid_evm_address(to_address):
            raise ValidationFailed(
                f"'{to_address}' is not a valid {to_chain} address.",
                param="to_address",
                suggestion="EVM addresses start with 0x followed by 40 hex characters.",
            )

        symbol = str(params.get("token") or "SOL").strip().upper()
        token = known_solana_token(symbol)
        if token is None or symbol == "WSOL":
            raise ValidationFailed(
                f"Bridging {symbol} is not supported. Try SOL, USDC or USDT.",
                param="token",
            )

        input_token = bridge_input_token(symbol)
        output_token = bridge_output_token(to_chain, params.get("to_token") or symbol)
        spec = parse_amount(params.get("amount"), params.get("percentage"))

        # Literal native amounts are checked before any network call
        if token.is_native and spec.kind == AmountKind.LITERAL and spec.value < self.min_amount_sol:
            raise self._too_small(f"{spec.value} SOL", to_chain, output_token)

        owner = str(keypair.pubkey())
        if token.is_native:
            balance = await self.rpc.get_balance(owner)
            reserve = self.fee_reserve_lamports
        else:
            balance = await self.rpc.get_token_balance(owner, token.mint)
            reserve = 0
        units = resolve_amount(spec, balance, token.decimals, reserve=reserve, symbol=token.symbol)
        amount = from_base_units(units, token.decimals)
        amount_display = f"{format_decimal(amount, 6)} {token.symbol}"

        if token.is_native and units < to_base_units(self.min_amount_sol, token.decimals):
            raise self._too_small(amount_display, to_chain, output_token)

        quote_params = {
            "originChainId": BUNGEE_CHAIN_IDS[from_chain],
            "destinationChainId": BUNGEE_CHAIN_IDS[to_chain],
            "inputToken": input_token,
            "outputToken": output_token,
            "inputAmount": str(units),
            "userAddress": owner,
            "receiverAddress": to_address,
            "enableManual": "true",
            "sort": "output",
            "singleTxOnly": "false",
            "refuel": "false",
        }
        try:
            payload = await self.bungee.quote(quote_params)
        except BungeeError as exc:
            if exc.is_client_error:
                raise bridge_no_route(
                    amount_display=amount_display,
                    to_chain=to_chain,
                    output_token=output_token,
                    min_amount=self.min_amount_sol,
                    provider_detail=exc.body or str(exc),
                ) from exc
            raise NetworkFailed(
                "The bridge service is not responding right now. Please try again in a moment.",
                details={"status_code": exc.status_code},
            ) from exc

        parsed = parse_bridge_quote(payload)
        if not parsed.recognized:
            logger.warning("Unrecognized bridge quote shape: %s", str(payload)[:300])
        route = select_bridge_route(parsed)
        if route is None or not route.quote_id:
            raise bridge_no_route(
                amount_display=amount_display,
                to_chain=to_chain,
                output_token=output_token,
                min_amount=self.min_amount_sol,
                provider_detail=parsed.error,
            )
        logger.info("Bridge route selected: %s (%s) quote=%s", route.name, route.source.value, route.quote_id)

        async def build(session: RpcSession) -> SignedTransaction:
            return await self._build(session, keypair, route)

        submission = await self.rpc.submit(build, label="bridge")
        tracking_id = await self._track(submission.signature)

        return ExecutionResult.success(
            ActionKind.BRIDGE,
            submission.signature,
            amount=format_decimal(amount, 6),
            token=token.symbol,
            from_chain=from_chain,
            to_chain=to_chain,
            to_address=to_address,
            destination=shorten_address(to_address),
            output_token="native" if output_token == NATIVE_PLACEHOLDER else output_token,
            route=route.name,
            estimated_time=route.estimated_time or DEFAULT_BRIDGE_ETA,
            tracking_id=tracking_id,
        )

    async def _build(self, session: RpcSession, keypair: Keypair, route: BridgeRoute) -> SignedTransaction:
        try:
            payload = await self.bungee.build_tx(route.quote_id)
        except BungeeError as exc:
            if exc.is_client_error:
                raise NoRoute(
                    "The selected bridge route is no longer available. Please try again.",
                    details={"status_code": exc.status_code, "body": exc.body},
                ) from exc
            raise RecoverableError(f"bridge build failed: {exc}", category=ErrorCategory.NETWORK) from exc

        tx_data = _tx_data(payload)
        if isinstance(tx_data, str) and tx_data:
            # Pre-built transactions carry their own blockhash; the current one bounds its lifetime
            _, last_valid = await session.get_latest_blockhash()
            return sign_serialized(tx_data, [keypair], last_valid)

        if isinstance(tx_data, dict) and tx_data.get("instructions"):
            instructions = parse_instructions(tx_data["instructions"])
            tables = []
            for address in tx_data.get("lookupTables") or []:
                data = await session.get_account_data(address)
                if data is None:
                    logger.warning("Lookup table %s not found; compiling without it", address)
                    continue
                tables.append(parse_lookup_table(address, data))
            extra_signers = keypairs_from_secrets(tx_data.get("signers") or [])
            blockhash, last_valid = await session.get_latest_blockhash()
            return compile_instructions(keypair, instructions, tables, blockhash, extra_signers, last_valid)

        raise TransactionBuildError("The bridge service returned no transaction to sign.")

    async def _track(self, signature: str) -> Optional[str]:
        """Best effort: a failed status lookup never changes the outcome."""
        try:
            payload = await self.bungee.bridge_status(signature)
        except BungeeError as exc:
            logger.warning("Bridge status lookup failed for %s: %s", signature, exc)
            return None
        return _tracking_id(payload) or signature
