"""Token swaps through the Jupiter aggregator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from solders.keypair import Keypair

from ...cache import TTLCache
from ...providers.jupiter import JupiterError, JupiterQuote, JupiterSwapProvider, JupiterTokenList
from ...services.address import is_valid_solana_address
from ..amounts import AmountKind, format_decimal, from_base_units, parse_amount, resolve_amount
from ..errors import NetworkFailed, NoRoute, ValidationFailed
from ..intent.models import ActionKind
from ..recovery.errors import ErrorCategory, RecoverableError
from ..routing import Quote, is_high_price_impact, swap_quote_from_jupiter
from ..tokens import known_solana_token
from .models import ExecutionResult
from .rpc import ResilientRpcClient, RpcSession, SignedTransaction
from .transactions import sign_serialized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapToken:
    symbol: str
    mint: str
    decimals: int
    is_native: bool = False


def _aggregator_failure(exc: JupiterError, stage: str) -> Exception:
    if exc.is_client_error:
        return NoRoute(
            f"No swap route found: {exc.message}",
            suggestion="Try a different amount or token pair.",
            details={"stage": stage, "status_code": exc.status_code},
        )
    return NetworkFailed(
        "The swap service is not responding right now. Please try again in a moment.",
        details={"stage": stage, "status_code": exc.status_code, "error": exc.message},
    )


class SwapExecutor:
    def __init__(
        self,
        rpc: ResilientRpcClient,
        jupiter: JupiterSwapProvider,
        token_list: JupiterTokenList,
        *,
        cache: Optional[TTLCache] = None,
        slippage_bps: int = 50,
        fee_reserve_lamports: int = 5000,
        quote_max_age_s: float = 30.0,
        high_impact_pct: float = 1.0,
    ):
        self.rpc = rpc
        self.jupiter = jupiter
        self.token_list = token_list
        self.cache = cache or TTLCache(default_ttl=3600)
        self.slippage_bps = slippage_bps
        self.fee_reserve_lamports = fee_reserve_lamports
        self.quote_max_age_s = quote_max_age_s
        self.high_impact_pct = high_impact_pct

    async def resolve_token(self, value: str, param: str) -> SwapToken:
        """Symbol or mint to token metadata; static table first, then the token list."""
        text = (value or "").strip()
        if not text:
            raise ValidationFailed("Which token?", param=param)

        known = known_solana_token(text)
        if known is not None:
            return SwapToken(known.symbol, known.mint, known.decimals, known.is_native)

        if is_valid_solana_address(text):
            decimals = await self._mint_decimals(text)
            return SwapToken(f"{text[:4]}...{text[-4:]}", text, decimals)

        try:
            listed = await self.token_list.find_by_symbol(text)
        except (httpx.HTTPError, ValueError) as exc:
            raise NetworkFailed("Could not load the token list. Please try again in a moment.") from exc
        if listed is None:
            raise ValidationFailed(
                f"I don't recognise the token '{text}'.",
                param=param,
                suggestion="Use a token symbol like SOL, USDC or BONK, or paste the token's mint address.",
            )
        return SwapToken(listed.symbol.upper(), listed.address, listed.decimals)

    async def _mint_decimals(self, mint: str) -> int:
        return await self.cache.get_or_load(
            ("decimals", mint), lambda: self.rpc.get_token_decimals(mint)
        )

    async def _balance(self, owner: str, token: SwapToken) -> int:
        if token.is_native:
            return await self.rpc.get_balance(owner)
        return await self.rpc.get_token_balance(owner, token.mint)

    async def _quote(self, source: SwapToken, target: SwapToken, units: int) -> Quote:
        try:
            jupiter_quote = await self.jupiter.get_swap_quote(
                source.mint, target.mint, units, slippage_bps=self.slippage_bps,
            )
        except JupiterError as exc:
            raise _aggregator_failure(exc, "quote") from exc
        return swap_quote_from_jupiter(jupiter_quote)

    async def execute(self, keypair: Keypair, params: Dict[str, Any]) -> ExecutionResult:
        source = await self.resolve_token(str(params.get("from_token", "")), "from_token")
        target = await self.resolve_token(str(params.get("to_token", "")), "to_token")
        if source.mint == target.mint:
            raise ValidationFailed("You can't swap a token for itself.", param="to_token")

        spec = parse_amount(params.get("amount"), params.get("percentage"))
        owner = str(keypair.pubkey())

        balance = await self._balance(owner, source)
        reserve = self.fee_reserve_lamports if source.is_native else 0
        units = resolve_amount(spec, balance, source.decimals, reserve=reserve, symbol=source.symbol)

        quote = await self._quote(source, target, units)
        logger.info(
            "Swap quote %s -> %s: in=%d out=%d impact=%s",
            source.symbol, target.symbol, quote.input_amount_base_units,
            quote.output_amount_base_units, quote.price_impact_pct,
        )

        async def build(session: RpcSession) -> SignedTransaction:
            nonlocal quote
            if not quote.is_fresh(self.quote_max_age_s):
                logger.info("Swap quote is %.1fs old; re-quoting", quote.age_seconds())
                quote = await self._quote(source, target, units)

            jupiter_quote: JupiterQuote = quote.raw_payload
            try:
                swap_tx = await self.jupiter.build_swap_transaction(jupiter_quote, owner)
            except JupiterError as exc:
                if exc.is_client_error:
                    raise _aggregator_failure(exc, "swap") from exc
                raise RecoverableError(f"swap build failed: {exc.message}", category=ErrorCategory.NETWORK) from exc

            last_valid = swap_tx.last_valid_block_height
            if last_valid is None:
                _, last_valid = await session.get_latest_blockhash()
            return sign_serialized(swap_tx.swap_transaction, [keypair], last_valid)

        submission = await self.rpc.submit(build, label="swap")

        data: Dict[str, Any] = {
            "input_amount": format_decimal(from_base_units(quote.input_amount_base_units, source.decimals), 6),
            "input_symbol": source.symbol,
            "output_amount": format_decimal(from_base_units(quote.output_amount_base_units, target.decimals), 6),
            "output_symbol": target.symbol,
            "price_impact_pct": quote.price_impact_pct,
            "high_price_impact": is_high_price_impact(quote, self.high_impact_pct),
            "route": quote.route_id,
        }
        if spec.kind == AmountKind.PERCENT:
            data["percentage"] = format_decimal(spec.value, 2)
        elif spec.kind == AmountKind.ALL:
            data["percentage"] = "100"
        return ExecutionResult.success(ActionKind.SWAP, submission.signature, **data)
