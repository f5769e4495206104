"""
Tests for Jupiter swaps.
"""

import time

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.keypair import Keypair

from chatwallet.cache import TTLCache
from chatwallet.core.errors import InsufficientFunds, NetworkFailed, NoRoute, ValidationFailed
from chatwallet.core.execution import SwapExecutor
from chatwallet.core.recovery import RecoverableError
from chatwallet.core.tokens import USDC_MINT, WSOL_MINT
from chatwallet.providers.jupiter import (
    JupiterQuote,
    JupiterQuoteError,
    JupiterSwapError,
    JupiterSwapTransaction,
    JupiterToken,
)

WIF_MINT = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"


def quote_for(input_mint, output_mint, in_amount, out_amount=150_000_000, impact=0.1, fetched_at=None):
    quote = JupiterQuote(
        input_mint=input_mint,
        output_mint=output_mint,
        in_amount=in_amount,
        out_amount=out_amount,
        other_amount_threshold=out_amount,
        slippage_bps=50,
        price_impact_pct=impact,
        route_labels=["Raydium"],
        quote_response={"inAmount": str(in_amount)},
    )
    if fetched_at is not None:
        quote.fetched_at = fetched_at
    return quote


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def jupiter(keypair, unsigned_tx):
    provider = MagicMock()

    async def get_swap_quote(input_mint, output_mint, amount, slippage_bps=50):
        return quote_for(input_mint, output_mint, amount)

    provider.get_swap_quote = AsyncMock(side_effect=get_swap_quote)
    provider.build_swap_transaction = AsyncMock(
        return_value=JupiterSwapTransaction(swap_transaction=unsigned_tx(keypair), last_valid_block_height=555)
    )
    return provider


@pytest.fixture
def token_list():
    tokens = MagicMock()
    tokens.find_by_symbol = AsyncMock(return_value=None)
    return tokens


def make_executor(rpc, jupiter, token_list, **kwargs):
    return SwapExecutor(rpc, jupiter, token_list, cache=TTLCache(default_ttl=60), **kwargs)


# =============================================================================
# Token resolution
# =============================================================================

class TestResolveToken:
    """Tests for SwapExecutor.resolve_token."""

    @pytest.mark.asyncio
    async def test_known_symbol(self, fake_rpc, jupiter, token_list):
        token = await make_executor(fake_rpc(), jupiter, token_list).resolve_token("usdc", "to_token")
        assert token.mint == USDC_MINT
        assert token.decimals == 6
        token_list.find_by_symbol.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_listed_symbol(self, fake_rpc, jupiter, token_list):
        token_list.find_by_symbol.return_value = JupiterToken(WIF_MINT, "WIF", "dogwifhat", 6)
        token = await make_executor(fake_rpc(), jupiter, token_list).resolve_token("wif", "to_token")
        assert token.symbol == "WIF"
        assert token.mint == WIF_MINT

    @pytest.mark.asyncio
    async def test_mint_address_decimals_are_cached(self, fake_rpc, jupiter, token_list):
        rpc = fake_rpc()
        executor = make_executor(rpc, jupiter, token_list)

        first = await executor.resolve_token(WIF_MINT, "to_token")
        await executor.resolve_token(WIF_MINT, "to_token")

        assert first.decimals == 6
        rpc.get_token_decimals.assert_awaited_once_with(WIF_MINT)

    @pytest.mark.asyncio
    async def test_unknown_symbol(self, fake_rpc, jupiter, token_list):
        with pytest.raises(ValidationFailed) as exc_info:
            await make_executor(fake_rpc(), jupiter, token_list).resolve_token("NOPE", "from_token")
        assert exc_info.value.param == "from_token"

    @pytest.mark.asyncio
    async def test_token_list_unreachable(self, fake_rpc, jupiter, token_list):
        token_list.find_by_symbol.side_effect = httpx.ConnectError("down")
        with pytest.raises(NetworkFailed):
            await make_executor(fake_rpc(), jupiter, token_list).resolve_token("WIF", "to_token")


# =============================================================================
# Execution
# =============================================================================

class TestSwapExecute:
    """Tests for SwapExecutor.execute."""

    @pytest.mark.asyncio
    async def test_sol_to_usdc(self, fake_rpc, jupiter, token_list, keypair):
        rpc = fake_rpc(balance=2_000_000_000)
        result = await make_executor(rpc, jupiter, token_list).execute(
            keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
        )

        assert result.succeeded
        assert result.data["input_amount"] == "1"
        assert result.data["input_symbol"] == "SOL"
        assert result.data["output_amount"] == "150"
        assert result.data["output_symbol"] == "USDC"
        assert result.data["route"] == "Raydium"
        assert result.data["high_price_impact"] is False
        assert "percentage" not in result.data
        assert rpc.built[0].last_valid_block_height == 555
        jupiter.get_swap_quote.assert_awaited_once_with(WSOL_MINT, USDC_MINT, 1_000_000_000, slippage_bps=50)

    @pytest.mark.asyncio
    async def test_percentage_of_token_balance(self, fake_rpc, jupiter, token_list, keypair):
        rpc = fake_rpc(token_balance=10_000_000)
        result = await make_executor(rpc, jupiter, token_list).execute(
            keypair, {"from_token": "USDC", "to_token": "SOL", "percentage": "50"}
        )

        assert result.data["percentage"] == "50"
        assert jupiter.get_swap_quote.await_args.args[2] == 5_000_000
        rpc.get_token_balance.assert_awaited_once_with(str(keypair.pubkey()), USDC_MINT)

    @pytest.mark.asyncio
    async def test_all_native_keeps_reserve(self, fake_rpc, jupiter, token_list, keypair):
        rpc = fake_rpc(balance=1_000_000_000)
        result = await make_executor(rpc, jupiter, token_list, fee_reserve_lamports=10_000).execute(
            keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "all"}
        )
        assert result.data["percentage"] == "100"
        assert jupiter.get_swap_quote.await_args.args[2] == 999_990_000

    @pytest.mark.asyncio
    async def test_same_token_rejected(self, fake_rpc, jupiter, token_list, keypair):
        with pytest.raises(ValidationFailed) as exc_info:
            await make_executor(fake_rpc(), jupiter, token_list).execute(
                keypair, {"from_token": "SOL", "to_token": "sol", "amount": "1"}
            )
        assert exc_info.value.param == "to_token"

    @pytest.mark.asyncio
    async def test_insufficient_balance_skips_quote(self, fake_rpc, jupiter, token_list, keypair):
        rpc = fake_rpc(balance=100)
        with pytest.raises(InsufficientFunds):
            await make_executor(rpc, jupiter, token_list).execute(
                keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
            )
        jupiter.get_swap_quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_route_from_aggregator(self, fake_rpc, jupiter, token_list, keypair):
        jupiter.get_swap_quote.side_effect = JupiterQuoteError("Could not find any route", status_code=400)
        with pytest.raises(NoRoute):
            await make_executor(fake_rpc(), jupiter, token_list).execute(
                keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
            )

    @pytest.mark.asyncio
    async def test_aggregator_down(self, fake_rpc, jupiter, token_list, keypair):
        jupiter.get_swap_quote.side_effect = JupiterQuoteError("Request error", status_code=None)
        with pytest.raises(NetworkFailed):
            await make_executor(fake_rpc(), jupiter, token_list).execute(
                keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
            )

    @pytest.mark.asyncio
    async def test_stale_quote_is_refreshed_before_build(self, fake_rpc, jupiter, token_list, keypair):
        calls = []

        async def get_swap_quote(input_mint, output_mint, amount, slippage_bps=50):
            calls.append(amount)
            fetched = time.time() - 120 if len(calls) == 1 else None
            return quote_for(input_mint, output_mint, amount, out_amount=140_000_000 + len(calls), fetched_at=fetched)

        jupiter.get_swap_quote.side_effect = get_swap_quote
        result = await make_executor(fake_rpc(), jupiter, token_list, quote_max_age_s=30).execute(
            keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
        )

        assert len(calls) == 2
        assert result.data["output_amount"] == "140.000002"

    @pytest.mark.asyncio
    async def test_build_server_error_is_retryable(self, fake_rpc, jupiter, token_list, keypair):
        jupiter.build_swap_transaction.side_effect = JupiterSwapError("Bad gateway", status_code=502)
        with pytest.raises(RecoverableError):
            await make_executor(fake_rpc(), jupiter, token_list).execute(
                keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
            )

    @pytest.mark.asyncio
    async def test_high_price_impact_flagged(self, fake_rpc, jupiter, token_list, keypair):
        async def get_swap_quote(input_mint, output_mint, amount, slippage_bps=50):
            return quote_for(input_mint, output_mint, amount, impact=7.5)

        jupiter.get_swap_quote.side_effect = get_swap_quote
        result = await make_executor(fake_rpc(), jupiter, token_list, high_impact_pct=5.0).execute(
            keypair, {"from_token": "SOL", "to_token": "USDC", "amount": "1"}
        )
        assert result.data["high_price_impact"] is True
        assert result.data["price_impact_pct"] == 7.5
