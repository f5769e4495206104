"""
Tests for the Jupiter quote, swap and token list clients.
"""

import json

import httpx
import pytest

from chatwallet.providers.jupiter import (
    JupiterQuote,
    JupiterQuoteError,
    JupiterSwapError,
    JupiterSwapProvider,
    JupiterTokenList,
)

SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

QUOTE_BODY = {
    "inputMint": SOL,
    "outputMint": USDC,
    "inAmount": "1000000000",
    "outAmount": "150250000",
    "otherAmountThreshold": "149498750",
    "slippageBps": 50,
    "priceImpactPct": "0.0012",
    "routePlan": [{"swapInfo": {"label": "Raydium"}}, {"swapInfo": {"label": "Orca"}}],
}


def provider_with(handler) -> JupiterSwapProvider:
    return JupiterSwapProvider("https://quote.test/v6", transport=httpx.MockTransport(handler))


# =============================================================================
# Quotes
# =============================================================================

class TestGetSwapQuote:
    """Tests for JupiterSwapProvider.get_swap_quote."""

    @pytest.mark.asyncio
    async def test_parses_quote(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            seen["path"] = request.url.path
            return httpx.Response(200, json=QUOTE_BODY)

        quote = await provider_with(handler).get_swap_quote(SOL, USDC, 1_000_000_000, slippage_bps=50)

        assert seen["path"] == "/v6/quote"
        assert seen["amount"] == "1000000000"
        assert seen["swapMode"] == "ExactIn"
        assert quote.in_amount == 1_000_000_000
        assert quote.out_amount == 150_250_000
        assert quote.other_amount_threshold == 149_498_750
        assert quote.price_impact_pct == pytest.approx(0.12)
        assert quote.route_labels == ["Raydium", "Orca"]
        assert quote.quote_response == QUOTE_BODY

    @pytest.mark.asyncio
    async def test_error_body_is_client_error(self):
        provider = provider_with(lambda request: httpx.Response(200, json={"error": "No routes found"}))
        with pytest.raises(JupiterQuoteError) as exc_info:
            await provider.get_swap_quote(SOL, USDC, 1)
        assert exc_info.value.is_client_error
        assert "No routes found" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_http_400(self):
        provider = provider_with(lambda request: httpx.Response(400, json={"error": "Could not find any route"}))
        with pytest.raises(JupiterQuoteError) as exc_info:
            await provider.get_swap_quote(SOL, USDC, 1)
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Could not find any route"

    @pytest.mark.asyncio
    async def test_server_error_is_not_client_error(self):
        provider = provider_with(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(JupiterQuoteError) as exc_info:
            await provider.get_swap_quote(SOL, USDC, 1)
        assert not exc_info.value.is_client_error

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(JupiterQuoteError) as exc_info:
            await provider_with(handler).get_swap_quote(SOL, USDC, 1)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_malformed_quote(self):
        provider = provider_with(lambda request: httpx.Response(200, json={"inputMint": SOL}))
        with pytest.raises(JupiterQuoteError):
            await provider.get_swap_quote(SOL, USDC, 1)


# =============================================================================
# Swap transactions
# =============================================================================

class TestBuildSwapTransaction:
    """Tests for JupiterSwapProvider.build_swap_transaction."""

    def quote(self):
        return JupiterQuote(SOL, USDC, 1, 2, 2, 50, 0.0, quote_response=QUOTE_BODY)

    @pytest.mark.asyncio
    async def test_builds_transaction(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={
                "swapTransaction": "AQID",
                "lastValidBlockHeight": 279632475,
                "prioritizationFeeLamports": 9999,
            })

        swap = await provider_with(handler).build_swap_transaction(self.quote(), "owner-key")

        assert swap.swap_transaction == "AQID"
        assert swap.last_valid_block_height == 279632475
        assert swap.priority_fee_lamports == 9999
        assert captured["userPublicKey"] == "owner-key"
        assert captured["quoteResponse"] == QUOTE_BODY
        assert captured["wrapAndUnwrapSol"] is True

    @pytest.mark.asyncio
    async def test_requires_quote_response(self):
        quote = JupiterQuote(SOL, USDC, 1, 2, 2, 50, 0.0)
        with pytest.raises(JupiterSwapError):
            await provider_with(lambda request: httpx.Response(200, json={})).build_swap_transaction(quote, "owner")

    @pytest.mark.asyncio
    async def test_missing_transaction(self):
        provider = provider_with(lambda request: httpx.Response(200, json={"lastValidBlockHeight": 1}))
        with pytest.raises(JupiterSwapError) as exc_info:
            await provider.build_swap_transaction(self.quote(), "owner")
        assert exc_info.value.is_client_error


# =============================================================================
# Token list
# =============================================================================

class TestTokenList:
    """Tests for JupiterTokenList."""

    TOKENS = [
        {"address": USDC, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
        {"address": "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm", "symbol": "WIF", "name": "dogwifhat", "decimals": 6},
        {"address": "", "symbol": "BROKEN", "name": "no mint", "decimals": 6},
    ]

    @pytest.mark.asyncio
    async def test_find_by_symbol_is_case_insensitive(self):
        tokens = JupiterTokenList("https://tokens.test/strict", transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json=self.TOKENS)
        ))
        token = await tokens.find_by_symbol("wif")
        assert token.decimals == 6
        assert token.name == "dogwifhat"
        assert await tokens.find_by_symbol("BROKEN") is None

    @pytest.mark.asyncio
    async def test_list_is_cached(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=self.TOKENS)

        tokens = JupiterTokenList("https://tokens.test/strict", transport=httpx.MockTransport(handler))
        await tokens.find_by_symbol("USDC")
        await tokens.get_token_by_mint(USDC)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_stale_list_survives_refresh_failure(self):
        responses = [httpx.Response(200, json=self.TOKENS), httpx.Response(500)]
        tokens = JupiterTokenList(
            "https://tokens.test/strict",
            cache_ttl_seconds=0,
            transport=httpx.MockTransport(lambda request: responses.pop(0)),
        )
        await tokens.find_by_symbol("USDC")
        token = await tokens.find_by_symbol("USDC")
        assert token.address == USDC

    @pytest.mark.asyncio
    async def test_first_load_failure_raises(self):
        tokens = JupiterTokenList("https://tokens.test/strict", transport=httpx.MockTransport(
            lambda request: httpx.Response(500)
        ))
        with pytest.raises(httpx.HTTPError):
            await tokens.find_by_symbol("USDC")
