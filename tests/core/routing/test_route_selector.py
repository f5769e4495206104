"""
Tests for bridge route parsing and selection, and swap quote checks.
"""

import time
from decimal import Decimal

import pytest

from chatwallet.core.errors import NoRoute
from chatwallet.core.routing import (
    RouteSource,
    bridge_no_route,
    is_high_price_impact,
    parse_bridge_quote,
    select_bridge_route,
    swap_quote_from_jupiter,
)
from chatwallet.core.tokens import NATIVE_PLACEHOLDER
from chatwallet.providers.jupiter import JupiterQuote


def jupiter_quote(out_amount=150_000_000, impact=0.35, labels=("Raydium", "Orca")):
    return JupiterQuote(
        input_mint="So11111111111111111111111111111111111111112",
        output_mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        in_amount=1_000_000_000,
        out_amount=out_amount,
        other_amount_threshold=out_amount,
        slippage_bps=50,
        price_impact_pct=impact,
        route_labels=list(labels),
        quote_response={"inAmount": "1000000000"},
    )


# =============================================================================
# Parsing
# =============================================================================

class TestParseBridgeQuote:
    """Tests for parse_bridge_quote."""

    def test_all_variants(self):
        payload = {
            "success": True,
            "result": {
                "autoRoute": {"quoteId": "auto-1", "estimatedTime": 120},
                "manualRoutes": [{"quoteId": "m-1", "output": {"effectiveReceivedInUsd": 9.5}}],
                "depositRoute": {"quoteId": "dep-1"},
            },
        }
        quote = parse_bridge_quote(payload)

        assert quote.recognized
        assert quote.auto.quote_id == "auto-1"
        assert quote.auto.estimated_time == "~2 minutes"
        assert quote.manual[0].received_value == Decimal("9.5")
        assert quote.deposit.source == RouteSource.DEPOSIT

    def test_legacy_list(self):
        quote = parse_bridge_quote({"result": [{"id": "r1", "name": "Mayan"}]})
        assert quote.legacy[0].quote_id == "r1"
        assert quote.legacy[0].name == "Mayan"

    def test_legacy_routes_key(self):
        quote = parse_bridge_quote({"routes": [{"id": "r1"}]})
        assert quote.has_routes

    def test_error_payload(self):
        quote = parse_bridge_quote({"success": False, "error": {"message": "amount too low"}})
        assert quote.error == "amount too low"
        assert not quote.has_routes

    def test_empty_result(self):
        quote = parse_bridge_quote({"success": True, "result": {"manualRoutes": []}})
        assert quote.recognized
        assert not quote.has_routes

    @pytest.mark.parametrize("payload", [None, "nope", {"something": "else"}, {"result": 5}])
    def test_unrecognized_shapes(self, payload):
        assert parse_bridge_quote(payload).recognized is False

    def test_string_eta_kept(self):
        quote = parse_bridge_quote({"result": {"autoRoute": {"quoteId": "a", "estimatedTime": "5 min"}}})
        assert quote.auto.estimated_time == "5 min"


# =============================================================================
# Selection
# =============================================================================

class TestSelectBridgeRoute:
    """Tests for select_bridge_route priority."""

    def test_auto_wins(self):
        quote = parse_bridge_quote({"result": {
            "autoRoute": {"quoteId": "auto"},
            "manualRoutes": [{"quoteId": "m", "effectiveReceivedInUsd": 100}],
        }})
        assert select_bridge_route(quote).quote_id == "auto"

    def test_best_manual_by_received_value(self):
        quote = parse_bridge_quote({"result": {"manualRoutes": [
            {"quoteId": "low", "effectiveReceivedInUsd": 9.1},
            {"quoteId": "high", "effectiveReceivedInUsd": 9.7},
            {"quoteId": "mid", "effectiveReceivedInUsd": 9.4},
        ]}})
        assert select_bridge_route(quote).quote_id == "high"

    def test_ties_keep_aggregator_order(self):
        quote = parse_bridge_quote({"result": {"manualRoutes": [
            {"quoteId": "first", "estimatedOutput": "10"},
            {"quoteId": "second", "estimatedOutput": "10"},
        ]}})
        assert select_bridge_route(quote).quote_id == "first"

    def test_deposit_before_legacy(self):
        quote = parse_bridge_quote({"result": {
            "depositRoute": {"quoteId": "dep"},
            "routes": [{"id": "legacy"}],
        }})
        assert select_bridge_route(quote).quote_id == "dep"

    def test_nothing_to_select(self):
        assert select_bridge_route(parse_bridge_quote({"result": {}})) is None


class TestBridgeNoRoute:
    """Tests for the no-route explanation."""

    def test_native_output_suggests_usdc(self):
        error = bridge_no_route(
            amount_display="0.01 SOL",
            to_chain="base",
            output_token=NATIVE_PLACEHOLDER,
            min_amount=Decimal("0.05"),
            provider_detail="amount too low",
        )
        assert isinstance(error, NoRoute)
        assert "Bridge provider said: amount too low" in error.message
        assert "USDC on base" in error.message
        assert "0.05" in error.suggestion

    def test_token_output(self):
        error = bridge_no_route(
            amount_display="1 USDC",
            to_chain="base",
            output_token="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
            min_amount=Decimal("0.05"),
        )
        assert "USDC on base instead" not in error.message


# =============================================================================
# Swap quotes
# =============================================================================

class TestSwapQuote:
    """Tests for swap quote wrapping."""

    def test_wraps_jupiter_quote(self):
        quote = swap_quote_from_jupiter(jupiter_quote())
        assert quote.provider == "jupiter"
        assert quote.output_amount_base_units == 150_000_000
        assert quote.route_id == "Raydium > Orca"
        assert quote.is_fresh(30)

    def test_zero_output_is_no_route(self):
        with pytest.raises(NoRoute):
            swap_quote_from_jupiter(jupiter_quote(out_amount=0))

    def test_stale_quote(self):
        raw = jupiter_quote()
        raw.fetched_at = time.time() - 60
        assert not swap_quote_from_jupiter(raw).is_fresh(30)

    def test_high_price_impact(self):
        assert is_high_price_impact(swap_quote_from_jupiter(jupiter_quote(impact=6.0)), 5.0)
        assert not is_high_price_impact(swap_quote_from_jupiter(jupiter_quote(impact=0.2)), 5.0)
