"""
Route Selector

Bridge responses are parsed into explicit variants (auto, manual, deposit,
legacy) and selected in that priority order; manual routes compete on
estimated received value. Swap quotes are checked before anything is
built from them.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from ...providers.jupiter import JupiterQuote
from ..errors import NoRoute
from ..tokens import EVM_TOKENS, NATIVE_PLACEHOLDER
from .models import BridgeQuote, BridgeRoute, Quote, RouteSource

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_ETA = "3-5 minutes"


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _received_value(route: Dict[str, Any]) -> Decimal:
    """USD received if quoted, else the estimated output amount."""
    output = route.get("output") if isinstance(route.get("output"), dict) else {}
    for candidate in (
        route.get("effectiveReceivedInUsd"),
        output.get("effectiveReceivedInUsd"),
        route.get("estimatedOutput"),
        route.get("outputAmount"),
        output.get("amount"),
    ):
        value = _decimal(candidate)
        if value:
            return value
    return Decimal("0")


def _eta(route: Dict[str, Any]) -> Optional[str]:
    value = route.get("estimatedTime")
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        minutes = max(1, math.ceil(value / 60))
        return f"~{minutes} minute{'s' if minutes != 1 else ''}"
    return None


def _route(source: RouteSource, raw: Any) -> Optional[BridgeRoute]:
    if not isinstance(raw, dict) or not raw:
        return None
    details = raw.get("routeDetails") if isinstance(raw.get("routeDetails"), dict) else {}
    name = raw.get("name") or raw.get("integrator") or details.get("name") or source.value
    quote_id = raw.get("quoteId") or raw.get("id")
    return BridgeRoute(
        source=source,
        quote_id=str(quote_id) if quote_id else None,
        name=str(name),
        received_value=_received_value(raw),
        estimated_time=_eta(raw),
        raw=raw,
    )


def _routes(source: RouteSource, items: Any) -> List[BridgeRoute]:
    if not isinstance(items, list):
        return []
    return [route for route in (_route(source, item) for item in items) if route is not None]


def _error_text(payload: Dict[str, Any]) -> Optional[str]:
    result = payload.get("result") if isinstance(payload.get("result"), dict) else {}
    for candidate in (payload.get("error"), payload.get("message"), result.get("error")):
        if candidate:
            if isinstance(candidate, dict):
                return str(candidate.get("message") or candidate)
            return str(candidate)
    if payload.get("success") is False:
        return "the bridge aggregator reported failure"
    return None


def parse_bridge_quote(payload: Any) -> BridgeQuote:
    """Explicit variant parse; unknown shapes come back with ``recognized=False``."""
    if isinstance(payload, list):
        return BridgeQuote(legacy=_routes(RouteSource.LEGACY, payload))
    if not isinstance(payload, dict):
        return BridgeQuote(recognized=False)

    error = _error_text(payload)
    if error:
        return BridgeQuote(error=error)

    if "result" in payload:
        result = payload["result"]
        if isinstance(result, list):
            return BridgeQuote(legacy=_routes(RouteSource.LEGACY, result))
        if not isinstance(result, dict):
            return BridgeQuote(recognized=False)
        return BridgeQuote(
            auto=_route(RouteSource.AUTO, result.get("autoRoute")),
            manual=_routes(RouteSource.MANUAL, result.get("manualRoutes")),
            deposit=_route(RouteSource.DEPOSIT, result.get("depositRoute")),
            legacy=_routes(RouteSource.LEGACY, result.get("routes")),
        )

    if "routes" in payload:
        return BridgeQuote(legacy=_routes(RouteSource.LEGACY, payload["routes"]))
    return BridgeQuote(recognized=False)


def best_manual_route(routes: Iterable[BridgeRoute]) -> Optional[BridgeRoute]:
    # max() keeps the first of equal values, i.e. the aggregator's own order
    return max(routes, key=lambda route: route.received_value, default=None)


def select_bridge_route(quote: BridgeQuote) -> Optional[BridgeRoute]:
    """auto, then best manual, then deposit, then first legacy route."""
    if quote.auto is not None:
        return quote.auto
    best = best_manual_route(quote.manual)
    if best is not None:
        return best
    if quote.deposit is not None:
        return quote.deposit
    return quote.legacy[0] if quote.legacy else None


def bridge_no_route(
    *,
    amount_display: str,
    to_chain: str,
    output_token: str,
    min_amount: Decimal,
    provider_detail: Optional[str] = None,
) -> NoRoute:
    """NoRoute with likely causes and what to try instead."""
    lines = ["No bridge routes are available for this transfer."]
    if provider_detail:
        lines.append(f"Bridge provider said: {provider_detail}")
    lines += [
        "",
        "Possible reasons:",
        f"• Amount too small (minimum ~{min_amount} SOL to cover cross-chain fees)",
        "• Route not supported for this token pair",
        "• Low liquidity for this specific combination",
        "",
        f"You requested: {amount_display}. Try:",
        f"1. Increasing the amount to at least {min_amount} SOL",
    ]
    suggestion = f"Try a larger amount (at least {min_amount} SOL)."
    if output_token == NATIVE_PLACEHOLDER:
        usdc = EVM_TOKENS.get(to_chain, {}).get("USDC")
        lines.append(f"2. Bridging to USDC on {to_chain} instead (better liquidity for small amounts)")
        if usdc:
            lines.append(f"   USDC on {to_chain}: {usdc.lower()}")
        suggestion = f"Try a larger amount, or bridge to USDC on {to_chain}."
    return NoRoute("\n".join(lines), suggestion=suggestion, details={"provider_detail": provider_detail})


def swap_quote_from_jupiter(jupiter_quote: JupiterQuote) -> Quote:
    """Wrap and sanity-check an aggregator swap quote."""
    if jupiter_quote.out_amount <= 0:
        raise NoRoute(
            "The swap aggregator returned no output for this pair and amount.",
            suggestion="Try a different amount or token pair.",
        )
    return Quote(
        provider="jupiter",
        input_amount_base_units=jupiter_quote.in_amount,
        output_amount_base_units=jupiter_quote.out_amount,
        route_id=" > ".join(jupiter_quote.route_labels) or None,
        price_impact_pct=jupiter_quote.price_impact_pct,
        raw_payload=jupiter_quote,
        fetched_at=jupiter_quote.fetched_at,
    )


def is_high_price_impact(quote: Quote, threshold_pct: float) -> bool:
    return quote.price_impact_pct is not None and quote.price_impact_pct > threshold_pct
