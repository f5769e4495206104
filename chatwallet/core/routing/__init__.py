"""
Routing Module

Quote models and route selection for swaps and bridges.
"""

from .models import BridgeQuote, BridgeRoute, Quote, RouteSource
from .selector import (
    DEFAULT_BRIDGE_ETA,
    best_manual_route,
    bridge_no_route,
    is_high_price_impact,
    parse_bridge_quote,
    select_bridge_route,
    swap_quote_from_jupiter,
)

__all__ = [
    "BridgeQuote",
    "BridgeRoute",
    "Quote",
    "RouteSource",
    "DEFAULT_BRIDGE_ETA",
    "best_manual_route",
    "bridge_no_route",
    "is_high_price_impact",
    "parse_bridge_quote",
    "select_bridge_route",
    "swap_quote_from_jupiter",
]
