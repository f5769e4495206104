"""Typed models used by the routing subsystem."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class Quote:
    """A priced, time-bounded conversion proposal from an aggregator."""

    provider: str
    input_amount_base_units: int
    output_amount_base_units: int
    route_id: Optional[str] = None
    price_impact_pct: Optional[float] = None
    raw_payload: Any = None
    fetched_at: float = field(default_factory=time.time)

    def age_seconds(self) -> float:
        return time.time() - self.fetched_at

    def is_fresh(self, max_age_seconds: float) -> bool:
        return self.age_seconds() < max_age_seconds


class RouteSource(str, Enum):
    """Which part of the bridge quote response a route came from."""
    AUTO = "auto"
    MANUAL = "manual"
    DEPOSIT = "deposit"
    LEGACY = "legacy"


@dataclass
class BridgeRoute:
    source: RouteSource
    quote_id: Optional[str]
    name: str
    received_value: Decimal = Decimal("0")
    estimated_time: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BridgeQuote:
    """Bridge quote response parsed into its tagged route variants."""

    auto: Optional[BridgeRoute] = None
    manual: List[BridgeRoute] = field(default_factory=list)
    deposit: Optional[BridgeRoute] = None
    legacy: List[BridgeRoute] = field(default_factory=list)
    error: Optional[str] = None
    recognized: bool = True

    @property
    def has_routes(self) -> bool:
        return bool(self.auto or self.manual or self.deposit or self.legacy)
