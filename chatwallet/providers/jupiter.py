"""
Jupiter swap aggregator for Solana.

- Token list lookups (symbol and mint) from the strict list, cached in memory
- Swap quotes and swap transaction building via the v6 quote API
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .base import Provider
from ..config import settings


@dataclass
class JupiterToken:
    """Parsed Jupiter token metadata."""

    address: str  # Mint address (Base58)
    symbol: str
    name: str
    decimals: int

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "JupiterToken":
        return cls(
            address=data.get("address", ""),
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            decimals=int(data.get("decimals", 9)),
        )


class JupiterTokenList(Provider):
    """
    Jupiter strict token list.

    No API key required. The list is cached in memory with a TTL and
    stale data is kept if a refresh fails.
    """

    name = "jupiter"
    timeout_s = 15

    def __init__(
        self,
        list_url: Optional[str] = None,
        cache_ttl_seconds: int = 3600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        self.list_url = list_url or settings.jupiter_token_list_url
        self._by_mint: Dict[str, JupiterToken] = {}
        self._by_symbol: Dict[str, List[JupiterToken]] = {}
        self._cache_loaded = False
        self._cache_lock = asyncio.Lock()
        self._last_refresh: float = 0
        self._cache_ttl_seconds = cache_ttl_seconds

    async def ready(self) -> bool:
        return True

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self._ensure_cache()
            return {"status": "healthy", "cached_tokens": len(self._by_mint)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _ensure_cache(self) -> None:
        async with self._cache_lock:
            now = time.time()
            if self._cache_loaded and (now - self._last_refresh) < self._cache_ttl_seconds:
                return

            try:
                async with self._client() as client:
                    resp = await client.get(self.list_url)
                    resp.raise_for_status()
                    tokens_data = resp.json()
            except (httpx.HTTPError, ValueError):
                # Keep serving stale data if we have any
                if not self._cache_loaded:
                    raise
                return

            self._by_mint.clear()
            self._by_symbol.clear()
            for item in tokens_data:
                token = JupiterToken.from_api(item)
                if not token.address:
                    continue
                self._by_mint[token.address] = token
                self._by_symbol.setdefault(token.symbol.upper(), []).append(token)

            self._cache_loaded = True
            self._last_refresh = now

    async def get_token_by_mint(self, mint_address: str) -> Optional[JupiterToken]:
        await self._ensure_cache()
        return self._by_mint.get(mint_address)

    async def find_by_symbol(self, symbol: str) -> Optional[JupiterToken]:
        """Exact, case-insensitive symbol match; the first listed token wins."""
        await self._ensure_cache()
        matches = self._by_symbol.get(symbol.strip().upper(), [])
        return matches[0] if matches else None


@dataclass
class JupiterQuote:
    """Quote response from Jupiter."""
    input_mint: str
    output_mint: str
    in_amount: int                              # In smallest units
    out_amount: int                             # In smallest units
    other_amount_threshold: int                 # Minimum output (with slippage)
    slippage_bps: int
    price_impact_pct: float                     # Percent, e.g. 0.35 == 0.35%
    route_labels: List[str] = field(default_factory=list)
    quote_response: Optional[Dict[str, Any]] = None
    fetched_at: float = field(default_factory=time.time)

    def is_fresh(self, max_age_seconds: float) -> bool:
        return (time.time() - self.fetched_at) < max_age_seconds


@dataclass
class JupiterSwapTransaction:
    """Unsigned swap transaction built from a quote."""
    swap_transaction: str                       # Base64 encoded transaction
    last_valid_block_height: Optional[int]
    priority_fee_lamports: int = 0


class JupiterError(Exception):
    """Base error for Jupiter requests."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class JupiterQuoteError(JupiterError):
    """Failed to get a quote from Jupiter."""


class JupiterSwapError(JupiterError):
    """Failed to build swap transaction."""


class JupiterSwapProvider(Provider):
    """
    Jupiter quote and swap transaction builder.

    Usage:
        provider = JupiterSwapProvider()
        quote = await provider.get_swap_quote(WSOL_MINT, USDC_MINT, 1_000_000_000)
        swap = await provider.build_swap_transaction(quote, user_public_key="...")
    """

    name = "jupiter_swap"
    timeout_s = 30

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.base_url = (base_url or settings.jupiter_base_url).rstrip("/")

    async def ready(self) -> bool:
        return True

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "base_url": self.base_url}

    async def get_swap_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> JupiterQuote:
        """
        Get an ExactIn swap quote.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest units (lamports for SOL)
            slippage_bps: Slippage tolerance in basis points (50 = 0.5%)
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
            "swapMode": "ExactIn",
        }

        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/quote", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise JupiterQuoteError(
                _error_text(e.response) or f"HTTP error: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise JupiterQuoteError(f"Request error: {e}") from e
        except ValueError as e:
            raise JupiterQuoteError(f"Invalid quote response: {e}") from e

        if not isinstance(data, dict) or "error" in data:
            message = data.get("error") if isinstance(data, dict) else "unexpected response"
            raise JupiterQuoteError(f"Jupiter quote error: {message}", status_code=400)

        try:
            labels = [
                (step.get("swapInfo") or {}).get("label", "")
                for step in data.get("routePlan", [])
            ]
            return JupiterQuote(
                input_mint=data["inputMint"],
                output_mint=data["outputMint"],
                in_amount=int(data["inAmount"]),
                out_amount=int(data["outAmount"]),
                other_amount_threshold=int(data.get("otherAmountThreshold", data["outAmount"])),
                slippage_bps=int(data.get("slippageBps", slippage_bps)),
                price_impact_pct=float(data.get("priceImpactPct") or 0) * 100,
                route_labels=[label for label in labels if label],
                quote_response=data,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise JupiterQuoteError(f"Malformed quote response: {e}", status_code=400) from e

    async def build_swap_transaction(
        self,
        quote: JupiterQuote,
        user_public_key: str,
        priority_level: str = "medium",
    ) -> JupiterSwapTransaction:
        """Build an unsigned swap transaction for ``quote``."""
        if not quote.quote_response:
            raise JupiterSwapError("Quote response required for swap transaction")

        payload = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": 10_000_000,  # 0.01 SOL max
                    "priorityLevel": priority_level,
                }
            },
        }

        try:
            async with self._client() as client:
                response = await client.post(f"{self.base_url}/swap", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise JupiterSwapError(
                _error_text(e.response) or f"HTTP error: {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise JupiterSwapError(f"Request error: {e}") from e
        except ValueError as e:
            raise JupiterSwapError(f"Invalid swap response: {e}") from e

        if "error" in data or not data.get("swapTransaction"):
            raise JupiterSwapError(f"Jupiter swap error: {data.get('error', 'missing transaction')}", status_code=400)

        return JupiterSwapTransaction(
            swap_transaction=data["swapTransaction"],
            last_valid_block_height=data.get("lastValidBlockHeight"),
            priority_fee_lamports=data.get("prioritizationFeeLamports", 0),
        )


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)[:300]
    return str(body)[:300]


__all__ = [
    "JupiterToken",
    "JupiterTokenList",
    "JupiterSwapProvider",
    "JupiterQuote",
    "JupiterSwapTransaction",
    "JupiterError",
    "JupiterQuoteError",
    "JupiterSwapError",
]
