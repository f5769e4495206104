"""Solana Name Service (.sol) lookups through the Bonfida HTTP proxy."""

from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import settings


class SnsLookupError(Exception):
    """The name service could not be reached or answered garbage."""


class SnsProvider(Provider):
    name = "sns"

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.base_url = (base_url or settings.sns_base_url).rstrip("/")
        self.timeout_s = settings.request_timeout_seconds

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy" if self.base_url else "unavailable", "base_url": self.base_url}

    async def resolve(self, domain: str) -> Optional[str]:
        """Owner address for ``domain`` (with or without the .sol suffix), or None."""
        name = domain.strip().lower()
        if name.endswith(".sol"):
            name = name[: -len(".sol")]

        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/resolve/{name}")
        except httpx.RequestError as exc:
            raise SnsLookupError(f"SNS request failed: {exc}") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise SnsLookupError(f"SNS proxy returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise SnsLookupError("SNS proxy returned a non-JSON body") from exc

        # {"s": "ok", "result": "<owner>"} or {"s": "error", "result": "Invalid domain"}
        if isinstance(body, dict) and body.get("s") == "ok" and isinstance(body.get("result"), str):
            return body["result"]
        return None
