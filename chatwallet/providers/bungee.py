from typing import Any, Dict, List, Optional

import httpx

from ..config import settings


class BungeeError(Exception):
    """Request to the Bungee API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class BungeeProvider:
    """Thin client for the Bungee public API surface (quote, build-tx, status)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.bungee_api_key

        configured = base_url or settings.bungee_base_url
        if configured:
            self.base_urls: List[str] = [configured.rstrip('/')]
        else:
            self.base_urls = [
                'https://public-backend.bungee.exchange',
                'https://api.socket.tech',
            ]

        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            'Accept': 'application/json',
        }
        if self.api_key:
            headers['API-KEY'] = self.api_key
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        last_error: Optional[Exception] = None

        for index, base_url in enumerate(self.base_urls):
            client_kwargs: Dict[str, Any] = {'base_url': base_url, 'timeout': self.timeout_s}
            if self._transport is not None:
                client_kwargs['transport'] = self._transport
            try:
                async with httpx.AsyncClient(**client_kwargs) as client:
                    resp = await client.request(method, path, headers=self._headers(), **kwargs)
                    resp.raise_for_status()
                    return resp
            except httpx.HTTPStatusError as exc:
                # Some public hosts omit certain routes. Fall back when we hit 404/405.
                if exc.response.status_code in (404, 405) and index < len(self.base_urls) - 1:
                    last_error = exc
                    continue
                raise BungeeError(
                    f'Bungee API error ({exc.response.status_code})',
                    status_code=exc.response.status_code,
                    body=exc.response.text[:500],
                ) from exc
            except httpx.RequestError as exc:
                last_error = exc
                continue

        raise BungeeError(f'All Bungee hosts failed: {last_error}')

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        cleaned_params = {k: v for k, v in params.items() if v is not None}
        resp = await self._request('GET', path, params=cleaned_params)
        try:
            return resp.json()
        except ValueError as exc:
            raise BungeeError('Bungee returned a non-JSON body', status_code=resp.status_code, body=resp.text[:500]) from exc

    async def quote(self, params: Dict[str, Any]) -> Any:
        """Fetch a bridge quote (auto, manual and deposit routes) via the public v1 API."""
        return await self._get_json('/api/v1/bungee/quote', params)

    async def build_tx(self, quote_id: str) -> Any:
        """Build the source-chain transaction for a previously fetched manual route."""
        return await self._get_json('/api/v1/bungee/build-tx', {'quoteId': quote_id})

    async def bridge_status(self, tx_hash: str) -> Any:
        return await self._get_json('/api/v1/bungee/bridge-status', {'txHash': tx_hash})
