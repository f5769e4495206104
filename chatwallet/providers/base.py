from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Short-lived client; ``transport`` is injectable for tests."""
        kwargs.setdefault("timeout", self.timeout_s)
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass
