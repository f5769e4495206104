"""
Process-local TTL cache for token metadata (mint decimals and the like).

Entries expire after their TTL; once ``max_size`` is reached the least
recently read entry is evicted. ``get_or_load`` runs at most one loader per
key at a time, so concurrent swaps for the same unknown mint share a single
RPC lookup.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._loading: Dict[Hashable, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: Hashable) -> Optional[Any]:
        async with self._lock:
            return self._read(key)

    async def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            self._write(key, value, ttl)

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Cached value for ``key``, calling ``loader`` on a miss.

        Loader errors propagate and nothing is cached. ``None`` results are
        not cached either.
        """
        async with self._lock:
            value = self._read(key)
            if value is not None:
                return value
            key_lock = self._loading.setdefault(key, asyncio.Lock())

        async with key_lock:
            # Another caller may have filled the entry while we waited
            async with self._lock:
                value = self._read(key)
            if value is not None:
                return value

            try:
                value = await loader()
            finally:
                async with self._lock:
                    self._loading.pop(key, None)

            if value is not None:
                async with self._lock:
                    self._write(key, value, ttl)
            return value

    async def invalidate(self, key: Hashable) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def _read(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    def _write(self, key: Hashable, value: Any, ttl: Optional[float]) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + lifetime)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
