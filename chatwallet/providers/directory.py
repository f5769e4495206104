"""User directory: chat handles to user ids.

Usernames are recorded from every inbound update so that ``@handle``
recipients can be resolved to the owner's custodial wallet.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Protocol


@dataclass(frozen=True)
class DirectoryEntry:
    user_id: int
    username: str


class UserDirectory(Protocol):
    async def record(self, user_id: int, username: Optional[str]) -> None: ...

    async def lookup(self, handle: str) -> Optional[DirectoryEntry]: ...


def normalize_handle(handle: str) -> str:
    return handle.strip().lstrip("@").lower()


class InMemoryUserDirectory:
    """Process-local directory. Usernames are stored lower-cased."""

    def __init__(self) -> None:
        self._by_username: Dict[str, DirectoryEntry] = {}
        self._by_user: Dict[int, str] = {}
        self._lock = asyncio.Lock()

    async def record(self, user_id: int, username: Optional[str]) -> None:
        async with self._lock:
            previous = self._by_user.pop(user_id, None)
            if previous is not None:
                self._by_username.pop(previous, None)
            if not username:
                return
            key = normalize_handle(username)
            self._by_username[key] = DirectoryEntry(user_id=user_id, username=key)
            self._by_user[user_id] = key

    async def lookup(self, handle: str) -> Optional[DirectoryEntry]:
        return self._by_username.get(normalize_handle(handle))


class DirectoryUnavailable(Exception):
    """A remote directory backend could not be reached."""
