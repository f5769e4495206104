"""
Custodial key storage.

Secret keys are kept encrypted at rest with a NaCl SecretBox keyed by the
SHA-256 digest of the configured encryption secret; plaintext keys only
exist for the duration of a signing operation.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from nacl.exceptions import CryptoError
from nacl.secret import SecretBox
from solders.keypair import Keypair
from solders.signature import Signature

from ..errors import ValidationFailed

logger = logging.getLogger(__name__)

_DEV_SECRET = "chatwallet-dev-secret-change-in-production"

_IMPORT_FORMAT_HINT = "Invalid private key format. Send a JSON byte array like [12,34,...] or a base58 string."


class KeyStoreError(Exception):
    """A stored key could not be decrypted."""


@dataclass
class WalletRecord:
    user_id: int
    address: str
    encrypted_key: bytes
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class WalletInfo:
    address: str
    is_new: bool


def parse_secret_key(raw: str) -> Keypair:
    """Accepts a JSON array of 64 bytes or a base58-encoded secret key."""
    text = (raw or "").strip()
    if not text:
        raise ValidationFailed(_IMPORT_FORMAT_HINT, param="private_key")

    if text.startswith("["):
        try:
            values = json.loads(text)
            secret = bytes(values)
        except (ValueError, TypeError) as exc:
            raise ValidationFailed(_IMPORT_FORMAT_HINT, param="private_key") from exc
        if len(secret) != 64:
            raise ValidationFailed("A secret key must be 64 bytes long.", param="private_key")
        try:
            return Keypair.from_bytes(secret)
        except ValueError as exc:
            raise ValidationFailed(_IMPORT_FORMAT_HINT, param="private_key") from exc

    # A base58 secret key is the same 64-byte encoding as a signature;
    # Keypair.from_base58_string panics on bad input instead of raising.
    try:
        return Keypair.from_bytes(bytes(Signature.from_string(text)))
    except ValueError as exc:
        raise ValidationFailed(_IMPORT_FORMAT_HINT, param="private_key") from exc


class KeyStore:
    """In-process wallet registry: one custodial keypair per user."""

    def __init__(self, secret: Optional[str] = None):
        if not secret:
            logger.warning("KEY_ENCRYPTION_SECRET not set; using the development secret")
            secret = _DEV_SECRET
        self._box = SecretBox(hashlib.sha256(secret.encode()).digest())
        self._records: Dict[int, WalletRecord] = {}
        self._lock = asyncio.Lock()

    def _seal(self, keypair: Keypair) -> bytes:
        return bytes(self._box.encrypt(bytes(keypair)))

    def _open(self, record: WalletRecord) -> Keypair:
        try:
            return Keypair.from_bytes(self._box.decrypt(record.encrypted_key))
        except CryptoError as exc:
            raise KeyStoreError(f"Could not decrypt wallet for user {record.user_id}") from exc

    async def create(self, user_id: int) -> WalletInfo:
        """Create a wallet, or return the existing one unchanged."""
        async with self._lock:
            existing = self._records.get(user_id)
            if existing is not None:
                return WalletInfo(address=existing.address, is_new=False)

            keypair = Keypair()
            address = str(keypair.pubkey())
            self._records[user_id] = WalletRecord(user_id, address, self._seal(keypair))
            logger.info("Created wallet %s for user %s", address, user_id)
            return WalletInfo(address=address, is_new=True)

    async def import_key(self, user_id: int, raw_secret: str) -> WalletInfo:
        """Replace the user's wallet with an imported secret key."""
        keypair = parse_secret_key(raw_secret)
        address = str(keypair.pubkey())
        async with self._lock:
            self._records[user_id] = WalletRecord(user_id, address, self._seal(keypair))
        logger.info("Imported wallet %s for user %s", address, user_id)
        return WalletInfo(address=address, is_new=True)

    async def get(self, user_id: int) -> Optional[Keypair]:
        record = self._records.get(user_id)
        return self._open(record) if record else None

    async def has(self, user_id: int) -> bool:
        return user_id in self._records

    async def address_of(self, user_id: int) -> Optional[str]:
        record = self._records.get(user_id)
        return record.address if record else None
