"""
Recipient Resolver

Turns what the user typed (address, .sol domain or @handle) into a
canonical Solana address. Resolution fails closed: an unknown domain or
handle is RecipientNotFound, never a fallback address.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ...providers.directory import DirectoryUnavailable, UserDirectory
from ...providers.sns import SnsLookupError, SnsProvider
from ...services.address import is_handle, is_sol_domain, is_valid_solana_address
from ..errors import NetworkFailed, RecipientNotFound, ValidationFailed
from ..wallet.keystore import KeyStore

logger = logging.getLogger(__name__)


class RecipientForm(str, Enum):
    ADDRESS = "address"
    DOMAIN = "domain"
    HANDLE = "handle"


@dataclass(frozen=True)
class ResolvedRecipient:
    canonical_address: str
    source_form: RecipientForm
    handle_owner_id: Optional[int] = None
    original: str = ""

    @property
    def display(self) -> str:
        """How the recipient is shown back to the user."""
        if self.source_form == RecipientForm.ADDRESS:
            return self.canonical_address
        return self.original


def classify_recipient(value: str) -> RecipientForm:
    text = (value or "").strip()
    if is_handle(text):
        return RecipientForm.HANDLE
    if is_sol_domain(text):
        return RecipientForm.DOMAIN
    if is_valid_solana_address(text):
        return RecipientForm.ADDRESS
    raise ValidationFailed(
        f"'{text}' is not a Solana address, .sol domain or @username.",
        param="recipient",
        suggestion="Send a wallet address, a name like alice.sol, or @username.",
    )


class RecipientResolver:
    def __init__(self, sns: SnsProvider, directory: UserDirectory, keystore: KeyStore):
        self.sns = sns
        self.directory = directory
        self.keystore = keystore

    async def resolve(self, value: str) -> ResolvedRecipient:
        text = (value or "").strip()
        form = classify_recipient(text)

        if form == RecipientForm.ADDRESS:
            return ResolvedRecipient(text, form, original=text)
        if form == RecipientForm.DOMAIN:
            return await self._resolve_domain(text)
        return await self._resolve_handle(text)

    async def _resolve_domain(self, domain: str) -> ResolvedRecipient:
        try:
            address = await self.sns.resolve(domain)
        except SnsLookupError as exc:
            logger.warning("SNS lookup for %s failed: %s", domain, exc)
            raise NetworkFailed(
                f"Could not reach the name service to resolve {domain}. Please try again.",
            ) from exc

        if not address or not is_valid_solana_address(address):
            raise RecipientNotFound(domain, f"The domain {domain} is not registered to any wallet.")
        logger.info("Resolved %s to %s", domain, address)
        return ResolvedRecipient(address, RecipientForm.DOMAIN, original=domain.lower())

    async def _resolve_handle(self, handle: str) -> ResolvedRecipient:
        try:
            entry = await self.directory.lookup(handle)
        except DirectoryUnavailable as exc:
            raise NetworkFailed("The user directory is unavailable right now. Please try again.") from exc

        display = handle if handle.startswith("@") else f"@{handle}"
        if entry is None:
            raise RecipientNotFound(
                display,
                f"I don't know {display} yet. They need to message me before they can receive SOL.",
            )

        address = await self.keystore.address_of(entry.user_id)
        if not address:
            raise RecipientNotFound(
                display,
                f"User {display} doesn't have a wallet yet. They need to create one first!",
            )
        return ResolvedRecipient(address, RecipientForm.HANDLE, handle_owner_id=entry.user_id, original=display)
