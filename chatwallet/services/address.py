"""Helpers for normalizing chain identifiers and validating wallet addresses."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, Optional

from solders.pubkey import Pubkey

_BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_SOL_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*(\.[a-z0-9][a-z0-9_-]*)*\.sol$", re.IGNORECASE)
_HANDLE_RE = re.compile(r"^@?[A-Za-z0-9_]{3,32}$")

_CHAIN_ALIASES = {
    "sol": "solana",
    "solana": "solana",
    "eth": "ethereum",
    "ethereum": "ethereum",
    "mainnet": "ethereum",
    "base": "base",
    "matic": "polygon",
    "polygon": "polygon",
    "arb": "arbitrum",
    "arbitrum": "arbitrum",
    "op": "optimism",
    "optimism": "optimism",
    "avax": "avalanche",
    "avalanche": "avalanche",
    "bsc": "bsc",
    "bnb": "bsc",
    "binance": "bsc",
    "binance smart chain": "bsc",
    "bnb chain": "bsc",
}

# Chain ids used by the Bungee public backend.
BUNGEE_CHAIN_IDS: Dict[str, int] = {
    "solana": 89999,
    "ethereum": 1,
    "base": 8453,
    "polygon": 137,
    "arbitrum": 42161,
    "optimism": 10,
    "avalanche": 43114,
    "bsc": 56,
}

_EVM_CHAINS = {"ethereum", "base", "polygon", "arbitrum", "optimism", "avalanche", "bsc"}


def normalize_chain(chain: str | None) -> Optional[str]:
    """Collapse user-provided chain identifiers into canonical slugs.

    Returns None for chains we do not know.
    """
    if not chain:
        return None
    key = " ".join(chain.lower().split())
    return _CHAIN_ALIASES.get(key)


def is_supported_chain(chain: str) -> bool:
    return chain in BUNGEE_CHAIN_IDS


def is_evm_chain(chain: str) -> bool:
    return chain in _EVM_CHAINS


def supported_chain_names() -> str:
    return ", ".join(sorted(BUNGEE_CHAIN_IDS))


@lru_cache(maxsize=512)
def is_valid_solana_address(address: str) -> bool:
    if not address:
        return False
    length = len(address)
    if length < 32 or length > 44:
        return False
    if not all(ch in _BASE58_ALPHABET for ch in address):
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def is_valid_evm_address(address: str) -> bool:
    return bool(address) and bool(_EVM_ADDRESS_RE.fullmatch(address.strip()))


def is_sol_domain(value: str) -> bool:
    return bool(value) and bool(_SOL_DOMAIN_RE.fullmatch(value.strip()))


def is_handle(value: str) -> bool:
    return bool(value) and value.strip().startswith("@") and bool(_HANDLE_RE.fullmatch(value.strip()))


def is_valid_address_for_chain(address: str, chain: str) -> bool:
    if not address:
        return False
    if is_evm_chain(chain):
        return is_valid_evm_address(address)
    if chain == "solana":
        return is_valid_solana_address(address)
    return False


__all__ = [
    "BUNGEE_CHAIN_IDS",
    "normalize_chain",
    "is_supported_chain",
    "is_evm_chain",
    "supported_chain_names",
    "is_valid_address_for_chain",
    "is_valid_solana_address",
    "is_valid_evm_address",
    "is_sol_domain",
    "is_handle",
]
