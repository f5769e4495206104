"""Token metadata for swaps and bridges."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

NATIVE_PLACEHOLDER = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"


@dataclass(frozen=True)
class SolanaToken:
    symbol: str
    mint: str
    decimals: int
    is_native: bool = False


# Keyed by upper-case symbol. SOL swaps through the wrapped mint.
SOLANA_TOKENS: Dict[str, SolanaToken] = {
    "SOL": SolanaToken("SOL", WSOL_MINT, 9, is_native=True),
    "WSOL": SolanaToken("WSOL", WSOL_MINT, 9),
    "USDC": SolanaToken("USDC", USDC_MINT, 6),
    "USDT": SolanaToken("USDT", USDT_MINT, 6),
    "JUP": SolanaToken("JUP", "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", 6),
    "BONK": SolanaToken("BONK", "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", 5),
}

_KNOWN_BY_MINT: Dict[str, SolanaToken] = {
    token.mint: token for symbol, token in SOLANA_TOKENS.items() if symbol != "WSOL"
}

# Destination tokens on EVM chains, keyed by chain then upper-case symbol.
EVM_TOKENS: Dict[str, Dict[str, str]] = {
    "ethereum": {
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
    },
    "base": {
        "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    },
    "polygon": {
        "USDC": "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        "USDT": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
    },
    "arbitrum": {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "USDT": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
    },
    "optimism": {
        "USDC": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
    },
    "avalanche": {
        "USDC": "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
    },
    "bsc": {
        "USDC": "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
        "USDT": "0x55d398326f99059fF775485246999027B3197955",
    },
}

EVM_NATIVE_SYMBOLS = {"ETH", "BNB", "MATIC", "POL", "AVAX", "SOL"}


def known_solana_token(symbol_or_mint: str) -> Optional[SolanaToken]:
    """Look up a token by symbol (case-insensitive) or exact mint."""
    value = (symbol_or_mint or "").strip()
    token = SOLANA_TOKENS.get(value.upper())
    if token is not None:
        return token
    return _KNOWN_BY_MINT.get(value)


def bridge_input_token(symbol_or_mint: str) -> str:
    """Source token address in the form the bridge aggregator expects."""
    value = (symbol_or_mint or "SOL").strip()
    if value.upper() == "SOL":
        return NATIVE_PLACEHOLDER
    token = SOLANA_TOKENS.get(value.upper())
    return token.mint if token else value


def bridge_output_token(chain: str, symbol: str) -> str:
    """Destination token address; native gas token unless a stablecoin is named."""
    value = (symbol or "").strip()
    if value.startswith("0x") and len(value) == 42:
        return value
    return EVM_TOKENS.get(chain, {}).get(value.upper(), NATIVE_PLACEHOLDER)
