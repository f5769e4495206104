from decimal import Decimal
from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log output: json lines or colored console")

    # Messaging transport
    telegram_bot_token: str = Field(default="", description="Bot API token used for outbound notifications")
    telegram_api_base_url: str = Field(default="https://api.telegram.org", description="Bot API base URL")
    bot_username: str = Field(default="", description="Bot username used to detect mentions in group chats")
    telegram_webhook_secret: str = Field(default="", description="Expected X-Telegram-Bot-Api-Secret-Token header; unchecked when empty")

    # Solana RPC
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Primary Solana JSON-RPC endpoint",
        validation_alias=AliasChoices("solana_rpc_url", "SOLANA_RPC_URL", "RPC_URL"),
    )
    solana_fallback_rpc_urls: List[str] = Field(
        default_factory=lambda: [
            "https://api.mainnet-beta.solana.com",
            "https://rpc.ankr.com/solana",
            "https://solana-api.projectserum.com",
        ],
        description="Ordered fallback endpoints tried after the primary one",
    )
    rpc_max_attempts: int = Field(default=3, ge=1, description="Attempts per endpoint before falling back")
    rpc_retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base delay between attempts")
    rpc_timeout_seconds: float = Field(default=30.0, description="Per-request timeout for RPC calls")
    rpc_commitment: str = Field(default="confirmed", description="Commitment level for reads and confirmation")
    confirm_timeout_seconds: float = Field(default=60.0, description="Maximum wait for a submitted transaction to confirm")
    explorer_base_url: str = Field(default="https://solscan.io", description="Block explorer used in replies")

    # NLU providers
    groq_api_key: str = Field(default="", description="Groq API key (OpenAI-compatible chat completions)")
    groq_base_url: str = Field(default="https://api.groq.com/openai", description="Groq API base URL")
    groq_model: str = Field(default="llama-3.1-8b-instant", description="Groq model used for intent parsing")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    llm_model: str = Field(default="claude-sonnet-4-20250514", description="Anthropic model used as NLU fallback")
    nlu_temperature: float = Field(default=0.1, description="Sampling temperature for intent parsing")
    nlu_max_tokens: int = Field(default=500, description="Maximum tokens in the NLU response")

    # Custody
    key_encryption_secret: str = Field(
        default="",
        description="Secret used to derive the wallet key encryption key",
        validation_alias=AliasChoices("key_encryption_secret", "ENCRYPTION_SECRET"),
    )

    # Execution policy
    fee_reserve_lamports: int = Field(default=5000, ge=0, description="Lamports kept back when sending 'all'")
    min_bridge_amount: Decimal = Field(default=Decimal("0.05"), description="Smallest native SOL amount worth bridging")
    swap_slippage_bps: int = Field(default=50, ge=0, description="Slippage tolerance for swaps in basis points")
    high_price_impact_pct: float = Field(default=1.0, description="Price impact above which a swap is flagged")
    quote_max_age_seconds: float = Field(default=30.0, description="Quotes older than this are re-fetched")
    history_limit: int = Field(default=10, ge=1, le=50, description="Entries shown in the history reply")

    # Aggregators and directories
    jupiter_base_url: str = Field(default="https://quote-api.jup.ag/v6", description="Jupiter quote/swap API")
    jupiter_token_list_url: str = Field(default="https://token.jup.ag/strict", description="Jupiter strict token list")
    bungee_base_url: str = Field(default="https://public-backend.bungee.exchange", description="Bungee public API")
    bungee_api_key: str = Field(default="", description="Optional Bungee API key")
    sns_base_url: str = Field(
        default="https://sns-sdk-proxy.bonfida.workers.dev",
        description="Solana Name Service resolution proxy",
    )
    request_timeout_seconds: int = Field(default=20, description="Timeout for aggregator and directory requests")

    # Cache Settings
    cache_ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")
    max_cache_size: int = Field(default=1000, description="Maximum cache size")

    @property
    def has_groq_key(self) -> bool:
        return bool(self.groq_api_key)

    @property
    def has_anthropic_key(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def has_llm_key(self) -> bool:
        """Check if at least one NLU provider is configured"""
        return self.has_groq_key or self.has_anthropic_key

    @property
    def rpc_endpoints(self) -> List[str]:
        """Primary endpoint followed by fallbacks, de-duplicated in order."""
        ordered: List[str] = []
        for url in [self.solana_rpc_url, *self.solana_fallback_rpc_urls]:
            cleaned = (url or "").strip().rstrip("/")
            if cleaned and cleaned not in ordered:
                ordered.append(cleaned)
        return ordered


# Global settings instance
settings = Settings()
