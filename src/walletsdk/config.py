"""Application configuration using pydantic-settings.

Every knob of the wallet session engine is read from the environment
(or a local .env file) so the same engine runs against a dry-run
provider in tests and against a real node in development.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug logging")

    # ======================
    # Provider
    # ======================
    provider: str = Field(
        default="dryrun", description="Injected provider backend (dryrun, jsonrpc)"
    )
    rpc_url: str = Field(
        default="http://127.0.0.1:8545", description="JSON-RPC endpoint for the jsonrpc provider"
    )
    rpc_timeout: float = Field(default=30.0, description="JSON-RPC request timeout in seconds")
    embedded: bool = Field(
        default=False, description="Host context is an embedded (untrusted) frame"
    )

    # ======================
    # Assets
    # ======================
    native_symbol: str = Field(default="ETH", description="Native asset symbol")
    token_symbol: str = Field(default="LOT", description="Secondary token symbol")
    token_decimals: int = Field(default=18, description="Secondary token decimals")
    token_contract: Optional[str] = Field(
        default=None, description="ERC-20 contract used to read the token balance"
    )

    # ======================
    # Pricing
    # ======================
    native_price_usd: Decimal = Field(
        default=Decimal("2000"), description="Fixed USD price of the native asset"
    )
    token_price_usd: Decimal = Field(
        default=Decimal("0.1"), description="Fixed USD price of the secondary token"
    )

    # ======================
    # Confirmation tracking
    # ======================
    confirmation_poll_interval: float = Field(
        default=2.0, description="Seconds between receipt polls"
    )
    confirmation_timeout: float = Field(
        default=120.0, description="Seconds before a pending transaction is marked failed"
    )
    auto_refresh_balance: bool = Field(
        default=True, description="Refresh balances right after a successful connect"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def supported_currencies(self) -> list[str]:
        """Currencies that have a settlement path for transfers."""
        return [self.native_symbol.upper()]

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "provider": self.provider,
            "rpc_url": self._redact_url(self.rpc_url),
            "embedded": self.embedded,
            "assets": {
                "native": self.native_symbol,
                "token": self.token_symbol,
                "token_contract": self.token_contract or "(not set)",
            },
            "pricing": {
                self.native_symbol: str(self.native_price_usd),
                self.token_symbol: str(self.token_price_usd),
            },
            "confirmations": {
                "poll_interval": self.confirmation_poll_interval,
                "timeout": self.confirmation_timeout,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials embedded in an RPC URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            creds, host = rest.rsplit("@", 1)
            if ":" in creds:
                user, _ = creds.split(":", 1)
                return f"{proto}://{user}:***@{host}"
            return f"{proto}://***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
