"""Application configuration using pydantic-settings.

Only selects and parameterizes the signing backend. Nothing is persisted.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values of ethsign.signing.base.RecoveryEncoding
RECOVERY_ENCODINGS = ("parity", "legacy", "chain_adjusted")


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

    # ======================
    # Signing backend
    # ======================
    signer_backend: str = Field(
        default="local", description="Signing backend: local, ledger or trezor"
    )
    hot_wallet_private_key: Optional[SecretStr] = Field(
        default=None, description="Private key (hex) for the local signing backend"
    )
    ledger_recovery_encoding: str = Field(
        default="legacy",
        description="Form of the transaction `v` returned by Ledger: parity, legacy or chain_adjusted",
    )

    # ======================
    # Wallet defaults
    # ======================
    default_chain_id: int = Field(default=1, description="Chain id used when a request has none")
    address_count: int = Field(
        default=10, description="Number of addresses derived when opening a hardware wallet"
    )
    interaction_warnings: bool = Field(
        default=True, description="Warn when the user must confirm on the device"
    )

    @field_validator("signer_backend")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("ledger_recovery_encoding")
    @classmethod
    def _recovery_encoding(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in RECOVERY_ENCODINGS:
            raise ValueError(f"must be one of {', '.join(RECOVERY_ENCODINGS)}")
        return value

    @field_validator("default_chain_id", "address_count")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_local_key(self) -> bool:
        """Check if a local signing key is configured."""
        return bool(self.hot_wallet_private_key and self.hot_wallet_private_key.get_secret_value())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "signer_backend": self.signer_backend,
            "hot_wallet_private_key": "***" if self.has_local_key else "(not set)",
            "ledger_recovery_encoding": self.ledger_recovery_encoding,
            "default_chain_id": self.default_chain_id,
            "address_count": self.address_count,
            "interaction_warnings": self.interaction_warnings,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
