"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "StageVote"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment
    LOG_LEVEL: str = "INFO"

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Document store backend: "cosmos" for Azure Cosmos DB, "memory" for
    # local development and tests
    STORE_BACKEND: str = "cosmos"

    # Azure Cosmos DB
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None  # For the local emulator
    AZURE_COSMOS_DATABASE: str = "stagevote"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # Caller tokens are issued by the identity service and verified here
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Store contention handling (bounded retry with exponential backoff)
    SEQUENCER_MAX_ATTEMPTS: int = 5
    STORE_MAX_ATTEMPTS: int = 5
    STORE_RETRY_MIN_SECONDS: float = 0.05
    STORE_RETRY_MAX_SECONDS: float = 1.0

    # Free votes reset at midnight in this timezone
    VOTE_DAY_TIMEZONE: str = "UTC"

    # Referral codes are REFERRAL_CODE_BYTES random bytes rendered as hex
    REFERRAL_CODE_BYTES: int = 4
    REFERRAL_CODE_MAX_ATTEMPTS: int = 5

    # Bulk casting writes votes in chunks of this size
    BULK_CAST_CHUNK_SIZE: int = 50

    # Sales tax applied to vote purchases when platform settings do not set one
    DEFAULT_SALES_TAX_PERCENT: float = 0.0

    # The API sits behind an edge proxy that overwrites X-Forwarded-For.
    # Set to false when clients can reach the API directly.
    TRUST_FORWARDED_FOR: bool = True

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_cosmos_configured(self) -> bool:
        """Check if Cosmos DB connection details are present."""
        return bool(self.AZURE_COSMOS_ENDPOINT or self.AZURE_COSMOS_CONNECTION_STRING)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
