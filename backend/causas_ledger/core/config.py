# causas_ledger/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Causas Ledger"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # JWT Authentication
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "token"

    # Service-to-service calls (folder service, reconciliation job).
    # Sent as the x-service-token header; empty disables token access.
    SERVICE_API_TOKEN: str = ""

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | text

    # Subscription ledger
    LEDGER_SOURCE_TAG: str = "app"
    LEDGER_UPSERT_ATTEMPTS: int = 3
    LEDGER_STRICT_DUPLICATES: bool = True
    LEDGER_BULK_BATCH_SIZE: int = 500

    @field_validator("LEDGER_UPSERT_ATTEMPTS", "LEDGER_BULK_BATCH_SIZE", mode="after")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Create settings instance
settings = Settings()
