"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. The .env file is gitignored; .env.example provides a safe template.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from app.config import settings
    print(settings.EVENT_BUS_NAME)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Ledger API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local runs; swap to a PostgreSQL (asyncpg) URL in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/ledger.db"

    # --- Authentication ---
    # REQUIRED: No default — forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Event bus (AWS EventBridge) ---
    # With EVENTS_ENABLED=false events are only written to the log
    EVENTS_ENABLED: bool = False
    EVENT_BUS_NAME: str = "default"
    EVENT_SOURCE: str = "accountService"
    EVENT_DETAIL_TYPE: str = "transactionCreated"
    AWS_REGION: str = "eu-north-1"
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None

    # --- Transaction processing ---
    # How many times a balance update is re-run after losing an optimistic
    # version check to a writer in another process
    BALANCE_UPDATE_MAX_RETRIES: int = 3

    # --- Rate limiting (per client IP, every endpoint) ---
    # Syntax of the `limits` package, e.g. "10/15 minutes" or "100 per hour"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT: str = "10/15 minutes"

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
