"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from club_ledger.config import settings
    print(settings.CONFLICT_MAX_RETRIES)

Services read settings at call time (not at import time), so tests can
override a value for a single test with monkeypatch.setattr(settings, ...).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Club Ledger service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Club Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local use; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/club_ledger.db"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # JSON lines in production; human-readable console output when False
    LOG_JSON: bool = True

    # --- Optimistic concurrency ---
    # Retries after the first attempt of an atomic unit. Once exhausted the
    # caller receives ConflictError instead of waiting forever.
    CONFLICT_MAX_RETRIES: int = 5
    CONFLICT_BACKOFF_SECONDS: float = 0.02
    CONFLICT_BACKOFF_MAX_SECONDS: float = 0.5
    CONFLICT_BACKOFF_JITTER_SECONDS: float = 0.01

    # --- Balance policy ---
    # Account kinds whose balance may never drop below zero. Kinds not listed
    # here (category buckets, by default) may go negative to show overruns.
    NON_NEGATIVE_ACCOUNT_KINDS: list[str] = ["bank", "cash"]

    # --- Payment routing ---
    # Payment methods that move money through a club account. A transaction
    # using one of these must name the account (linked_account_id); any
    # other method must not.
    ACCOUNT_ROUTED_PAYMENT_METHODS: list[str] = [
        "cash",
        "bank_transfer",
        "debit_card",
        "check",
        "online_payment",
    ]

    # --- CORS ---
    # Origins allowed to make cross-origin requests (dashboard URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
