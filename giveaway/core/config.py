# giveaway/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string; sqlite:// works for dev)
      - JWT_SECRET (shared secret used by the identity provider to sign tokens)

    Optional:
      - PHONEPE_* (only needed once checkout / status polling is used)
      - SERIAL_* / SERIES_* (mug serial allocation tuning)
    """

    PROJECT_NAME: str = "Giveaway Storefront API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000"

    # PhonePe Checkout V2
    PHONEPE_MERCHANT_ID: str | None = None
    PHONEPE_CLIENT_ID: str | None = None
    PHONEPE_CLIENT_SECRET: str | None = None
    PHONEPE_CLIENT_VERSION: str = "1"
    PHONEPE_BASE_URL: str | None = None
    PHONEPE_WEBHOOK_USERNAME: str | None = None
    PHONEPE_WEBHOOK_PASSWORD: str | None = None
    PHONEPE_TIMEOUT_SECONDS: float = 15.0

    # Mug serial allocation
    #   scan    -> max(existing) + 1, guarded by a unique registry + retry
    #   counter -> per-series counter row incremented under a row lock
    SERIAL_ALLOCATION_STRATEGY: Literal["scan", "counter"] = "scan"
    SERIAL_ALLOCATION_MAX_RETRIES: int = 3

    # Series code resolution
    SERIES_FALLBACK_REGION_CODE: str = "TN"
    SERIES_DEFAULT_CODE: str = "TN01"
    SERIES_CATCH_ALL_REGION: str = "others"
    SERIES_CATCH_ALL_CODES: tuple[str, str] = ("TN01", "KL01")

    # Order pricing
    FREE_SHIPPING_THRESHOLD: float = 1000.0
    SHIPPING_CHARGE: float = 50.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
