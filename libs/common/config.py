from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Africa/Lagos"
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Supabase (identity provider)
    # Placeholder values keep local/test runs working without real credentials.
    SUPABASE_URL: str = "http://localhost"
    SUPABASE_JWT_SECRET: str = "test-jwt-secret"

    # Redis (arq worker)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Gateway
    LISTINGS_SERVICE_URL: str = "http://localhost:8001"
    ORDERS_SERVICE_URL: str = "http://localhost:8002"
    WALLET_SERVICE_URL: str = "http://localhost:8003"
    COMMUNICATIONS_SERVICE_URL: str = "http://localhost:8004"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    CHECKOUT_RATE_LIMIT: str = "10/minute"

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_API_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT_SECONDS: float = 30.0

    # Pricing
    PRICE_FLOOR_NGN: Decimal = Decimal("0")

    # Loyalty
    POINTS_PER_NAIRA_DISCOUNT: int = 10  # 10 points = NGN 1 off
    NAIRA_PER_POINT_EARNED: int = 100  # 1 point per NGN 100 paid
    REVIEW_POINTS: int = 25

    # Orders
    PENDING_PAYMENT_TTL_MINUTES: int = 30
    REFUND_TO_WALLET: bool = True

    # Wallet
    WALLET_TOPUP_MIN_NGN: Decimal = Decimal("100")
    WALLET_TOPUP_MAX_NGN: Decimal = Decimal("100000")

    # Listings
    EXPIRING_SOON_HOURS: int = 4

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def paystack_enabled(self) -> bool:
        return bool(self.PAYSTACK_SECRET_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
