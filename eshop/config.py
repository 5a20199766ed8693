from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "E-shop Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Proxies whose X-Forwarded-For header is trusted for the client address
    TRUSTED_PROXIES: list[str] = []

    # Redis - shared rate limit counters across instances (in-memory if unset)
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"

    # Rate Limiting (fixed window, per client)
    RATE_LIMIT_ENABLED: bool = True
    ORDER_RATE_LIMIT: int = 5  # Orders per window
    ORDER_RATE_LIMIT_WINDOW_MS: int = 60_000
    CUSTOMER_RATE_LIMIT: int = 3  # New customers per window
    CUSTOMER_RATE_LIMIT_WINDOW_MS: int = 300_000
    PRODUCT_RATE_LIMIT: int = 20  # Product operations per window
    PRODUCT_RATE_LIMIT_WINDOW_MS: int = 60_000
    ADMIN_RATE_LIMIT: int = 50  # Admin operations per window
    ADMIN_RATE_LIMIT_WINDOW_MS: int = 60_000

    # Duplicate order protection (orders per email in the trailing window)
    RECENT_ORDER_LIMIT: int = 3
    RECENT_ORDER_WINDOW_MINUTES: int = 60

    # Storefront
    PICKUP_ADDRESS: str = "Ľudové námestie 503/34, 831 03 Bratislava, Slovakia"
    PICKUP_CITY: str = "Bratislava"
    PICKUP_ZIP_CODE: str = "831 03"
    DEFAULT_COUNTRY: str = "Slovensko"

    @field_validator('CORS_ORIGINS', 'TRUSTED_PROXIES', mode='before')
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(',') if item.strip()]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
