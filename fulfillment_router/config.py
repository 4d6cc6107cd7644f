from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./fulfillment_router.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Fulfillment Router"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Redis Cache Settings
    REDIS_URL: Optional[str] = None  # e.g., "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    ROUTING_CONFIG_CACHE_TTL: int = 3600  # 1 hour for per-org routing config

    # Routing defaults (used when an organization has no routing config)
    ROUTING_DEFAULT_STRATEGY: str = "closest_full_stock"
    ROUTING_ALLOW_SPLIT: bool = False
    ROUTING_ALLOW_BACKORDER: bool = False
    ROUTING_MAX_SHIPPING_COST: float = 30.0  # Cost at which shipping_cost scores 0
    ROUTING_MAX_SPLIT_SHIPMENTS: Optional[int] = None  # None = no cap on split shipments

    # Delivery time scoring (days)
    DELIVERY_TARGET_DAYS_STANDARD: int = 2
    DELIVERY_MAX_DAYS_STANDARD: int = 7
    DELIVERY_TARGET_DAYS_EXPRESS: int = 1
    DELIVERY_MAX_DAYS_EXPRESS: int = 3

    # Distance estimator
    DISTANCE_CACHE_SIZE: int = 10000  # Max memoized (warehouse, destination) pairs

    # Batch routing
    ROUTING_BATCH_CONCURRENCY: int = 5  # Max orders routed concurrently

    @field_validator('ROUTING_DEFAULT_STRATEGY', mode='before')
    @classmethod
    def normalize_strategy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
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
