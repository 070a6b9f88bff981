"""
ShopVault — Configuration
"""
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "shopvault"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ──────────────────────────────────────────────
    DATABASE_URL: str | None = None  # overrides the POSTGRES_* parts when set
    DB_ECHO: bool = False

    POSTGRES_HOST: str = "shopvault-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "shopvault"
    POSTGRES_USER: str = "shopvault"
    POSTGRES_PASSWORD: str = "shopvault"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── Redis Stock Cache ──────────────────────────────────────
    STOCK_CACHE_TTL_SECONDS: int = 10

    # ── Optimistic Locking Retry ──────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 5
    OPT_LOCK_BASE_DELAY_MS: int = 50      # base exponential backoff delay in ms
    OPT_LOCK_MAX_DELAY_MS: int = 1000     # max backoff cap in ms
    OPT_LOCK_JITTER_MS: int = 50          # random jitter range in ms

    # ── Business rules ────────────────────────────────────────
    DEFAULT_TAX_RATE: Decimal = Decimal("0.10")
    DEFAULT_SHIPPING_METHOD: str = "STANDARD"
    LOW_STOCK_THRESHOLD: int = 10
    DEFAULT_REORDER_POINT: int = 10
    DEFAULT_REORDER_QUANTITY: int = 50
    ORDER_NUMBER_PREFIX: str = "ORD"
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5

    # ── Policies ──────────────────────────────────────────────
    # True: a failed journal append rolls back the stock mutation it records.
    # False: the mutation stands and the failure is logged as a warning.
    AUDIT_FAIL_CLOSED: bool = True
    # Lets cancel_order() cancel SHIPPED orders. The status table itself
    # always allows SHIPPED -> CANCELLED through transition().
    ALLOW_CANCEL_AFTER_SHIPMENT: bool = False

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
