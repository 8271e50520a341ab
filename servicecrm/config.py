from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
from zoneinfo import ZoneInfo
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./servicecrm.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # App Settings
    APP_NAME: str = "Appliance Service CRM"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Calendar used for month / fiscal quarter bucketing and month arithmetic
    BUSINESS_TIMEZONE: str = "Asia/Kolkata"

    # Derivation policy
    WARRANTY_PERIOD_MONTHS: int = 12
    AMC_RENEWAL_WINDOW_DAYS: int = 30  # Trailing window before contract end
    DEFAULT_SERVICE_INTERVAL_MONTHS: int = 3

    # Dashboard horizons
    UPCOMING_REMINDER_DAYS: int = 7
    UPCOMING_SERVICE_DAYS: int = 30
    CUSTOMER_REVENUE_WINDOW_MONTHS: int = 12

    # Cap on rows accepted by a single import request
    IMPORT_MAX_ROWS: Optional[int] = 5000

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('BUSINESS_TIMEZONE')
    @classmethod
    def check_timezone(cls, v):
        ZoneInfo(v)  # raises for unknown zones
        return v

    @property
    def business_tz(self) -> ZoneInfo:
        return ZoneInfo(self.BUSINESS_TIMEZONE)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
