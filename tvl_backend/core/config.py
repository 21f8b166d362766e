from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

HOUR = 60 * 60
SIX_HOURS = 6 * HOUR
DAY = 24 * HOUR

class Settings(BaseSettings):
    PROJECT_NAME: str = "tvl-backend"
    DATABASE_URL: str
    DB_ECHO: bool = False

    # Project / token configuration
    REGISTRY_PATH: str = "config/registry.json"
    # Overrides the fingerprint computed from the registry
    AGGREGATED_CONFIG_HASH: Optional[str] = None

    # Feature Flags
    ERROR_ON_UNSYNCED_DETAILED_TVL: bool = False

    # Retention windows of the bounded resolutions
    HOURLY_WINDOW_SECONDS: int = 7 * DAY
    SIX_HOURLY_WINDOW_SECONDS: int = 90 * DAY
    # Lower bound of the daily series, earliest daily row when unset
    DAILY_GENESIS_TIMESTAMP: Optional[int] = None

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore"
    )

@lru_cache()
def get_settings():
    return Settings()
