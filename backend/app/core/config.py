"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.REFRESH_INTERVAL_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Hazard Risk Engine"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── External providers ──
    WEATHER_API_BASE_URL: str = "https://api.weatherapi.com/v1"
    WEATHER_API_KEY: Optional[str] = None
    OPEN_METEO_ELEVATION_URL: str = "https://api.open-meteo.com/v1/elevation"
    USGS_EARTHQUAKE_URL: str = "https://earthquake.usgs.gov/fdsnws/event/1/query"
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # ── Seismic lookup ──
    SEISMIC_RADIUS_KM: float = 500.0
    SEISMIC_LOOKBACK_HOURS: int = 24
    SEISMIC_MIN_MAGNITUDE: float = 2.5
    SEISMIC_MAX_EVENTS: int = 20

    # ── Risk engine ──
    REFRESH_INTERVAL_SECONDS: float = 30.0
    SCORE_TIME_BUCKET_SECONDS: int = 3600  # hazard baseline stability window
    ALERT_BUCKET_PRECISION: int = 2  # decimal places (~1 km)
    ALERT_HISTORY_LIMIT: int = 500  # dismissed alerts beyond this are pruned

    # ── Default selection (New Delhi) ──
    DEFAULT_LATITUDE: float = 28.6139
    DEFAULT_LONGITUDE: float = 77.2090
    AUTO_START_MONITOR: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
