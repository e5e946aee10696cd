import os
from decimal import Decimal

from .env import ensure_loaded, env_bool, env_float, env_list

ensure_loaded()


class Settings:
    ENV: str = os.getenv("ENV", "dev")
    DEV_MODE: bool = ENV.lower() == "dev"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    # Reference service
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8080"))
    DB_URL: str = os.getenv("DB_URL", "sqlite:///./gocomet_rides.db")
    AUTO_CREATE_SCHEMA: bool = env_bool("AUTO_CREATE_SCHEMA", default=True)
    ALLOWED_ORIGINS: list[str] = env_list(
        "ALLOWED_ORIGINS",
        default=["*"] if DEV_MODE else [],
    )
    # Fare policy (server-owned)
    BASE_FARE: Decimal = Decimal(os.getenv("BASE_FARE", "40.00"))
    PER_KM_FARE: Decimal = Decimal(os.getenv("PER_KM_FARE", "12.00"))
    MIN_FARE: Decimal = Decimal(os.getenv("MIN_FARE", "50.00"))
    # Client side
    RIDES_BASE_URL: str = os.getenv("RIDES_BASE_URL", "http://localhost:8080")
    HTTP_TIMEOUT_SECS: float = env_float("HTTP_TIMEOUT_SECS", default=15.0)
    # Geolocation capture
    GEO_TIMEOUT_SECS: float = env_float("GEO_TIMEOUT_SECS", default=10.0)
    GEO_MAX_FIX_AGE_SECS: float = env_float("GEO_MAX_FIX_AGE_SECS", default=0.0)
    GEO_HIGH_ACCURACY: bool = env_bool("GEO_HIGH_ACCURACY", default=True)


settings = Settings()

if not settings.DEV_MODE and "*" in settings.ALLOWED_ORIGINS:
    raise RuntimeError("ALLOWED_ORIGINS must list explicit origins when ENV!=dev")
