# ⚙️ Application Settings
# Environment driven configuration, loaded once from .env and the process env

import os
import logging
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Invalid value for {name}={raw!r}, using default {default}")
        return default


class Settings:
    """
    Runtime configuration for the Rally Watchdog backend.

    Every value can be overridden through keyword arguments, which is how the
    tests build isolated settings without touching the environment.
    """

    def __init__(
        self,
        mongo_uri: Optional[str] = None,
        mongo_db_name: Optional[str] = None,
        secret_key: Optional[str] = None,
        jwt_algorithm: Optional[str] = None,
        notificationapi_client_id: Optional[str] = None,
        notificationapi_client_secret: Optional[str] = None,
        notificationapi_base_url: Optional[str] = None,
        notifier_timeout_seconds: Optional[float] = None,
        report_number_prefix: Optional[str] = None,
        cors_origins: Optional[List[str]] = None,
        log_level: Optional[str] = None,
    ):
        # Priority: MONGO_URI > MONGODB_URL > local default
        self.mongo_uri = mongo_uri or (
            os.getenv("MONGO_URI")
            or os.getenv("MONGODB_URL")
            or "mongodb://localhost:27017/rally_watchdog"
        )
        self.mongo_db_name = mongo_db_name or os.getenv("MONGODB_NAME", "rally_watchdog")

        self.secret_key = secret_key or os.getenv(
            "SECRET_KEY", "change-me-rally-watchdog-secret"
        )
        self.jwt_algorithm = jwt_algorithm or os.getenv("JWT_ALGORITHM", "HS256")

        # Empty credentials mean SMS delivery is skipped, never a crash
        self.notificationapi_client_id = (
            notificationapi_client_id
            if notificationapi_client_id is not None
            else os.getenv("NOTIFICATIONAPI_CLIENT_ID", "")
        )
        self.notificationapi_client_secret = (
            notificationapi_client_secret
            if notificationapi_client_secret is not None
            else os.getenv("NOTIFICATIONAPI_CLIENT_SECRET", "")
        )
        self.notificationapi_base_url = notificationapi_base_url or os.getenv(
            "NOTIFICATIONAPI_BASE_URL", "https://api.notificationapi.com"
        )
        self.notifier_timeout_seconds = (
            notifier_timeout_seconds
            if notifier_timeout_seconds is not None
            else _get_float("NOTIFIER_TIMEOUT_SECONDS", 10.0)
        )

        self.report_number_prefix = report_number_prefix or os.getenv(
            "REPORT_NUMBER_PREFIX", "RW"
        )

        if cors_origins is None:
            raw_origins = os.getenv("CORS_ORIGINS", "*")
            cors_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
        self.cors_origins = cors_origins or ["*"]

        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    @property
    def notifier_configured(self) -> bool:
        return bool(self.notificationapi_client_id and self.notificationapi_client_secret)


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()
