"""Runtime configuration read from the environment"""
import os
import secrets
from typing import Optional

import structlog
from dotenv import load_dotenv

load_dotenv()

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Settings for one process; build via get_settings()"""

    def __init__(self):
        env_secret_key = os.environ.get("SECRET_KEY")
        if not env_secret_key:
            logger.warning("secret_key_not_set", detail="tokens are invalidated on restart")
        self.SECRET_KEY: str = env_secret_key or secrets.token_hex(32)
        self.ALGORITHM: str = os.environ.get("JWT_ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

        # Cache (seconds)
        self.REDIS_URL: Optional[str] = os.environ.get("REDIS_URL") or None
        self.CACHE_TTL_ROOM: int = int(os.environ.get("CACHE_TTL_ROOM", "300"))
        self.CACHE_TTL_SEARCH: int = int(os.environ.get("CACHE_TTL_SEARCH", "120"))
        self.CACHE_TTL_AVAILABILITY: int = int(os.environ.get("CACHE_TTL_AVAILABILITY", "60"))

        # Notifications
        self.NOTIFICATION_QUEUE_SIZE: int = int(os.environ.get("NOTIFICATION_QUEUE_SIZE", "1000"))

        # Payments
        self.PAYMENT_SETTLEMENT_DELAY_SECONDS: float = float(
            os.environ.get("PAYMENT_SETTLEMENT_DELAY_SECONDS", "0")
        )
        self.FRONTEND_URL: str = os.environ.get("FRONTEND_URL", "http://localhost:5173")

        # Logging
        self.LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
        self.LOG_JSON: bool = _env_bool("LOG_JSON", False)

        # Pagination
        self.DEFAULT_PAGE_SIZE: int = int(os.environ.get("DEFAULT_PAGE_SIZE", "12"))
        self.MAX_PAGE_SIZE: int = int(os.environ.get("MAX_PAGE_SIZE", "100"))


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
