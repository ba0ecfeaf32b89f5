import logging
import os
from pathlib import Path
from typing import Optional

# Settings helper to read environment configuration.

logger = logging.getLogger(__name__)


def _as_bool(val: Optional[str], default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, expected a number", name, raw)
        return default


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, expected an integer", name, raw)
        return default


class Settings:
    def __init__(self) -> None:
        self.GEODB_API_KEY: str = os.getenv("GEODB_API_KEY", "")
        self.GEODB_API_HOST: str = os.getenv("GEODB_API_HOST", "wft-geo-db.p.rapidapi.com")
        self.GEODB_BASE_URL: Optional[str] = os.getenv("GEODB_BASE_URL") or None

        self.NOMINATIM_BASE_URL: str = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
        self.NOMINATIM_USER_AGENT: str = os.getenv("NOMINATIM_USER_AGENT", "PlaceFinder/0.1")
        self.NOMINATIM_EMAIL: str = os.getenv("NOMINATIM_EMAIL", "")
        # Public instance policy: at most one request per second
        self.NOMINATIM_MIN_INTERVAL: float = max(_as_float("NOMINATIM_MIN_INTERVAL", 1.05), 1.05)

        gazetteer_path = os.getenv("PLACEFINDER_GAZETTEER_PATH")
        self.GAZETTEER_PATH: Optional[Path] = Path(gazetteer_path) if gazetteer_path else None
        self.PAGE_SIZE: int = max(_as_int("PLACEFINDER_PAGE_SIZE", 50), 1)
        self.DEBOUNCE_SECONDS: float = max(_as_float("PLACEFINDER_DEBOUNCE_SECONDS", 0.3), 0.0)
        self.OFFLINE: bool = _as_bool(os.getenv("PLACEFINDER_OFFLINE"), False)
        self.HTTP_TIMEOUT: float = _as_float("PLACEFINDER_HTTP_TIMEOUT", 10.0)
        self.LOG_LEVEL: str = os.getenv("PLACEFINDER_LOG_LEVEL", "INFO").upper()


settings = Settings()
