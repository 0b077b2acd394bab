"""Process-wide settings read from the environment.

``.env`` files are honoured through python-dotenv.  :meth:`Settings.from_env`
is called once at startup; tests build their own instance or override single
fields with :func:`dataclasses.replace`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

#: Environment variable names accepted for the stat provider key, in
#: priority order.  Older deployments used the provider's own naming.
SPORTSDATA_KEY_VARS: Tuple[str, ...] = (
    "SPORTSDATA_API_KEY",
    "SPORTS_DATA_IO_KEY",
    "SPORTSDATAIO_KEY",
    "SDIO_KEY",
)

DEFAULT_SPORTSDATA_BASE_URL = "https://api.sportsdata.io/v3"
DEFAULT_ODDS_API_BASE_URL = "https://api.the-odds-api.com/v4"
DEFAULT_DATABASE_URL = "sqlite:///./propedge.db"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _int_env(name: str, default: int) -> int:
    return int(_float_env(name, float(default)))


def _first_env(names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Attributes mirror the environment variables of the same upper-case name.
    ``cache_dir`` of ``None`` keeps the cache memory-only.
    """

    sportsdata_api_key: Optional[str] = None
    sportsdata_base_url: str = DEFAULT_SPORTSDATA_BASE_URL
    odds_api_key: Optional[str] = None
    odds_api_base_url: str = DEFAULT_ODDS_API_BASE_URL
    provider_timeout_seconds: float = 10.0
    cache_ttl_seconds: float = 3600.0
    season_cache_ttl_seconds: float = 21600.0
    cache_dir: Optional[str] = None
    match_threshold: float = 0.7
    clv_neutral_band: float = 0.005
    calibration_factor: float = 1.0
    min_sample_size: int = 3
    analytics_url: Optional[str] = None
    database_url: str = DEFAULT_DATABASE_URL
    environment: str = "production"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            sportsdata_api_key=_first_env(SPORTSDATA_KEY_VARS),
            sportsdata_base_url=os.getenv("SPORTSDATA_BASE_URL", DEFAULT_SPORTSDATA_BASE_URL).rstrip("/"),
            odds_api_key=_first_env(("THE_ODDS_API_KEY",)),
            odds_api_base_url=os.getenv("ODDS_API_BASE_URL", DEFAULT_ODDS_API_BASE_URL).rstrip("/"),
            provider_timeout_seconds=_float_env("PROVIDER_TIMEOUT_SECONDS", 10.0),
            cache_ttl_seconds=_float_env("CACHE_TTL_SECONDS", 3600.0),
            season_cache_ttl_seconds=_float_env("SEASON_CACHE_TTL_SECONDS", 21600.0),
            cache_dir=_first_env(("CACHE_DIR",)),
            match_threshold=_float_env("MATCH_THRESHOLD", 0.7),
            clv_neutral_band=_float_env("CLV_NEUTRAL_BAND", 0.005),
            calibration_factor=_float_env("CALIBRATION_FACTOR", 1.0),
            min_sample_size=_int_env("MIN_SAMPLE_SIZE", 3),
            analytics_url=_first_env(("ANALYTICS_URL",)),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            environment=os.getenv("ENVIRONMENT", "production"),
        )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"
