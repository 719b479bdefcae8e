"""Application settings.

Settings are read from environment variables once per process and exposed
through `get_settings()`. Defaults match the documented scoring weights and
lookback windows of the meal plan engine.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    return float(value) if value not in (None, "") else default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    return int(value) if value not in (None, "") else default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration for the service and the generation engine."""

    write_database_url: str = "sqlite:///meal_planner.db"
    read_database_url: Optional[str] = None

    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # Soft score weights
    w_affinity: float = Field(0.4, ge=0)
    w_completion: float = Field(0.4, ge=0)
    w_variety: float = Field(0.6, ge=0)
    w_nutrition: float = Field(0.0, ge=0)
    tie_epsilon: float = Field(0.01, ge=0)

    variety_lookback_days: int = Field(14, ge=0)
    history_lookback_days: int = Field(180, ge=1)

    treat_may_contain_as_contains: bool = True

    @property
    def effective_read_database_url(self) -> str:
        return self.read_database_url or self.write_database_url


def load_settings() -> Settings:
    """Build a `Settings` instance from the current environment."""
    return Settings(
        write_database_url=os.getenv("WRITE_DATABASE_URL", "sqlite:///meal_planner.db"),
        read_database_url=os.getenv("READ_DATABASE_URL") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR") or None,
        w_affinity=_env_float("SCORER_W_AFFINITY", 0.4),
        w_completion=_env_float("SCORER_W_COMPLETION", 0.4),
        w_variety=_env_float("SCORER_W_VARIETY", 0.6),
        w_nutrition=_env_float("SCORER_W_NUTRITION", 0.0),
        tie_epsilon=_env_float("SCORER_TIE_EPSILON", 0.01),
        variety_lookback_days=_env_int("VARIETY_LOOKBACK_DAYS", 14),
        history_lookback_days=_env_int("HISTORY_LOOKBACK_DAYS", 180),
        treat_may_contain_as_contains=_env_bool("TREAT_MAY_CONTAIN_AS_CONTAINS", True),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return load_settings()
