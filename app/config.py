"""Environment-driven settings for the calendar service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from app.database import database_url_from_env


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _as_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    echo_sql: bool = False
    pool_size: int = 10
    init_max_attempts: int = 10
    init_retry_seconds: float = 1.0
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ`` after loading ``.env``)."""

        if env is None:
            load_dotenv()
            env = os.environ

        raw_origins = env.get("ALLOWED_ORIGINS", "").strip()
        return cls(
            database_url=database_url_from_env(env),
            echo_sql=_as_bool(env.get("SQLALCHEMY_ECHO")),
            pool_size=_as_int(env.get("DB_POOL_SIZE"), 10),
            init_max_attempts=_as_int(env.get("DB_INIT_MAX_ATTEMPTS"), 10),
            init_retry_seconds=_as_float(env.get("DB_INIT_RETRY_SECONDS"), 1.0),
            host=env.get("HOST", "0.0.0.0"),
            port=_as_int(env.get("PORT"), 3000),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            allowed_origins=[o.strip() for o in raw_origins.split(",") if o.strip()],
        )


__all__ = ["Settings"]
