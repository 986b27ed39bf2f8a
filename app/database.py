# app/database.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Mapping, Optional

from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)


def _default_db_url() -> str:
    """
    Use a file-based SQLite DB at the project root when no Postgres settings are provided.
    File-based SQLite works reliably across async connections.
    """
    root = Path(__file__).resolve().parents[1]
    return f"sqlite+aiosqlite:///{(root / 'calendar.db').as_posix()}"


DEFAULT_SQLITE_URL: str = _default_db_url()

PG_DEFAULTS = {
    "PGHOST": "localhost",
    "PGPORT": "5432",
    "PGUSER": "postgres",
    "PGPASSWORD": "postgres",
    "PGDATABASE": "calendar_db",
}


def _translate_sslmode(value: str) -> Optional[str]:
    """Translate libpq sslmode values to asyncpg-compatible flags."""

    normalized = value.strip().lower()
    if normalized in {"require", "verify-ca", "verify-full", "true"}:
        return "true"
    if normalized in {"disable", "false"}:
        return "false"

    # "prefer" and "allow" have no asyncpg equivalent; leave the driver default.
    return None


def normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Ensure async-friendly drivers even if the URL omits them."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except ArgumentError:
        # Let create_async_engine report the unparseable URL.
        return raw_url

    driver = url.drivername.lower()
    if driver in {"postgresql", "postgres"} or (
        driver.startswith("postgresql+") and driver != "postgresql+asyncpg"
    ):
        url = url.set(drivername="postgresql+asyncpg")
    elif driver == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")

    if url.drivername == "postgresql+asyncpg":
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        if sslmode is not None:
            translated = _translate_sslmode(sslmode)
            if translated is not None:
                query["ssl"] = translated
        if query != dict(url.query):
            url = url.set(query=query)

    return url.render_as_string(hide_password=False)


def pg_env_database_url(env: Mapping[str, str]) -> Optional[str]:
    """Construct a Postgres URL from discrete PG* variables, filling gaps with local defaults."""

    if not any(env.get(name) for name in ("PGHOST", "PGDATABASE", "PGUSER")):
        return None

    def _get(name: str) -> str:
        return env.get(name) or PG_DEFAULTS[name]

    query: dict[str, str] = {}
    sslmode = env.get("PGSSLMODE") or env.get("PGSSL")
    if sslmode:
        translated = _translate_sslmode(sslmode)
        if translated is not None:
            query["ssl"] = translated

    try:
        port_value = int(_get("PGPORT"))
    except ValueError:
        port_value = None

    return URL.create(
        drivername="postgresql+asyncpg",
        username=_get("PGUSER"),
        password=_get("PGPASSWORD"),
        host=_get("PGHOST"),
        port=port_value,
        database=_get("PGDATABASE"),
        query=query,
    ).render_as_string(hide_password=False)


def database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    """Resolve the preferred database URL from environment variables."""

    for raw in (env.get("DATABASE_URL"), env.get("POSTGRES_URL")):
        normalized = normalize_database_url(raw)
        if normalized:
            return normalized

    return pg_env_database_url(env)


def redact_url(database_url: str) -> str:
    """Render ``database_url`` with the password masked, for logs."""

    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable database url>"


Base = declarative_base()


class Database:
    """Owns one async engine (and its connection pool) plus the session factory bound to it.

    Constructed explicitly and handed to the storage layer, so tests can build
    isolated instances against throwaway SQLite files.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        echo: bool = False,
        pool_size: Optional[int] = None,
    ) -> None:
        self.url = database_url or DEFAULT_SQLITE_URL
        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if pool_size and not self.url.startswith("sqlite"):
            engine_kwargs["pool_size"] = pool_size
        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        self.sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Check a connection out of the pool for the duration of the block."""

        async with self.sessionmaker() as session:
            yield session

    async def init_models(self) -> None:
        """Create every mapped table and index that does not exist yet."""

        # Ensure SQLAlchemy knows about every mapped class
        import app.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Connection pool for %s closed.", redact_url(self.url))


__all__ = [
    "Base",
    "Database",
    "DEFAULT_SQLITE_URL",
    "database_url_from_env",
    "normalize_database_url",
    "pg_env_database_url",
    "redact_url",
]
