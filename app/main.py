import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DBAPIError, OperationalError

from app.config import Settings
from app.database import Database, redact_url
from app.errors import register_error_handlers
from app.routes.events import router as events_router
from app.services.events import EventStore

logger = logging.getLogger("calendar")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def init_schema_with_retry(store: EventStore, settings: Settings) -> None:
    """Create the schema, retrying while the database is still coming up."""

    max_attempts = max(settings.init_max_attempts, 1)
    attempt = 0
    while True:
        attempt += 1
        try:
            await store.ensure_schema()
        except (OperationalError, DBAPIError, OSError) as exc:
            if attempt >= max_attempts:
                logger.exception("Database not reachable after %s attempts", attempt)
                raise

            wait_time = settings.init_retry_seconds * min(2 ** (attempt - 1), 8)
            logger.warning(
                "Database not ready (attempt %s/%s): %s. Retrying in %.1f seconds...",
                attempt,
                max_attempts,
                exc,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.info(
                "Calendar API started and events table ensured (using %s).",
                redact_url(store.database.url),
            )
            return


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Build the API around an explicitly constructed database handle."""

    settings = settings or Settings.from_env()
    database = database or Database(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
    )
    store = EventStore(database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_schema_with_retry(store, settings)
        yield
        logger.info("Shutting down; draining connection pool.")
        await store.shutdown()

    app = FastAPI(
        title="Calendar API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        # Unknown paths, trailing-slash variants included, are a plain 404.
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.store = store

    # ----- CORS (enabled only if ALLOWED_ORIGINS is set) -----
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Accept", "Origin", "If-Match"],
            max_age=86400,
        )

    register_error_handlers(app)

    # ----- Health check endpoint -----
    @app.get("/health", tags=["meta"])
    async def health():
        return {"ok": True}

    app.include_router(events_router)
    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn until SIGINT/SIGTERM."""

    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("REST server listening on :%s", settings.port)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
