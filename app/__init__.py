"""Session-scoped calendar API: FastAPI routes over an async SQLAlchemy event store."""

from .database import Base, Database  # noqa: F401

__all__ = ["Base", "Database"]
