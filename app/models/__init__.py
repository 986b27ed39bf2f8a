"""ORM models; importing this package registers every table with ``Base.metadata``."""

from app.models.event import Event  # noqa: F401

__all__ = ["Event"]
