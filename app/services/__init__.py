"""Service layer: persistence for calendar events."""

from .events import EventStore, build_event

__all__ = ["EventStore", "build_event"]
