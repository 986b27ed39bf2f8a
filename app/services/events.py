from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from app.database import Database
from app.errors import Conflict
from app.models.event import Event
from app.schemas import EventCreate, validate_order
from app.utils import PRECISION, normalize_timestamp, to_utc, utc_now

logger = logging.getLogger(__name__)

# Columns a partial update may touch. Anything else in a patch is ignored.
PATCHABLE_FIELDS = ("title", "description", "location", "attendees", "start", "end", "status")


def _parse_event_id(event_id: Any) -> Optional[uuid.UUID]:
    if isinstance(event_id, uuid.UUID):
        return event_id
    try:
        return uuid.UUID(str(event_id))
    except ValueError:
        return None


def build_event(session_id: str, fields: EventCreate, *, now: Optional[datetime] = None) -> Event:
    """Assemble a new, fully populated Event with a server-generated id."""

    now = now or utc_now()
    return Event(
        id=uuid.uuid4(),
        session_id=session_id,
        title=fields.title,
        description=fields.description,
        location=fields.location,
        attendees=list(fields.attendees),
        start=fields.start,
        end=fields.end,
        status=fields.status,
        created_at=now,
        updated_at=now,
    )


class EventStore:
    """Persistence for events, addressed by ``(session_id, id)``.

    Each call checks a connection out of the pool for exactly one statement
    (or one short transaction for updates) and returns it afterwards.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def ensure_schema(self) -> None:
        await self.database.init_models()

    async def create(self, event: Event) -> Event:
        async with self.database.session() as session:
            session.add(event)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise Conflict(f"Event {event.id} already exists") from exc
        logger.info("Created event %s in session %s", event.id, event.session_id)
        return event

    async def list_events(
        self,
        session_id: str,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[Event]:
        """Events of a session ordered by start.

        The range is an overlap test: an event matches when it ends at or after
        ``range_start`` and starts at or before ``range_end``.
        """
        stmt = select(Event).where(Event.session_id == session_id)
        if range_start is not None:
            stmt = stmt.where(Event.end >= normalize_timestamp(range_start))
        if range_end is not None:
            stmt = stmt.where(Event.start <= normalize_timestamp(range_end))
        stmt = stmt.order_by(Event.start.asc())

        async with self.database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def get(self, session_id: str, event_id: Any) -> Optional[Event]:
        event_uuid = _parse_event_id(event_id)
        if event_uuid is None:
            return None
        async with self.database.session() as session:
            return (
                await session.execute(
                    select(Event).where(Event.session_id == session_id, Event.id == event_uuid)
                )
            ).scalar_one_or_none()

    async def update(
        self,
        session_id: str,
        event_id: Any,
        patch: Mapping[str, Any],
        *,
        expected_updated_at: Optional[datetime] = None,
    ) -> Optional[Event]:
        """Apply ``patch`` and return the updated event, or ``None`` when nothing matched.

        ``updated_at`` is always refreshed. When ``expected_updated_at`` is given
        and no longer matches the stored value the update is refused.
        """
        event_uuid = _parse_event_id(event_id)
        if event_uuid is None:
            return None

        values: dict[str, Any] = {}
        for name in PATCHABLE_FIELDS:
            if name in patch:
                values[name] = patch[name]

        match = (Event.session_id == session_id, Event.id == event_uuid)
        async with self.database.session() as session:
            async with session.begin():
                current_stmt = select(Event.updated_at, Event.start, Event.end).where(*match)
                if self.database.engine.dialect.name == "postgresql":
                    current_stmt = current_stmt.with_for_update()
                row = (await session.execute(current_stmt)).one_or_none()
                if row is None:
                    return None
                current = to_utc(row.updated_at)
                if expected_updated_at is not None and normalize_timestamp(expected_updated_at) != current:
                    raise Conflict("Event was modified by another request")

                # Re-check ordering against the locked row, not the caller's earlier read.
                validate_order(values.get("start", row.start), values.get("end", row.end))

                # Keep updated_at strictly increasing even within one millisecond.
                values["updated_at"] = max(utc_now(), current + PRECISION)
                stmt = (
                    update(Event)
                    .where(*match)
                    .values(**values)
                    .returning(Event)
                    .execution_options(synchronize_session=False)
                )
                updated = (await session.execute(stmt)).scalar_one_or_none()

        if updated is not None:
            logger.info(
                "Updated event %s in session %s (%s)",
                event_uuid,
                session_id,
                ", ".join(sorted(values)),
            )
        return updated

    async def delete(self, session_id: str, event_id: Any) -> bool:
        event_uuid = _parse_event_id(event_id)
        if event_uuid is None:
            return False
        async with self.database.session() as session:
            result = await session.execute(
                delete(Event).where(Event.session_id == session_id, Event.id == event_uuid)
            )
            await session.commit()
        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("Deleted event %s from session %s", event_uuid, session_id)
        return removed

    async def list_sessions(self) -> list[str]:
        stmt = select(Event.session_id).distinct().order_by(Event.session_id.asc())
        async with self.database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def shutdown(self) -> None:
        await self.database.dispose()


__all__ = ["EventStore", "PATCHABLE_FIELDS", "build_event"]
