from __future__ import annotations

import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, Text, Uuid

from app.database import Base

DEFAULT_STATUS = "confirmed"


class Event(Base):
    __tablename__ = "events"

    # Not enforced by the column; kept for documentation and clients.
    KNOWN_STATUSES = {"confirmed", "tentative", "cancelled"}

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    attendees = Column(JSON, nullable=False, default=list)
    start = Column(DateTime(timezone=True), nullable=False)
    end = Column(DateTime(timezone=True), nullable=False)
    status = Column(Text, nullable=False, default=DEFAULT_STATUS)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_events_session_id", "session_id"),
        Index("ix_events_session_start", "session_id", "start"),
        CheckConstraint('"end" > start', name="ck_events_end_after_start"),
    )

    def __repr__(self) -> str:
        return f"<Event {self.id} session={self.session_id!r} title={self.title!r}>"
