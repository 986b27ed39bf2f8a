# app/routes/events.py

import json
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Header, Request, status

from app.errors import InvalidBody, NotFound
from app.schemas import (
    DeleteResult,
    EventRead,
    parse_create_input,
    parse_patch_input,
    parse_timestamp,
    serialize,
)
from app.services.events import EventStore, build_event

# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def get_store(request: Request) -> EventStore:
    return request.app.state.store


async def read_json(request: Request) -> Any:
    """Decode the request body; an empty body counts as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        raise InvalidBody() from None


def _optional_timestamp(raw: Optional[str], field_name: str):
    return parse_timestamp(raw, field_name) if raw else None

# -------------------------------------------------------------------
# Router
# -------------------------------------------------------------------

router = APIRouter(tags=["Events"])

# Sessions -----------------------------------------------------------

@router.get("/sessions", response_model=List[str])
async def list_sessions(store: EventStore = Depends(get_store)):
    return await store.list_sessions()

# Create event -------------------------------------------------------

@router.post(
    "/sessions/{session_id}/events",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_event(
    session_id: str,
    request: Request,
    store: EventStore = Depends(get_store),
):
    fields = parse_create_input(await read_json(request))
    event = await store.create(build_event(session_id, fields))
    return serialize(event)

# List events (optional overlap window) ------------------------------

@router.get("/sessions/{session_id}/events", response_model=List[EventRead])
async def list_events(
    session_id: str,
    range_start: Optional[str] = None,
    range_end: Optional[str] = None,
    store: EventStore = Depends(get_store),
):
    events = await store.list_events(
        session_id,
        _optional_timestamp(range_start, "range_start"),
        _optional_timestamp(range_end, "range_end"),
    )
    return [serialize(event) for event in events]

# Single event -------------------------------------------------------

@router.get("/sessions/{session_id}/events/{event_id}", response_model=EventRead)
async def get_event(
    session_id: str,
    event_id: str,
    store: EventStore = Depends(get_store),
):
    event = await store.get(session_id, event_id)
    if event is None:
        raise NotFound("Event not found")
    return serialize(event)


@router.patch("/sessions/{session_id}/events/{event_id}", response_model=EventRead)
async def update_event(
    session_id: str,
    event_id: str,
    request: Request,
    if_match: Optional[str] = Header(default=None),
    store: EventStore = Depends(get_store),
):
    body = await read_json(request)
    existing = await store.get(session_id, event_id)
    if existing is None:
        raise NotFound("Event not found")

    patch = parse_patch_input(existing, body)
    # If-Match carries the updatedAt value the client last saw; "*" matches anything.
    tag = (if_match or "").strip().strip('"')
    expected = _optional_timestamp(tag if tag != "*" else None, "If-Match")
    updated = await store.update(
        session_id,
        event_id,
        patch.changes(),
        expected_updated_at=expected,
    )
    if updated is None:
        # Deleted between the read and the write.
        raise NotFound("Event not found")
    return serialize(updated)


@router.delete("/sessions/{session_id}/events/{event_id}", response_model=DeleteResult)
async def delete_event(
    session_id: str,
    event_id: str,
    store: EventStore = Depends(get_store),
):
    return DeleteResult(success=await store.delete(session_id, event_id))
