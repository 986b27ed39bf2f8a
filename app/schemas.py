# app/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas for events, plus the parse/serialize seams
# the routes call.
# ------------------------------------------------------------
from datetime import datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from app.errors import InvalidArgument, InvalidBody, MissingField
from app.models.event import DEFAULT_STATUS
from app.utils import format_timestamp, normalize_timestamp, to_utc

REQUIRED_CREATE_FIELDS = ("title", "start", "end")


# ============================================================
# Field-level helpers
# ============================================================

def parse_timestamp(raw: Any, field_name: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime with millisecond precision.

    A trailing ``Z`` is accepted, values without an offset are read as UTC and
    a bare date means midnight UTC.
    """
    if isinstance(raw, datetime):
        return normalize_timestamp(raw)
    message = f"Invalid {field_name}; expected ISO 8601 string."
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidArgument(message)

    text = raw.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        return normalize_timestamp(datetime.fromisoformat(text))
    except (ValueError, OverflowError):
        raise InvalidArgument(message) from None


def validate_order(start: datetime, end: datetime) -> None:
    if to_utc(end) <= to_utc(start):
        raise InvalidArgument("'end' must be after 'start'.")


def _as_invalid_argument(exc: ValidationError) -> InvalidArgument:
    error = exc.errors()[0]
    cause = (error.get("ctx") or {}).get("error")
    if cause is not None:
        return InvalidArgument(str(cause))
    field = ".".join(str(part) for part in error.get("loc", ())) or "body"
    return InvalidArgument(f"Invalid {field}: {error.get('msg', 'invalid value')}")


# ============================================================
# Inputs
# ============================================================

class _EventInput(BaseModel):
    """Validators shared by the create and patch payloads."""

    model_config = ConfigDict(extra="ignore")

    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def _check_title(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Invalid title; expected a non-empty string.")
        return value

    @field_validator("description", "location", mode="before", check_fields=False)
    @classmethod
    def _check_optional_text(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        if value is not None and not isinstance(value, str):
            raise ValueError(f"Invalid {info.field_name}; expected a string or null.")
        return value

    @field_validator("attendees", mode="before", check_fields=False)
    @classmethod
    def _coerce_attendees(cls, value: Any) -> list[str]:
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return list(value)
        return []

    @field_validator("start", "end", mode="before", check_fields=False)
    @classmethod
    def _parse_times(cls, value: Any, info: ValidationInfo) -> datetime:
        try:
            return parse_timestamp(value, info.field_name)
        except InvalidArgument as exc:
            raise ValueError(exc.message) from None


class EventCreate(_EventInput):
    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)
    status: str = DEFAULT_STATUS

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_STATUS
        if not isinstance(value, str):
            raise ValueError("Invalid status; expected a string.")
        return value


class EventPatch(_EventInput):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: Optional[list[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    status: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Invalid status; expected a string.")
        return value

    def changes(self) -> dict[str, Any]:
        """Only the keys the client actually sent; explicit nulls included."""
        return self.model_dump(include=self.model_fields_set)


def parse_create_input(body: Any) -> EventCreate:
    if not isinstance(body, dict):
        raise InvalidBody()
    if any(body.get(name) in (None, "") for name in REQUIRED_CREATE_FIELDS):
        raise MissingField()
    try:
        fields = EventCreate.model_validate(body)
    except ValidationError as exc:
        raise _as_invalid_argument(exc) from None
    validate_order(fields.start, fields.end)
    return fields


def parse_patch_input(existing: Any, body: Any) -> EventPatch:
    """Validate ``body`` as a partial update of ``existing``.

    The start/end ordering is checked against the merged values, so moving
    only ``start`` past the stored ``end`` is rejected too.
    """
    if not isinstance(body, dict):
        raise InvalidBody()
    try:
        patch = EventPatch.model_validate(body)
    except ValidationError as exc:
        raise _as_invalid_argument(exc) from None

    supplied = patch.model_fields_set
    start = patch.start if "start" in supplied else existing.start
    end = patch.end if "end" in supplied else existing.end
    validate_order(start, end)
    return patch


# ============================================================
# Output
# ============================================================

class EventRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: list[str] = Field(default_factory=list)
    start: str
    end: str
    status: str = DEFAULT_STATUS
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


def serialize(row: Any) -> EventRead:
    return EventRead(
        id=str(row.id),
        title=row.title,
        description=row.description,
        location=row.location,
        attendees=list(row.attendees or []),
        start=format_timestamp(row.start),
        end=format_timestamp(row.end),
        status=row.status or DEFAULT_STATUS,
        created_at=format_timestamp(row.created_at),
        updated_at=format_timestamp(row.updated_at),
    )


class DeleteResult(BaseModel):
    success: bool


__all__ = [
    "DeleteResult",
    "EventCreate",
    "EventPatch",
    "EventRead",
    "parse_create_input",
    "parse_patch_input",
    "parse_timestamp",
    "serialize",
    "validate_order",
]
