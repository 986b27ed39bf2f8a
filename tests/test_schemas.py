import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.errors import InvalidArgument, InvalidBody, MissingField
from app.schemas import (
    parse_create_input,
    parse_patch_input,
    parse_timestamp,
    serialize,
    validate_order,
)

UTC = timezone.utc


def _existing(**overrides):
    values = dict(
        id=uuid.uuid4(),
        session_id="abc",
        title="Call",
        description="Status sync",
        location=None,
        attendees=["ann@example.com"],
        start=datetime(2025, 1, 10, 9, 0, tzinfo=UTC),
        end=datetime(2025, 1, 10, 9, 30, tzinfo=UTC),
        status="confirmed",
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
        updated_at=datetime(2025, 1, 1, tzinfo=UTC),
    )
    values.update(overrides)
    return SimpleNamespace(**values)


# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-01-10T09:00:00Z", datetime(2025, 1, 10, 9, 0, tzinfo=UTC)),
        ("2025-01-10T10:00:00+01:00", datetime(2025, 1, 10, 9, 0, tzinfo=UTC)),
        ("2025-01-10T09:00:00", datetime(2025, 1, 10, 9, 0, tzinfo=UTC)),
        ("2025-01-10", datetime(2025, 1, 10, tzinfo=UTC)),
        ("2025-01-10T09:00:00.123456Z", datetime(2025, 1, 10, 9, 0, 0, 123000, tzinfo=UTC)),
    ],
)
def test_parse_timestamp_accepts_iso_8601(raw, expected):
    parsed = parse_timestamp(raw, "start")
    assert parsed == expected
    assert parsed.tzinfo is not None


@pytest.mark.parametrize("raw", ["tomorrow", "", "   ", None, 1736499600, "10/01/2025 09:00"])
def test_parse_timestamp_rejects_garbage_and_names_field(raw):
    with pytest.raises(InvalidArgument) as excinfo:
        parse_timestamp(raw, "range_end")
    assert "range_end" in excinfo.value.message


def test_validate_order_is_strict():
    start = datetime(2025, 1, 10, 9, 0, tzinfo=UTC)
    validate_order(start, start + timedelta(milliseconds=1))
    with pytest.raises(InvalidArgument):
        validate_order(start, start)
    with pytest.raises(InvalidArgument):
        validate_order(start, start - timedelta(minutes=5))


# ------------------------------------------------------------------
# Create
# ------------------------------------------------------------------

def test_create_input_applies_defaults():
    fields = parse_create_input(
        {"title": "Call", "start": "2025-01-10T09:00:00Z", "end": "2025-01-10T09:30:00Z"}
    )
    assert fields.title == "Call"
    assert fields.description is None
    assert fields.location is None
    assert fields.attendees == []
    assert fields.status == "confirmed"


def test_create_input_ignores_client_supplied_id():
    fields = parse_create_input(
        {
            "id": "not-yours",
            "title": "Call",
            "start": "2025-01-10T09:00:00Z",
            "end": "2025-01-10T09:30:00Z",
        }
    )
    assert not hasattr(fields, "id")


@pytest.mark.parametrize(
    "body",
    [
        {"start": "2025-01-10T09:00:00Z", "end": "2025-01-10T09:30:00Z"},
        {"title": "", "start": "2025-01-10T09:00:00Z", "end": "2025-01-10T09:30:00Z"},
        {"title": "Call", "end": "2025-01-10T09:30:00Z"},
        {"title": "Call", "start": "2025-01-10T09:00:00Z", "end": None},
        {},
    ],
)
def test_create_input_requires_title_start_end(body):
    with pytest.raises(MissingField) as excinfo:
        parse_create_input(body)
    assert excinfo.value.message == "Missing required fields: title, start, end"


def test_create_input_rejects_non_object_body():
    with pytest.raises(InvalidBody):
        parse_create_input(["title", "Call"])


def test_create_input_rejects_bad_timestamp_with_field_name():
    with pytest.raises(InvalidArgument) as excinfo:
        parse_create_input({"title": "Call", "start": "soon", "end": "2025-01-10T09:30:00Z"})
    assert excinfo.value.message == "Invalid start; expected ISO 8601 string."


def test_create_input_rejects_end_not_after_start():
    with pytest.raises(InvalidArgument) as excinfo:
        parse_create_input(
            {"title": "Call", "start": "2025-01-10T09:30:00Z", "end": "2025-01-10T09:30:00Z"}
        )
    assert excinfo.value.message == "'end' must be after 'start'."


@pytest.mark.parametrize("attendees", ["ann@example.com", ["ann", 3], {"a": 1}, None])
def test_create_input_coerces_bad_attendees_to_empty(attendees):
    fields = parse_create_input(
        {
            "title": "Call",
            "start": "2025-01-10T09:00:00Z",
            "end": "2025-01-10T09:30:00Z",
            "attendees": attendees,
        }
    )
    assert fields.attendees == []


def test_create_input_keeps_attendee_order_and_free_form_status():
    fields = parse_create_input(
        {
            "title": "Call",
            "start": "2025-01-10T09:00:00Z",
            "end": "2025-01-10T09:30:00Z",
            "attendees": ["zed", "amy"],
            "status": "maybe-later",
        }
    )
    assert fields.attendees == ["zed", "amy"]
    assert fields.status == "maybe-later"


def test_create_input_rejects_non_string_description():
    with pytest.raises(InvalidArgument) as excinfo:
        parse_create_input(
            {
                "title": "Call",
                "start": "2025-01-10T09:00:00Z",
                "end": "2025-01-10T09:30:00Z",
                "description": 42,
            }
        )
    assert "description" in excinfo.value.message


# ------------------------------------------------------------------
# Patch
# ------------------------------------------------------------------

def test_patch_only_reports_supplied_fields():
    patch = parse_patch_input(_existing(), {"title": "Updated"})
    assert patch.changes() == {"title": "Updated"}


def test_patch_explicit_null_clears_description():
    patch = parse_patch_input(_existing(), {"description": None})
    assert patch.changes() == {"description": None}


def test_patch_checks_order_against_stored_end():
    with pytest.raises(InvalidArgument):
        parse_patch_input(_existing(), {"start": "2025-01-10T10:00:00Z"})


def test_patch_checks_order_against_stored_start():
    with pytest.raises(InvalidArgument):
        parse_patch_input(_existing(), {"end": "2025-01-10T08:00:00Z"})


def test_patch_moving_both_bounds_is_allowed():
    patch = parse_patch_input(
        _existing(), {"start": "2025-01-11T09:00:00Z", "end": "2025-01-11T10:00:00Z"}
    )
    assert patch.changes()["start"] == datetime(2025, 1, 11, 9, 0, tzinfo=UTC)


def test_patch_against_naive_stored_times():
    existing = _existing(
        start=datetime(2025, 1, 10, 9, 0),
        end=datetime(2025, 1, 10, 9, 30),
    )
    patch = parse_patch_input(existing, {"end": "2025-01-10T09:15:00Z"})
    assert patch.changes()["end"] == datetime(2025, 1, 10, 9, 15, tzinfo=UTC)


@pytest.mark.parametrize("body", [{"title": None}, {"title": ""}, {"status": None}, {"start": None}])
def test_patch_rejects_values_that_cannot_be_stored(body):
    with pytest.raises(InvalidArgument):
        parse_patch_input(_existing(), body)


def test_patch_empty_body_changes_nothing():
    assert parse_patch_input(_existing(), {}).changes() == {}


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------

def test_serialize_formats_wire_shape():
    row = _existing(description=None, attendees=None, status=None)
    view = serialize(row).model_dump(by_alias=True)
    assert view == {
        "id": str(row.id),
        "title": "Call",
        "description": None,
        "location": None,
        "attendees": [],
        "start": "2025-01-10T09:00:00.000Z",
        "end": "2025-01-10T09:30:00.000Z",
        "status": "confirmed",
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-01T00:00:00.000Z",
    }


def test_serialize_treats_naive_timestamps_as_utc():
    row = _existing(start=datetime(2025, 1, 10, 9, 0, 0, 250000))
    assert serialize(row).start == "2025-01-10T09:00:00.250Z"
