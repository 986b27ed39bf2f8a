from datetime import datetime, timedelta, timezone

# Stored and rendered timestamps carry millisecond precision.
PRECISION = timedelta(milliseconds=1)


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_ms(value: datetime) -> datetime:
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def normalize_timestamp(value: datetime) -> datetime:
    return truncate_ms(to_utc(value))


def utc_now() -> datetime:
    return normalize_timestamp(datetime.now(timezone.utc))


def format_timestamp(value: datetime) -> str:
    """Canonical wire format, e.g. ``2025-01-10T09:00:00.000Z``."""
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
