from datetime import UTC, datetime


def utcnow() -> datetime:
    """Timezone-aware UTC now, matching the ``timestamptz`` columns."""
    return datetime.now(UTC)


def to_utc(value: datetime) -> datetime:
    """Convert to aware UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
