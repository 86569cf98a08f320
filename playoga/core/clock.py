from datetime import datetime, timezone


def utcnow() -> datetime:
    """Aware UTC; every timestamp column is timezone aware."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """Same instant in UTC. A naive value is taken to be UTC already (SQLite drops offsets)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
