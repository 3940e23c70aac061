from datetime import UTC, datetime


def utcnow_naive():
    """Current UTC time as a naive datetime, the form stored in DB columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def isoformat_utc(value):
    """Serialize a naive-UTC DB timestamp with an explicit Z suffix."""
    if value is None:
        return None
    return value.isoformat() + 'Z'
