"""Time helpers - naive UTC datetimes in storage, ISO-8601 strings at the boundary."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalise an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Render a stored datetime as an ISO-8601 UTC string."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat() + "Z"


def parse_iso_utc(value: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))
