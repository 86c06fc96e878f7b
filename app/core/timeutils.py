import re
from datetime import date, datetime, time, timezone
from typing import Optional, Union

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_deadline(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Parse a campaign deadline.

    Accepts an ISO instant or a bare ``YYYY-MM-DD`` date; the latter means the end of that
    day, 23:59:59 UTC. Returns None when the value cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time(23, 59, 59), tzinfo=timezone.utc)

    text = str(value).strip()
    if not text:
        return None

    if _DATE_ONLY.match(text):
        try:
            day = date.fromisoformat(text)
        except ValueError:
            return None
        return datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def is_future(value: datetime, now: Optional[datetime] = None) -> bool:
    return ensure_utc(value) > (now or utcnow())
