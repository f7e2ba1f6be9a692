# house_of_charity/utils/dates.py
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(v) -> Optional[datetime]:
    """Parse ISO strings / datetimes into aware UTC datetimes; None if unusable."""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        try:
            v = datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(v, datetime):
        return None
    if v.tzinfo is None:
        # naive values (sqlite, date-only input) are stored as UTC
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)
