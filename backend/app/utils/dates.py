"""UTC clock helpers shared by models and services."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite drops the tzinfo of TIMESTAMP WITH TIME ZONE columns, so values
    read back in tests are naive while values built in Python are aware.
    Comparing the two raises TypeError; normalize before comparing.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
