from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from app.core.config import settings


def utcnow() -> datetime:
    """Naive UTC, the form every timestamp column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    # naive 값은 이미 UTC로 간주
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_slot(dt: datetime, tz_name: str | None = None) -> tuple[int, int]:
    """
    (hour_of_day, day_of_week) of `dt` in the configured zone.
    day_of_week: 0 = Sunday ... 6 = Saturday.
    """
    aware = dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    local = aware.astimezone(ZoneInfo(tz_name or settings.TIMEZONE))
    return local.hour, (local.weekday() + 1) % 7
