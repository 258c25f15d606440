from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from pos_portal.config import settings


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def store_zone() -> ZoneInfo:
    return ZoneInfo(settings.store_timezone)


def as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def store_today(moment: datetime | None = None) -> date:
    return as_utc(moment or now_utc()).astimezone(store_zone()).date()


def store_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC half-open window [start, end) covering one calendar day in the store's zone."""
    zone = store_zone()
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat()
