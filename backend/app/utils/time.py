from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def business_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().business_timezone)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: ZoneInfo | None = None) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz or business_tz())


def local_today(tz: ZoneInfo | None = None) -> date:
    return datetime.now(tz or business_tz()).date()


def local_midnight_as_utc(day: date, tz: ZoneInfo | None = None) -> datetime:
    """UTC-naive instant of 00:00 on `day` in the business time zone."""
    return to_utc_naive(datetime.combine(day, time.min, tzinfo=tz or business_tz()))
