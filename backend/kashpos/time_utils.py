from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD"; None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# =============================================================================
# Business calendar
# =============================================================================
#
# Sale timestamps are stored UTC-naive. Days, months and the YY-MM transaction
# prefix follow the store's local calendar (Config.BUSINESS_TIMEZONE).

def to_business_time(dt: datetime, tz_name: str = "UTC") -> datetime:
    """UTC-naive -> business-local naive."""
    aware = dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def from_business_time(dt: datetime, tz_name: str = "UTC") -> datetime:
    """Business-local naive -> UTC-naive."""
    aware = dt.replace(tzinfo=ZoneInfo(tz_name))
    return aware.astimezone(timezone.utc).replace(tzinfo=None)


def business_date(dt: datetime, tz_name: str = "UTC") -> date:
    return to_business_time(dt, tz_name).date()


def day_bounds(day: date, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """
    Inclusive UTC-naive bounds of a business day: [00:00:00, 23:59:59.999999].
    """
    start = from_business_time(datetime.combine(day, time.min), tz_name)
    end = from_business_time(datetime.combine(day + timedelta(days=1), time.min), tz_name)
    return start, end - timedelta(microseconds=1)


def range_bounds(start_day: date, end_day: date, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    start, _ = day_bounds(start_day, tz_name)
    _, end = day_bounds(end_day, tz_name)
    return start, end


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    if day.month == 12:
        return date(day.year, 12, 31)
    return date(day.year, day.month + 1, 1) - timedelta(days=1)


def month_bounds(year: int, month: int, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    first = date(year, month, 1)
    return range_bounds(first, month_end(first), tz_name)


def iter_days(start_day: date, end_day: date):
    day = start_day
    while day <= end_day:
        yield day
        day += timedelta(days=1)


def period_prefix(now: datetime, tz_name: str = "UTC") -> str:
    """YY-MM of a UTC-naive instant in the business calendar."""
    return to_business_time(now, tz_name).strftime("%y-%m")


def parse_month(value: str) -> tuple[int, int]:
    """"YYYY-MM" -> (year, month)."""
    year_s, _, month_s = value.strip().partition("-")
    year, month = int(year_s), int(month_s)
    if not 1 <= month <= 12:
        raise ValueError("month must be between 01 and 12")
    return year, month
