"""Date arithmetic helpers for calendar views (naive local datetimes)."""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def _days_since_sunday(value: datetime) -> int:
    # datetime.weekday(): Monday == 0 ... Sunday == 6
    return (value.weekday() + 1) % 7


def start_of_week(value: datetime) -> datetime:
    """Sunday 00:00 of the week containing ``value``."""
    return start_of_day(value - timedelta(days=_days_since_sunday(value)))


def end_of_week(value: datetime) -> datetime:
    """Saturday 23:59:59.999999 of the week containing ``value``."""
    return end_of_day(start_of_week(value) + timedelta(days=6))


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value.replace(day=1))


def end_of_month(value: datetime) -> datetime:
    last_day = start_of_month(value) + relativedelta(months=1, days=-1)
    return end_of_day(last_day)


def is_same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def format_time(value: datetime) -> str:
    """12-hour clock without a leading zero, e.g. ``9:05 AM``."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def hour_position(value: datetime) -> float:
    """Fractional hour of day, used as the vertical offset of an event."""
    return value.hour + value.minute / 60


def duration_in_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def time_from_offset(
    hour: int, offset_y: float, slot_height: float, snap_minutes: int = 15
) -> tuple[int, int]:
    """Convert a pointer offset inside an hour slot to a snapped (hour, minute).

    A value that snaps to the end of the slot rolls over to the next hour.
    """
    minute_offset = int(offset_y / slot_height * 60)
    minutes = round(minute_offset / snap_minutes) * snap_minutes
    if minutes >= 60:
        return hour + 1, 0
    return hour, max(minutes, 0)


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime string. Supports date-only and datetime."""
    from dateutil.parser import parse as parse_dt
    return parse_dt(value)
