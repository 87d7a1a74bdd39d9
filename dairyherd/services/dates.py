"""
UTC calendar-day helpers.

All engine arithmetic is done on whole calendar days; differences truncate
and are never rounded.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from .errors import ValidationError

DateLike = Union[date, datetime, str]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_date(value: Optional[DateLike], field: str = "date") -> date:
    """Coerce an ISO string, date or datetime into a calendar date.

    Timestamps carrying an offset are moved to UTC before the date part is
    taken; naive timestamps are taken as already being UTC.
    """
    if value is None or value == "":
        raise ValidationError(field, "is required")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return parse_date(datetime.fromisoformat(text.replace("Z", "+00:00")), field)
        except ValueError:
            raise ValidationError(field, f"'{value}' is not a valid ISO date (YYYY-MM-DD)")
    raise ValidationError(field, f"unsupported date value {value!r}")


def optional_date(value: Optional[DateLike], field: str = "date") -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_date(value, field)


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end - start).days


def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)


def isoformat(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
