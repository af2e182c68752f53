"""Minute-of-day helpers shared by the availability manager and conflict checker.

Conventions:

* ``ranges_overlap`` is half-open: ranges that only touch (``09:00-12:00`` and
  ``12:00-14:00``) do not overlap.
* ``window_within`` is closed: a booking may start exactly at the slot start and
  end exactly at the slot end.
* ``time_in_range`` is closed on both bounds; it backs ``check_availability``.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional

from servicehub.services.errors import InvalidArgument

_HHMM_PATTERN = re.compile(r"^\d{2}:\d{2}$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def require_positive_id(value: object, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"Invalid {field}; expected a positive integer", field=field, value=value)
    return value


def parse_hhmm(value: Optional[str], *, field: str = "time") -> int:
    if not isinstance(value, str) or not _HHMM_PATTERN.match(value):
        raise InvalidArgument(f"Invalid {field}; expected HH:MM", field=field, value=value)
    hours, minutes = (int(part) for part in value.split(":"))
    if hours > 23 or minutes > 59:
        raise InvalidArgument(f"Invalid {field}; expected HH:MM", field=field, value=value)
    return hours * 60 + minutes


def parse_iso_date(value: Optional[str], *, field: str = "date") -> date:
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise InvalidArgument(f"Invalid {field}; expected YYYY-MM-DD", field=field, value=value)
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid {field}; expected YYYY-MM-DD", field=field, value=value) from exc


def day_of_week(day: date) -> int:
    # 0 = Sunday ... 6 = Saturday
    return (day.weekday() + 1) % 7


def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def ranges_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def window_within(start: int, end: int, range_start: int, range_end: int) -> bool:
    return range_start <= start and end <= range_end


def time_in_range(moment: int, range_start: int, range_end: int) -> bool:
    return range_start <= moment <= range_end
