"""
Date-key helpers for day-partitioned datasets.

Partitions and indexes are named by dotted date strings:
- day:   YYYY.MM.DD
- month: YYYY.MM
- year:  YYYY

Keys at coarser levels are plain truncations of the day string.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

DAY_FORMAT = "%Y.%m.%d"
RANGE_SEPARATOR = ".."

# Expected number of partitions a complete year holds (compared against the
# count of dataset-root names containing the year fragment).
UNITS_PER_YEAR = 365

_DAYS_PER_MONTH: dict[int, int] = {
    1: 31,
    2: 28,
    3: 31,
    4: 30,
    5: 31,
    6: 30,
    7: 31,
    8: 31,
    9: 30,
    10: 31,
    11: 30,
    12: 31,
}

_DAY_RE = re.compile(r"^\d{4}\.\d{2}\.\d{2}$")
_MONTH_RE = re.compile(r"^\d{4}\.(0[1-9]|1[0-2])$")
_YEAR_RE = re.compile(r"^\d{4}$")


class DateKeyError(ValueError):
    pass


class TimeRangeError(ValueError):
    pass


def parse_day(value: str) -> date:
    """Strictly parse a YYYY.MM.DD string (no rollover of out-of-range fields)."""
    s = str(value or "").strip()
    if not _DAY_RE.match(s):
        raise DateKeyError(f"Not a YYYY.MM.DD date: {value!r}")
    try:
        return datetime.strptime(s, DAY_FORMAT).date()
    except ValueError as e:
        raise DateKeyError(f"Not a YYYY.MM.DD date: {value!r}") from e


def is_day(value: str) -> bool:
    try:
        parse_day(value)
        return True
    except DateKeyError:
        return False


def _require_full(full: str) -> str:
    s = str(full or "").strip()
    if not _DAY_RE.match(s):
        raise DateKeyError(f"Not a YYYY.MM.DD date: {full!r}")
    return s


def day_key(full: str) -> str:
    return _require_full(full)


def month_key(full: str) -> str:
    return _require_full(full)[:7]


def year_key(full: str) -> str:
    return _require_full(full)[:4]


def month_of(full: str) -> int:
    return int(_require_full(full)[5:7])


def year_of(full: str) -> int:
    return int(_require_full(full)[:4])


def is_level_key(level: str, key: str) -> bool:
    """
    Check whether `key` is a well-formed key for `level` ("daily", "monthly", "yearly").
    """
    k = str(key or "")
    lv = str(level or "").strip().lower()
    if lv == "daily":
        return is_day(k)
    if lv == "monthly":
        return bool(_MONTH_RE.match(k))
    if lv == "yearly":
        return bool(_YEAR_RE.match(k))
    raise ValueError(f"Unknown index level: {level!r}")


def parse_time_range(time_range: str | None) -> tuple[date, date]:
    """
    Parse `<start>..<end>` into an inclusive (start, end) pair.

    Raises TimeRangeError when the range is missing, lacks exactly one `..`
    separator, or either side is not a valid YYYY.MM.DD date.
    """
    if time_range is None or not str(time_range).strip():
        raise TimeRangeError("empty time range")
    parts = str(time_range).strip().split(RANGE_SEPARATOR)
    if len(parts) != 2:
        raise TimeRangeError(
            f"invalid format {time_range!r}: use two periods '..' to separate start and end dates"
        )
    try:
        start = parse_day(parts[0])
        end = parse_day(parts[1])
    except DateKeyError as e:
        raise TimeRangeError(f"invalid format {time_range!r}: {e}") from e
    return start, end


def days_in_month(month: int, year: int | None = None, *, leap_aware: bool = False) -> int:
    """
    Expected day partitions for a calendar month.

    February is 28 unless `leap_aware` is set and `year` is a leap year.
    Months outside 1-12 expect 0 partitions.
    """
    n = _DAYS_PER_MONTH.get(int(month), 0)
    if n and leap_aware and int(month) == 2 and year is not None and calendar.isleap(int(year)):
        return 29
    return n
