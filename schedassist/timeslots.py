"""
Period table and date projection.

The timetable system only speaks in (week, weekday, period) coordinates.
This module turns those into wall-clock datetimes:

    semester_start + (week - 1) weeks + (weekday - 1) days, at HH:MM

Week indices are 1-based, weekday is 1=Monday .. 7=Sunday.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any


@dataclass(frozen=True)
class TimeSlot:
    start: str
    end: str


# 13-period day
TIME_SLOTS: dict[int, TimeSlot] = {
    1: TimeSlot("07:50", "08:35"),
    2: TimeSlot("08:40", "09:25"),
    3: TimeSlot("09:45", "10:30"),
    4: TimeSlot("10:35", "11:20"),
    5: TimeSlot("11:25", "12:10"),
    6: TimeSlot("14:00", "14:45"),
    7: TimeSlot("14:50", "15:35"),
    8: TimeSlot("15:55", "16:40"),
    9: TimeSlot("16:45", "17:30"),
    10: TimeSlot("17:35", "18:20"),
    11: TimeSlot("19:30", "20:15"),
    12: TimeSlot("20:20", "21:05"),
    13: TimeSlot("21:10", "21:55"),
}

# Named period ranges offered when entering a course by hand
COMMON_PERIODS = [
    ("1-2 (Early Morning)", 1, 2),
    ("3-4 (Morning 1)", 3, 4),
    ("3-5 (Morning Long)", 3, 5),
    ("6-7 (Afternoon 1)", 6, 7),
    ("8-9 (Afternoon 2)", 8, 9),
    ("8-10 (Afternoon Long)", 8, 10),
    ("11-12 (Evening)", 11, 12),
    ("11-13 (Evening Long)", 11, 13),
]


def slot(period: Any) -> TimeSlot | None:
    """
    Look up a period number. Unknown or non-integer periods return None.
    """
    if isinstance(period, bool):
        return None
    try:
        key = int(period)
    except (TypeError, ValueError, OverflowError):
        return None
    return TIME_SLOTS.get(key)


def period_range_name(label: str) -> str:
    """
    '3-5 (Morning Long)' -> 'morning-long'
    """
    name = label.partition("(")[2].rstrip(")")
    return re.sub(r"[\s_-]+", "-", name.strip().lower())


def period_range(text: str) -> tuple[int, int] | None:
    """
    Parse a period range: 'A-B', a single period 'A', or the name of one of
    COMMON_PERIODS ('morning-long', 'Evening'). Returns (first, last) or None.
    """
    value = (text or "").strip()
    if not value:
        return None

    name = re.sub(r"[\s_-]+", "-", value.lower())
    for label, first, last in COMMON_PERIODS:
        if period_range_name(label) == name:
            return first, last

    head, _, tail = value.partition("-")
    if slot(head) is None or slot(tail or head) is None:
        return None
    first, last = int(head), int(tail or head)
    if first > last:
        return None
    return first, last


def parse_hhmm(hhmm: str) -> time:
    """
    Convert 'HH:MM' to a time. Raises ValueError for invalid formats.
    """
    parts = hhmm.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return time(h, m)


def project_datetime(semester_start: date, week: int, weekday: int, hhmm: str) -> datetime:
    """
    Project a (week, weekday, time-of-day) coordinate onto the calendar.

    Raises ValueError when week < 1, weekday is outside 1..7 or the time
    string is malformed; OverflowError when the week lies past year 9999.
    """
    if week < 1:
        raise ValueError(f"Week index must be >= 1, got {week}")
    if not 1 <= weekday <= 7:
        raise ValueError(f"Weekday must be in 1..7, got {weekday}")

    day = semester_start + timedelta(weeks=week - 1, days=weekday - 1)
    return datetime.combine(day, parse_hhmm(hhmm))


def default_semester_start(today: date) -> date:
    """
    Guess the Monday of week 1 for the term `today` falls in.

    Feb..Jul is the spring term (anchored at Feb 20), Aug..Jan the fall term
    (anchored at Sep 1; January still belongs to the previous year's fall).
    """
    if 2 <= today.month <= 7:
        anchor = date(today.year, 2, 20)
    else:
        year = today.year - 1 if today.month == 1 else today.year
        anchor = date(year, 9, 1)
    return anchor - timedelta(days=anchor.weekday())
