"""
Normalization (upstream lesson records -> ScheduleEntry).

Upstream data is known to be inconsistent: field names differ between
endpoints, optional fields go missing, numbers arrive as strings. Nothing
in this module raises for data problems. A record that cannot be placed on
the calendar is skipped; a single week that cannot be placed is skipped
without dropping the rest of the record.

Important rules:
- 1 (record, week) pair = 1 ScheduleEntry
- every entry gets a fresh id; use merge_entries() for deduplication
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Any, Iterable

from schedassist.feed import find_lessons
from schedassist.model import RawLessonRecord, ScheduleEntry
from schedassist.timeslots import project_datetime, slot


_LOGGER = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Course"
UNKNOWN_LOCATION = "TBD"


# ---------------------------------------------------------------------------
# Field resolution
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _first_int(record: RawLessonRecord, *keys: str) -> int | None:
    for key in keys:
        value = _int(record.get(key))
        if value is not None:
            return value
    return None


def resolve_title(record: RawLessonRecord) -> str:
    for key in ("courseName", "nameZh", "name"):
        title = _text(record.get(key))
        if title:
            return title

    course = record.get("course")
    if isinstance(course, dict):
        for key in ("nameZh", "name", "nameEn"):
            title = _text(course.get(key))
            if title:
                return title

    return UNKNOWN_TITLE


def resolve_location(record: RawLessonRecord) -> str:
    classroom = record.get("classroom")
    if isinstance(classroom, dict) and _text(classroom.get("name")):
        return _text(classroom.get("name"))
    if _text(classroom):
        return _text(classroom)

    room = record.get("room")
    if isinstance(room, dict) and _text(room.get("name")):
        return _text(room.get("name"))

    return _text(record.get("roomName")) or UNKNOWN_LOCATION


def resolve_teachers(record: RawLessonRecord) -> list[str]:
    names: list[str] = []

    teachers = record.get("teachers")
    if isinstance(teachers, list):
        for t in teachers:
            name = _text(t.get("name")) if isinstance(t, dict) else _text(t)
            if name:
                names.append(name)
        return names

    assignments = record.get("teacherAssignmentList")
    if isinstance(assignments, list):
        for a in assignments:
            if not isinstance(a, dict):
                continue
            teacher = a.get("teacher")
            name = _text(teacher.get("name")) if isinstance(teacher, dict) else ""
            name = name or _text(a.get("name"))
            if name:
                names.append(name)

    return names


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


def normalize_record(record: RawLessonRecord, semester_start: date) -> list[ScheduleEntry]:
    """
    Expand one upstream lesson record into one entry per teaching week.
    """
    weeks = record.get("weeks")
    if not isinstance(weeks, list) or not weeks:
        _LOGGER.debug("skipping record without weeks: %s", resolve_title(record))
        return []

    weekday = _first_int(record, "weekday", "dayOfWeek")
    if weekday is None or not 1 <= weekday <= 7:
        _LOGGER.debug("skipping record without usable weekday: %s", resolve_title(record))
        return []

    start_unit = _first_int(record, "startUnit", "startPeriod")
    end_unit = _first_int(record, "endUnit", "endPeriod")
    if start_unit is None and end_unit is None:
        return []
    # a single period number means a one-period lesson
    start_unit = start_unit if start_unit is not None else end_unit
    end_unit = end_unit if end_unit is not None else start_unit

    start_slot = slot(start_unit)
    end_slot = slot(end_unit)

    title = resolve_title(record)
    location = resolve_location(record)
    teachers = resolve_teachers(record)
    description = f"Teacher: {','.join(teachers)}" if teachers else None

    entries: list[ScheduleEntry] = []
    for raw_week in weeks:
        week = _int(raw_week)
        if week is None or week < 1 or start_slot is None or end_slot is None:
            _LOGGER.debug("skipping %s week %r (periods %s-%s)", title, raw_week, start_unit, end_unit)
            continue

        try:
            start_dt = project_datetime(semester_start, week, weekday, start_slot.start)
            end_dt = project_datetime(semester_start, week, weekday, end_slot.end)
        except (ValueError, OverflowError):
            _LOGGER.debug("skipping %s week %r: outside the calendar", title, raw_week)
            continue
        if end_dt <= start_dt:
            continue

        entries.append(
            ScheduleEntry(
                id=str(uuid.uuid4()),
                title=title,
                location=location,
                category="course",
                start_time=start_dt,
                end_time=end_dt,
                description=description,
                source_week=week,
            )
        )

    return entries


def normalize(records: Iterable[RawLessonRecord], semester_start: date) -> list[ScheduleEntry]:
    entries: list[ScheduleEntry] = []
    count = 0
    for record in records:
        count += 1
        if isinstance(record, dict):
            entries.extend(normalize_record(record, semester_start))
    _LOGGER.info("Normalized %d lesson records into %d entries", count, len(entries))
    return entries


# ---------------------------------------------------------------------------
# Events with absolute timestamps
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
        # entries hold naive local wall-clock times
        if dt.tzinfo is not None:
            dt = dt.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError):
        return None
    return dt


def _timed_entry(
    item: dict[str, Any],
    category: str,
    title: str,
    location: str,
    description: str,
) -> ScheduleEntry | None:
    start_dt = _parse_timestamp(item.get("startTime"))
    end_dt = _parse_timestamp(item.get("endTime"))
    if start_dt is None or end_dt is None or end_dt <= start_dt:
        return None
    return ScheduleEntry(
        id=str(uuid.uuid4()),
        title=title,
        location=location,
        category=category,
        start_time=start_dt,
        end_time=end_dt,
        description=description,
    )


def normalize_activities(events: Iterable[dict[str, Any]]) -> list[ScheduleEntry]:
    """
    Convert "second classroom" events (absolute start/end) to activity entries.
    """
    entries: list[ScheduleEntry] = []
    for evt in events:
        if not isinstance(evt, dict):
            continue
        entry = _timed_entry(
            evt,
            "activity",
            title=_text(evt.get("name")) or "Second Classroom Event",
            location=_text(evt.get("place")) or UNKNOWN_LOCATION,
            description=_text(evt.get("description")) or "Imported from Young",
        )
        if entry is not None:
            entries.append(entry)
    return entries


def entries_from_suggestions(items: Iterable[dict[str, Any]]) -> list[ScheduleEntry]:
    """
    Convert study-plan suggestions from the external planner to study entries.
    """
    entries: list[ScheduleEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        entry = _timed_entry(
            item,
            "study",
            title=_text(item.get("title")) or "Study",
            location="Library/Dorm",
            description=_text(item.get("description")) or "AI Generated Plan",
        )
        if entry is not None:
            entries.append(entry)
    return entries


def normalize_payload(payload: Any, semester_start: date) -> list[ScheduleEntry]:
    """
    Normalize a whole feed document: the combined {firstClassroom,
    secondClassroom} shape, anything the data endpoint returns (see
    feed.LESSON_PATHS) or a bare array of lessons. Unknown shapes yield no
    entries.
    """
    if isinstance(payload, dict) and ("firstClassroom" in payload or "secondClassroom" in payload):
        first = payload.get("firstClassroom")
        second = payload.get("secondClassroom")
        entries = normalize(first if isinstance(first, list) else [], semester_start)
        entries.extend(normalize_activities(second if isinstance(second, list) else []))
        return entries

    lessons = find_lessons(payload)
    if lessons is None:
        return []
    return normalize(lessons, semester_start)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_entries(existing: Iterable[ScheduleEntry], incoming: Iterable[ScheduleEntry]) -> list[ScheduleEntry]:
    """
    Append incoming entries whose (title, start, end) is not already present.

    Ids are regenerated on every import, so identity cannot be used here.
    Existing entries always win.
    """
    merged = list(existing)
    seen = {e.content_key() for e in merged}
    for entry in incoming:
        key = entry.content_key()
        if key in seen:
            continue
        seen.add(key)
        merged.append(entry)
    return merged
