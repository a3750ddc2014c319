"""
Conflict detection.

Given schedule entries, detect pairs whose time intervals overlap.
Overlap rule (open intervals, touching ends do not conflict):
    start < other_end AND other_start < end

Conflicts are reported, never prevented.
"""

from __future__ import annotations

from typing import Iterable

from schedassist.model import ScheduleEntry


def _overlaps(a: ScheduleEntry, b: ScheduleEntry) -> bool:
    return a.start_time < b.end_time and b.start_time < a.end_time


def find_conflicts(entries: Iterable[ScheduleEntry]) -> list[tuple[ScheduleEntry, ScheduleEntry]]:
    """
    Find overlapping entry pairs (A,B), each unordered pair once (i<j).
    An entry is never compared with itself (same id).
    """
    items = list(entries)
    conflicts: list[tuple[ScheduleEntry, ScheduleEntry]] = []

    # O(n^2) is fine for a term's worth of entries
    for i in range(len(items)):
        a = items[i]
        for j in range(i + 1, len(items)):
            b = items[j]
            if a.id == b.id:
                continue
            if _overlaps(a, b):
                conflicts.append((a, b))

    return conflicts


def conflict_message(a: ScheduleEntry, b: ScheduleEntry) -> str:
    return f"Conflict: {a.title} overlaps with {b.title}"


def detect(entries: Iterable[ScheduleEntry]) -> list[str]:
    """
    Human-readable conflict report, deduplicated by message content.
    """
    messages: list[str] = []
    seen = set()
    for a, b in find_conflicts(entries):
        msg = conflict_message(a, b)
        if msg not in seen:
            seen.add(msg)
            messages.append(msg)
    return messages
