"""
Unit tests for conflict detection.

Definition used here:
- A conflict exists if two entries overlap in time.
- Touching endpoints (end == start) is NOT a conflict.
"""

import unittest
from datetime import datetime

from schedassist.conflicts import detect, find_conflicts
from schedassist.model import ScheduleEntry


def _entry(eid: str, title: str, start: str, end: str, category: str = "course") -> ScheduleEntry:
    return ScheduleEntry(
        id=eid,
        title=title,
        location="",
        category=category,
        start_time=datetime.fromisoformat(start),
        end_time=datetime.fromisoformat(end),
    )


class TestConflicts(unittest.TestCase):
    def test_overlap_same_day(self) -> None:
        entries = [
            _entry("a", "A", "2025-09-01T09:00", "2025-09-01T10:00"),
            _entry("b", "B", "2025-09-01T09:30", "2025-09-01T10:30"),
        ]
        self.assertEqual(detect(entries), ["Conflict: A overlaps with B"])

    def test_no_overlap_touching_end(self) -> None:
        entries = [
            _entry("a", "A", "2025-09-01T09:00", "2025-09-01T10:00"),
            _entry("b", "B", "2025-09-01T10:00", "2025-09-01T11:00"),
        ]
        self.assertEqual(detect(entries), [])

    def test_different_day_no_conflict(self) -> None:
        entries = [
            _entry("a", "A", "2025-09-01T09:00", "2025-09-01T10:00"),
            _entry("b", "B", "2025-09-02T09:30", "2025-09-02T10:30"),
        ]
        self.assertEqual(find_conflicts(entries), [])

    def test_same_id_is_not_compared(self) -> None:
        a = _entry("same", "A", "2025-09-01T09:00", "2025-09-01T10:00")
        self.assertEqual(find_conflicts([a, a]), [])

    def test_containment_and_categories(self) -> None:
        entries = [
            _entry("a", "Exam", "2025-09-01T08:00", "2025-09-01T12:00", "exam"),
            _entry("b", "Study", "2025-09-01T09:00", "2025-09-01T09:30", "study"),
        ]
        self.assertEqual(len(find_conflicts(entries)), 1)

    def test_messages_are_deduplicated(self) -> None:
        entries = [
            _entry("a1", "A", "2025-09-01T09:00", "2025-09-01T10:00"),
            _entry("b1", "B", "2025-09-01T09:30", "2025-09-01T10:30"),
            _entry("a2", "A", "2025-09-08T09:00", "2025-09-08T10:00"),
            _entry("b2", "B", "2025-09-08T09:30", "2025-09-08T10:30"),
        ]
        self.assertEqual(len(find_conflicts(entries)), 2)
        self.assertEqual(detect(entries), ["Conflict: A overlaps with B"])


if __name__ == "__main__":
    unittest.main()
