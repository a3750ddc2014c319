"""
Central data model definitions used across the project.

This module defines the canonical structure of schedule entries and to-do
items so that:
- the importer, the storage layer and the CLI share the same field names
- documents written to the store can be read back without guessing
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


CATEGORIES = ("course", "activity", "exam", "study")
PRIORITIES = ("high", "medium", "low")

# Upstream lesson records are consumed as plain dicts (see normalize.py).
RawLessonRecord = dict[str, Any]


@dataclass(frozen=True)
class ScheduleEntry:
    """
    One concrete calendar block (single date & time interval).

    Entries are immutable. The id is stable for the lifetime of the entry and
    is what deletion works on; content_key() is what deduplication works on.
    """

    id: str
    title: str
    location: str
    category: str
    start_time: datetime
    end_time: datetime
    description: str | None = None
    source_week: int | None = None

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category: {self.category!r}")
        if self.end_time <= self.start_time:
            raise ValueError(f"Entry {self.title!r} ends before it starts")

    def content_key(self) -> tuple[str, datetime, datetime]:
        return (self.title, self.start_time, self.end_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "location": self.location,
            "category": self.category,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "description": self.description,
            "source_week": self.source_week,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleEntry":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            location=str(data.get("location") or ""),
            category=str(data.get("category") or "course"),
            start_time=datetime.fromisoformat(str(data["start_time"])),
            end_time=datetime.fromisoformat(str(data["end_time"])),
            description=data.get("description"),
            source_week=data.get("source_week"),
        )


@dataclass
class TodoItem:
    """
    A to-do item stored next to the schedule. Not processed by the importer.
    """

    id: str
    content: str
    deadline: str | None = None
    is_completed: bool = False
    tags: list[str] = field(default_factory=list)
    priority: str = "medium"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "deadline": self.deadline,
            "is_completed": self.is_completed,
            "tags": list(self.tags),
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TodoItem":
        priority = str(data.get("priority") or "medium")
        tags = data.get("tags")
        return cls(
            id=str(data["id"]),
            content=str(data.get("content") or ""),
            deadline=data.get("deadline"),
            is_completed=bool(data.get("is_completed", False)),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            priority=priority if priority in PRIORITIES else "medium",
        )
