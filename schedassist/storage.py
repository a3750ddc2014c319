"""
Persistent storage of per-student documents.

The rest of the project only needs a key-value document store:

    get(student_id) -> dict | None
    put(student_id, document)

where the document has the shape {"entries": [...], "todos": [...]}.
JsonFileStore implements that contract with one JSON file per student:

    data/users/<STUDENT_ID>.json
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Protocol

from schedassist.model import ScheduleEntry, TodoItem


_LOGGER = logging.getLogger(__name__)

_STUDENT_ID_RE = re.compile(r"^[A-Z]{2,3}\d{8,10}$")
_DIGITS_ID_RE = re.compile(r"^\d{10}$")


class DocumentStore(Protocol):
    def get(self, student_id: str) -> dict[str, Any] | None: ...

    def put(self, student_id: str, document: dict[str, Any]) -> None: ...


def normalize_student_id(student_id: str) -> str:
    return str(student_id).strip().upper()


def validate_student_id(student_id: str) -> bool:
    """
    2-3 upper-case letters followed by 8-10 digits, or exactly 10 digits.
    """
    sid = normalize_student_id(student_id)
    return bool(_STUDENT_ID_RE.match(sid) or _DIGITS_ID_RE.match(sid))


def _default_store_dir() -> Path:
    """
    Return the default directory of the per-student JSON files.

    Using a function instead of a constant makes testing easier,
    because tests can pass their own directory.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "users"


class JsonFileStore:
    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory is not None else _default_store_dir()

    def _path(self, student_id: str) -> Path:
        sid = normalize_student_id(student_id)
        if not sid or not re.match(r"^[A-Za-z0-9_-]+$", sid):
            raise ValueError(f"Invalid student id: {student_id!r}")
        return self.directory / f"{sid}.json"

    def get(self, student_id: str) -> dict[str, Any] | None:
        """
        Load one document. Returns None if the file does not exist or is invalid.
        """
        path = self._path(student_id)

        # new user: nothing stored yet
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            _LOGGER.warning("Ignoring unreadable document %s: %s", path, e)
            return None
        return data if isinstance(data, dict) else None

    def put(self, student_id: str, document: dict[str, Any]) -> None:
        """
        Write one document, creating parent directories if needed.
        """
        path = self._path(student_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")


def load_user_data(store: DocumentStore, student_id: str) -> tuple[list[ScheduleEntry], list[TodoItem]]:
    """
    Read entries and todos for one student. Broken items are skipped.
    """
    doc = store.get(normalize_student_id(student_id)) or {}

    entries: list[ScheduleEntry] = []
    raw_entries = doc.get("entries")
    for item in raw_entries if isinstance(raw_entries, list) else []:
        try:
            entries.append(ScheduleEntry.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError):
            _LOGGER.warning("Skipping malformed stored entry: %r", item)

    todos: list[TodoItem] = []
    raw_todos = doc.get("todos")
    for item in raw_todos if isinstance(raw_todos, list) else []:
        try:
            todos.append(TodoItem.from_dict(item))
        except (KeyError, TypeError, AttributeError):
            _LOGGER.warning("Skipping malformed stored todo: %r", item)

    return entries, todos


def save_user_data(
    store: DocumentStore,
    student_id: str,
    entries: Iterable[ScheduleEntry],
    todos: Iterable[TodoItem] = (),
) -> None:
    entries = list(entries)
    todos = list(todos)
    _LOGGER.info("Saving %d entries and %d todos for %s", len(entries), len(todos), normalize_student_id(student_id))
    store.put(
        normalize_student_id(student_id),
        {
            "entries": [e.to_dict() for e in entries],
            "todos": [t.to_dict() for t in todos],
        },
    )
