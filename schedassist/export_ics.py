"""
iCalendar (.ics) export.

We convert schedule entries into a calendar file that can be imported into:
- Google Calendar
- Outlook
- Apple Calendar
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from schedassist.model import ScheduleEntry


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (very small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _dt_local(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%S")


def export_entries_to_ics(entries: Iterable[ScheduleEntry], out_path: str | Path) -> int:
    """
    Export entries to an .ics file. Returns number of exported entries.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    lines.append("BEGIN:VCALENDAR")
    lines.append("VERSION:2.0")
    lines.append("PRODID:-//schedassist//EN")
    lines.append("CALSCALE:GREGORIAN")

    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    count = 0
    for entry in entries:
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{_ics_escape(entry.id)}")
        lines.append(f"DTSTAMP:{dtstamp}")
        lines.append(f"DTSTART:{_dt_local(entry.start_time)}")
        lines.append(f"DTEND:{_dt_local(entry.end_time)}")
        lines.append(f"SUMMARY:{_ics_escape(entry.title or 'Schedule Entry')}")
        if entry.location:
            lines.append(f"LOCATION:{_ics_escape(entry.location)}")
        if entry.description and entry.description.strip():
            lines.append(f"DESCRIPTION:{_ics_escape(entry.description.strip())}")
        lines.append(f"CATEGORIES:{entry.category.upper()}")
        lines.append("END:VEVENT")
        count += 1

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    out.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
    return count
