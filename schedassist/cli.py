"""
CLI (Command Line Interface).

This module provides terminal commands around the stored schedule, e.g.:

    schedassist import --student PB21000001
    schedassist import-json --student PB21000001 lessons.json
    schedassist validate-ticket ST-1-abc
    schedassist list --student PB21000001
    schedassist add --student PB21000001 --title "Linear Algebra" --date 2025-09-01 --periods 3-4
    schedassist remove --student PB21000001 <entry_id>
    schedassist conflicts --student PB21000001
    schedassist export --student PB21000001 out.ics

Documents are kept in a JsonFileStore (see storage.py). Settings come from
the environment; a .env file in the working directory is loaded first.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import uuid
from datetime import date, datetime
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from schedassist import __version__
from schedassist.cas import validate_ticket
from schedassist.config import UpstreamConfig
from schedassist.conflicts import detect, find_conflicts
from schedassist.errors import (
    FeedUnavailable,
    LoginPageParseError,
    ScheduleImportError,
)
from schedassist.export_ics import export_entries_to_ics
from schedassist.importer import CaptchaChallenge, Credentials, import_from_upstream
from schedassist.model import CATEGORIES, ScheduleEntry
from schedassist.normalize import merge_entries, normalize_payload
from schedassist.storage import JsonFileStore, load_user_data, save_user_data, validate_student_id
from schedassist.timeslots import (
    COMMON_PERIODS,
    TIME_SLOTS,
    default_semester_start,
    parse_hhmm,
    period_range,
    period_range_name,
)


console = Console()

MAX_CAPTCHA_ATTEMPTS = 3

# What to tell the user for each failure reason
FAILURE_HINTS = {
    "LoginPageParseError": "The login page could not be read; the CAS layout may have changed.",
    "InvalidCredentials": "Login rejected. Check your student ID and password.",
    "CaptchaRequired": "A verification code is required.",
    "UnexpectedUpstreamResponse": "The login server answered in an unexpected way. Try again later.",
    "NetworkError": "Network problem or timeout while talking to the server. Try again.",
    "FeedUnavailable": "Logged in, but no timetable data was found.",
    "MalformedFeedData": "The timetable data could not be understood.",
    "LoginCancelled": "Login cancelled.",
}


def _store(args: argparse.Namespace) -> JsonFileStore:
    directory = args.store or os.getenv("SCHEDASSIST_STORE_DIR") or None
    return JsonFileStore(directory)


def _semester_start(args: argparse.Namespace) -> date | None:
    if not args.semester_start:
        return default_semester_start(date.today())
    try:
        return date.fromisoformat(args.semester_start)
    except ValueError:
        console.print(f"Invalid --semester-start: {args.semester_start!r} (expected YYYY-MM-DD)")
        return None


def _print_conflicts(entries: list[ScheduleEntry]) -> None:
    messages = detect(entries)
    if not messages:
        console.print("No conflicts found.")
        return
    console.print(f"Conflicts found: {len(messages)}")
    for msg in messages:
        console.print(f"- {msg}")


def _report_failure(e: ScheduleImportError) -> int:
    console.print(f"[red]Import failed ({e.reason}):[/red] {FAILURE_HINTS.get(e.reason, str(e))}")
    if str(e):
        console.print(f"  {e}")
    if isinstance(e, (LoginPageParseError, FeedUnavailable)) and e.page_title:
        console.print(f"  Page title: {e.page_title}")
    return 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_import(args: argparse.Namespace) -> int:
    """
    Log in upstream, fetch the timetable and merge it into the stored entries.
    """
    student_id = (args.student or "").strip().upper()
    if not validate_student_id(student_id):
        console.print(f"Warning: '{student_id}' does not look like a student ID (continuing).")

    password = os.getenv("SCHEDASSIST_PASSWORD") or getpass.getpass("Password: ")
    if not password:
        console.print("Please provide a password.")
        return 1

    semester_start = _semester_start(args)
    if semester_start is None:
        return 1

    credentials = Credentials(username=student_id, password=password)
    config = UpstreamConfig.from_env()

    answer: str | None = None
    prior = None
    attempts = 0
    try:
        while True:
            result = import_from_upstream(
                credentials, answer, prior, semester_start=semester_start, config=config
            )
            if not isinstance(result, CaptchaChallenge):
                break
            if attempts >= MAX_CAPTCHA_ATTEMPTS:
                console.print("Too many verification attempts.")
                return 1
            attempts += 1

            suffix = ".png" if "png" in result.mime_type else ".jpg"
            image_path = Path(args.captcha_file or f"captcha{suffix}")
            image_path.write_bytes(result.image)
            console.print(f"Verification code required. Image saved to: {image_path}")
            answer = input("Code: ").strip()
            prior = result.session
    except ScheduleImportError as e:
        return _report_failure(e)

    store = _store(args)
    existing, todos = load_user_data(store, student_id)
    merged = merge_entries(existing, result.entries)
    save_user_data(store, student_id, merged, todos)

    if args.save_feed:
        Path(args.save_feed).write_text(
            json.dumps(result.payload, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        console.print(f"Feed saved to: {args.save_feed}")

    console.print(
        f"Imported {len(result.entries)} entries via {result.strategy} feed "
        f"({len(merged) - len(existing)} new, {len(merged)} stored)."
    )
    _print_conflicts(merged)
    return 0


def _cmd_import_json(args: argparse.Namespace) -> int:
    """
    Import a feed document saved or pasted by hand.
    """
    path = Path(args.file)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"File not found: {path}")
        return 1
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        console.print(f"Could not read JSON from {path}: {e}")
        return 1

    semester_start = _semester_start(args)
    if semester_start is None:
        return 1

    entries = normalize_payload(payload, semester_start)
    if not entries:
        console.print("No schedulable entries found in the file.")
        return 1

    store = _store(args)
    existing, todos = load_user_data(store, args.student)
    merged = merge_entries(existing, entries)
    save_user_data(store, args.student, merged, todos)
    console.print(f"Imported {len(merged) - len(existing)} new entries ({len(merged)} stored).")
    return 0


def _cmd_validate_ticket(args: argparse.Namespace) -> int:
    try:
        student_id = validate_ticket(args.ticket, args.service, config=UpstreamConfig.from_env())
    except ValueError:
        console.print("Please provide a ticket.")
        return 1
    except ScheduleImportError as e:
        return _report_failure(e)
    console.print(f"Ticket belongs to: {student_id}")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    entries, _ = load_user_data(_store(args), args.student)
    if not entries:
        console.print("No entries.")
        return 0

    table = Table(title=f"Schedule of {args.student.strip().upper()}")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Location")
    table.add_column("ID", overflow="fold")
    for e in sorted(entries, key=lambda x: x.start_time):
        table.add_row(
            e.start_time.strftime("%Y-%m-%d %H:%M"),
            e.end_time.strftime("%H:%M"),
            e.title,
            e.category,
            e.location,
            e.id,
        )
    console.print(table)
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    """
    Add one entry entered by hand, either by period range or by clock time.
    """
    title = (args.title or "").strip()
    if not title:
        console.print("Please provide a title.")
        return 1

    try:
        day = date.fromisoformat(args.date)
        if args.periods:
            periods = period_range(args.periods)
            if periods is None:
                console.print(f"Unknown period range: {args.periods}")
                return 1
            first, last = periods
            start_t, end_t = parse_hhmm(TIME_SLOTS[first].start), parse_hhmm(TIME_SLOTS[last].end)
        elif args.start and args.end:
            start_t, end_t = parse_hhmm(args.start), parse_hhmm(args.end)
        else:
            console.print("Please provide --periods or both --start and --end.")
            return 1

        entry = ScheduleEntry(
            id=str(uuid.uuid4()),
            title=title,
            location=(args.location or "").strip(),
            category=args.category,
            start_time=datetime.combine(day, start_t),
            end_time=datetime.combine(day, end_t),
            description=args.description,
        )
    except ValueError as e:
        console.print(f"Invalid entry: {e}")
        return 1

    store = _store(args)
    entries, todos = load_user_data(store, args.student)
    clashes = [b for a, b in find_conflicts([entry] + entries) if a.id == entry.id]
    entries.append(entry)
    save_user_data(store, args.student, entries, todos)

    console.print(f"Added: {entry.id} ({len(entries)} stored)")
    for other in clashes:
        console.print(f"Warning: overlaps with {other.title} ({other.start_time:%Y-%m-%d %H:%M})")
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    entry_id = (args.entry_id or "").strip()
    if not entry_id:
        console.print("Please provide an entry id.")
        return 1

    store = _store(args)
    entries, todos = load_user_data(store, args.student)
    remaining = [e for e in entries if e.id != entry_id]
    if len(remaining) == len(entries):
        console.print(f"Not found: {entry_id}")
        return 0

    save_user_data(store, args.student, remaining, todos)
    console.print(f"Removed: {entry_id} ({len(remaining)} stored)")
    return 0


def _cmd_conflicts(args: argparse.Namespace) -> int:
    entries, _ = load_user_data(_store(args), args.student)
    _print_conflicts(entries)
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    """
    Export stored entries into an iCalendar (.ics) file.
    """
    entries, _ = load_user_data(_store(args), args.student)
    if not entries:
        console.print("No entries to export.")
        return 0

    out_path = (args.out or "").strip()
    if not out_path:
        console.print("Please provide output .ics path.")
        return 1

    n = export_entries_to_ics(entries, out_path)
    console.print(f"Exported {n} entries to: {out_path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="schedassist", description="Course schedule assistant")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument("--store", type=str, default=None, help="Directory of the per-student JSON files")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_student(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument("--student", "-s", type=str, required=True, help="Student ID (e.g. PB21000001)")
        return p

    p_import = with_student(sub.add_parser("import", help="Log in and import the timetable"))
    p_import.add_argument("--semester-start", type=str, default=None, help="Monday of week 1 (YYYY-MM-DD)")
    p_import.add_argument("--captcha-file", type=str, default=None, help="Where to save a verification image")
    p_import.add_argument("--save-feed", type=str, default=None, help="Also write the raw feed JSON here")

    p_json = with_student(sub.add_parser("import-json", help="Import a saved timetable JSON document"))
    p_json.add_argument("file", type=str, help="JSON file")
    p_json.add_argument("--semester-start", type=str, default=None, help="Monday of week 1 (YYYY-MM-DD)")

    p_validate = sub.add_parser("validate-ticket", help="Check a CAS service ticket")
    p_validate.add_argument("ticket", type=str, help="Service ticket (ST-...)")
    p_validate.add_argument("--service", type=str, default=None, help="Service URL the ticket was issued for")

    with_student(sub.add_parser("list", help="List stored entries"))

    p_add = with_student(sub.add_parser("add", help="Add an entry by hand"))
    p_add.add_argument("--title", type=str, required=True)
    p_add.add_argument("--date", type=str, required=True, help="YYYY-MM-DD")
    period_names = ", ".join(period_range_name(label) for label, _, _ in COMMON_PERIODS)
    p_add.add_argument(
        "--periods", type=str, default=None, help=f"Period range, e.g. 3-4, or one of: {period_names}"
    )
    p_add.add_argument("--start", type=str, default=None, help="HH:MM")
    p_add.add_argument("--end", type=str, default=None, help="HH:MM")
    p_add.add_argument("--category", choices=CATEGORIES, default="course")
    p_add.add_argument("--location", type=str, default="")
    p_add.add_argument("--description", type=str, default=None)

    p_remove = with_student(sub.add_parser("remove", help="Remove an entry by id"))
    p_remove.add_argument("entry_id", type=str, help="Entry id (see 'list')")

    with_student(sub.add_parser("conflicts", help="Show overlapping entries"))

    p_export = with_student(sub.add_parser("export", help="Export entries to .ics"))
    p_export.add_argument("out", type=str, help="Output file path (e.g. out.ics)")

    return parser


COMMANDS = {
    "import": _cmd_import,
    "import-json": _cmd_import_json,
    "validate-ticket": _cmd_validate_ticket,
    "list": _cmd_list,
    "add": _cmd_add,
    "remove": _cmd_remove,
    "conflicts": _cmd_conflicts,
    "export": _cmd_export,
}


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)
    raise SystemExit(handler(args))
