"""
Timetable feed extraction.

Given an authenticated session, locate the student's lesson data. The
upstream has been seen serving it two ways, and both stay supported:

1. structured: the course-table page embeds numeric identifiers in a
   script; those parameterize a JSON data endpoint.
2. embedded: the course-table page carries the lesson array itself,
   assigned to a script variable.

Strategies run in that order and the first success wins. Nothing is ever
made up: if neither yields data the caller gets FeedUnavailable.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Sequence

from schedassist import pages
from schedassist.config import UpstreamConfig
from schedassist.errors import FeedUnavailable, MalformedFeedData
from schedassist.model import RawLessonRecord
from schedassist.session import AuthSession
from schedassist.transport import Transport


_LOGGER = logging.getLogger(__name__)


STUDENT_ID_PATTERNS = [
    re.compile(r"""studentId[:\s"'=]+(\d+)"""),
    re.compile(r"""stdId[:\s"'=]+(\d+)"""),
    re.compile(r"""student_id[:\s"'=]+(\d+)"""),
    re.compile(r"""personId[:\s"'=]+(\d+)"""),
]

BIZ_TYPE_PATTERNS = [
    re.compile(r"""bizTypeId[:\s"'=]+(\d+)"""),
    re.compile(r"""biz_type_id[:\s"'=]+(\d+)"""),
]

SEMESTER_PATTERNS = [
    re.compile(r"""semesterId[:\s"'=]+(\d+)"""),
    re.compile(r"""semester_id[:\s"'=]+(\d+)"""),
]

DEFAULT_BIZ_TYPE_ID = "2"

# Each pattern ends right before the opening bracket of the array literal.
EMBEDDED_ARRAY_PATTERNS = [
    re.compile(r"""var\s+activities\s*=\s*(?=\[)"""),
    re.compile(r"""["']?activities["']?\s*:\s*(?=\[)"""),
    re.compile(r"""["']?lessonList["']?\s*:\s*(?=\[)"""),
    re.compile(r"""["']?lessons["']?\s*:\s*(?=\[)"""),
]

# Where a JSON response has been seen keeping its lesson list.
LESSON_PATHS: list[tuple[str | int, ...]] = [
    ("lessons",),
    ("activities",),
    ("lessonList",),
    ("firstClassroom",),
    ("studentTableVm", "lessons"),
    ("studentTableVm", "activities"),
    ("studentTableVms", 0, "lessons"),
    ("studentTableVms", 0, "activities"),
    ("data", "lessons"),
    ("data", "activities"),
]


@dataclass(frozen=True)
class FeedIdentifiers:
    student_id: str
    biz_type_id: str = DEFAULT_BIZ_TYPE_ID
    semester_id: str | None = None


@dataclass
class FeedResult:
    records: list[RawLessonRecord]
    strategy: str
    payload: Any = None


# ---------------------------------------------------------------------------
# Pure helpers (page / payload scanning)
# ---------------------------------------------------------------------------


def _first_group(patterns: Sequence[re.Pattern], text: str) -> str | None:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def find_identifiers(html: str) -> FeedIdentifiers | None:
    student_id = _first_group(STUDENT_ID_PATTERNS, html)
    if not student_id:
        return None
    return FeedIdentifiers(
        student_id=student_id,
        biz_type_id=_first_group(BIZ_TYPE_PATTERNS, html) or DEFAULT_BIZ_TYPE_ID,
        semester_id=_first_group(SEMESTER_PATTERNS, html),
    )


def find_lessons(payload: Any) -> list[Any] | None:
    """
    Locate the lesson list in a decoded JSON payload: either the root array
    or one of the known nested paths.
    """
    if isinstance(payload, list):
        return payload

    for path in LESSON_PATHS:
        node: Any = payload
        for key in path:
            if isinstance(key, int):
                node = node[key] if isinstance(node, list) and len(node) > key else None
            else:
                node = node.get(key) if isinstance(node, dict) else None
            if node is None:
                break
        if isinstance(node, list):
            return node
    return None


def _only_records(items: list[Any]) -> list[RawLessonRecord]:
    records = [item for item in items if isinstance(item, dict)]
    if len(records) != len(items):
        _LOGGER.debug("dropped %d non-object lesson items", len(items) - len(records))
    return records


def find_embedded_lessons(html: str) -> list[RawLessonRecord] | None:
    """
    Decode the first array literal assigned to a known variable name.

    Returns None when no candidate is present; raises MalformedFeedData when
    candidates exist but none of them decodes as JSON.
    """
    decoder = json.JSONDecoder()
    seen_candidate = False

    for pattern in EMBEDDED_ARRAY_PATTERNS:
        for m in pattern.finditer(html):
            seen_candidate = True
            try:
                value, _ = decoder.raw_decode(html, m.end())
            except ValueError:
                _LOGGER.debug("array after %r is not valid JSON", m.group(0))
                continue
            if isinstance(value, list):
                return _only_records(value)

    if seen_candidate:
        raise MalformedFeedData("Embedded schedule data could not be decoded")
    return None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class FeedExtractor:
    def __init__(
        self,
        config: UpstreamConfig | None = None,
        http: Any = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or UpstreamConfig()
        self.transport = Transport(self.config, http, cancel_event)

    def extract(self, session: AuthSession) -> FeedResult:
        # private cookie copy: the session itself stays untouched
        cookies = list(session.cookies)

        _LOGGER.info("Fetching course table page")
        response, _ = self.transport.follow(self.config.course_table_url, cookies)
        if response.status_code >= 400:
            raise FeedUnavailable(f"Course table page returned HTTP {response.status_code}")

        html = response.text
        soup = pages.parse(html)
        if pages.is_login_form(soup):
            raise FeedUnavailable(
                "Course table page shows a login form; the session is not authenticated.",
                page_title=pages.page_title(soup),
                excerpt=pages.excerpt(html),
            )

        structured_error: Exception | None = None
        ids = find_identifiers(html)
        if ids is not None:
            try:
                return self._structured(ids, cookies)
            except (FeedUnavailable, MalformedFeedData) as e:
                _LOGGER.warning("Structured feed failed (%s); trying embedded data", e)
                structured_error = e

        try:
            records = find_embedded_lessons(html)
        except MalformedFeedData:
            if structured_error is not None:
                raise structured_error
            raise

        if records is not None:
            _LOGGER.info("Found %d lessons embedded in the page", len(records))
            return FeedResult(records=records, strategy="embedded", payload=records)

        if structured_error is not None:
            raise structured_error

        raise FeedUnavailable(
            "Login succeeded, but no schedule data was found on the course table page.",
            page_title=pages.page_title(soup),
            excerpt=pages.excerpt(html),
        )

    def _structured(self, ids: FeedIdentifiers, cookies: list) -> FeedResult:
        params: dict[str, str] = {"bizTypeId": ids.biz_type_id, "studentId": ids.student_id}
        if ids.semester_id:
            params["semesterId"] = ids.semester_id

        _LOGGER.info("Found student identifier, fetching structured data")
        response = self.transport.get(
            self.config.data_url,
            cookies,
            params=params,
            headers={"Accept": "application/json, text/javascript, */*", "X-Requested-With": "XMLHttpRequest"},
        )
        if response.status_code != 200:
            raise FeedUnavailable(f"Data endpoint returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedFeedData("Data endpoint did not return JSON") from e

        lessons = find_lessons(payload)
        if lessons is None:
            raise MalformedFeedData("Data endpoint response holds no lesson list")

        records = _only_records(lessons)
        _LOGGER.info("Structured feed returned %d lessons", len(records))
        return FeedResult(records=records, strategy="structured", payload=payload)
