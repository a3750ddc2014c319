"""
The one operation the UI and storage layers call: import a student's
timetable from upstream.

    result = import_from_upstream(creds)
    if isinstance(result, CaptchaChallenge):
        # show result.image, ask for the code, then
        result = import_from_upstream(creds, code, prior_session=result.session)

Every other outcome is either an ImportResult or one of the typed errors in
schedassist.errors.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from schedassist.cas import CasLoginFlow
from schedassist.config import UpstreamConfig
from schedassist.conflicts import detect
from schedassist.errors import CaptchaRequired
from schedassist.feed import FeedExtractor
from schedassist.model import ScheduleEntry
from schedassist.normalize import normalize
from schedassist.session import AuthSession
from schedassist.timeslots import default_semester_start


_LOGGER = logging.getLogger(__name__)

@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass
class ImportResult:
    entries: list[ScheduleEntry]
    strategy: str
    conflicts: list[str] = field(default_factory=list)
    # decoded feed document, re-importable with normalize_payload
    payload: Any = None


@dataclass
class CaptchaChallenge:
    image: bytes
    mime_type: str
    session: AuthSession
    message: str = ""


def import_from_upstream(
    credentials: Credentials,
    captcha_answer: str | None = None,
    prior_session: AuthSession | None = None,
    *,
    semester_start: date | None = None,
    config: UpstreamConfig | None = None,
    http: Any = None,
    cancel_event: threading.Event | None = None,
) -> ImportResult | CaptchaChallenge:
    config = config or UpstreamConfig()
    semester_start = semester_start or default_semester_start(date.today())

    flow = CasLoginFlow(config=config, http=http, session=prior_session, cancel_event=cancel_event)
    try:
        session = flow.run(credentials.username, credentials.password, captcha_answer)
    except CaptchaRequired as e:
        return CaptchaChallenge(image=e.image, mime_type=e.mime_type, session=e.session, message=str(e))

    feed = FeedExtractor(config=config, http=http, cancel_event=cancel_event).extract(session)
    entries = normalize(feed.records, semester_start)
    _LOGGER.info("Imported %d entries via %s feed", len(entries), feed.strategy)

    return ImportResult(
        entries=entries,
        strategy=feed.strategy,
        conflicts=detect(entries),
        payload=feed.payload,
    )
