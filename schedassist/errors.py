"""
Error taxonomy of the import pipeline.

Every failure carries a machine-readable `reason` so callers can branch on
the kind of failure instead of on message text. None of these is fatal:
each one is recoverable by retrying or by correcting the input.
"""

from __future__ import annotations

from typing import Any


class ScheduleImportError(Exception):
    reason = "ScheduleImportError"


class LoginPageParseError(ScheduleImportError):
    """The CAS login page carried neither a login ticket nor an execution token."""

    reason = "LoginPageParseError"

    def __init__(self, message: str, page_title: str = "", excerpt: str = "") -> None:
        super().__init__(message)
        self.page_title = page_title
        self.excerpt = excerpt


class InvalidCredentials(ScheduleImportError):
    reason = "InvalidCredentials"


class CaptchaRequired(ScheduleImportError):
    """
    Not a real failure: the upstream wants a solved image challenge.

    `session` holds the cookies and tokens captured so far; hand it back
    together with the code to resume instead of starting over.
    """

    reason = "CaptchaRequired"

    def __init__(self, message: str, image: bytes, mime_type: str, session: Any) -> None:
        super().__init__(message)
        self.image = image
        self.mime_type = mime_type
        self.session = session


class UnexpectedUpstreamResponse(ScheduleImportError):
    reason = "UnexpectedUpstreamResponse"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ScheduleImportError):
    reason = "NetworkError"


class FeedUnavailable(ScheduleImportError):
    reason = "FeedUnavailable"

    def __init__(self, message: str, page_title: str = "", excerpt: str = "") -> None:
        super().__init__(message)
        self.page_title = page_title
        self.excerpt = excerpt


class MalformedFeedData(ScheduleImportError):
    reason = "MalformedFeedData"


class LoginCancelled(ScheduleImportError):
    reason = "LoginCancelled"
