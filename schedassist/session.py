"""
Authentication state carried through the CAS login.

An AuthSession is created by (or handed to) exactly one login flow. It is
never stored at module level and never shared between attempts; once the
feed has been fetched or the attempt failed it is simply dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


Cookie = tuple[str, str]


class LoginState:
    INIT = "INIT"
    TOKENS_FETCHED = "TOKENS_FETCHED"
    CREDENTIALS_SUBMITTED = "CREDENTIALS_SUBMITTED"
    CAPTCHA_REQUIRED = "CAPTCHA_REQUIRED"
    REDIRECTING = "REDIRECTING"
    TARGET_AUTHENTICATED = "TARGET_AUTHENTICATED"
    DONE = "DONE"
    FAILED = "FAILED"


def merge_cookies(cookies: list[Cookie], new: Iterable[Cookie]) -> list[Cookie]:
    """
    Merge (name, value) pairs into `cookies` in place and return it.

    A cookie that is set again keeps its position and takes the new value;
    unseen cookies are appended.
    """
    for name, value in new:
        for i, (existing, _) in enumerate(cookies):
            if existing == name:
                cookies[i] = (name, value)
                break
        else:
            cookies.append((name, value))
    return cookies


def cookie_header(cookies: Iterable[Cookie]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies)


@dataclass
class AuthSession:
    cookies: list[Cookie] = field(default_factory=list)
    login_ticket: str | None = None
    execution_token: str | None = None
    event_id: str = "submit"
    # base64 image, mime type and page url of a pending challenge
    captcha_context: dict[str, str] | None = None
    state: str = LoginState.INIT
    failure_reason: str | None = None
    current_url: str | None = None

    def merge_cookies(self, new: Iterable[Cookie]) -> None:
        merge_cookies(self.cookies, new)

    def cookie_header(self) -> str:
        return cookie_header(self.cookies)

    def cookie_names(self) -> list[str]:
        return [name for name, _ in self.cookies]

    def to_dict(self) -> dict[str, Any]:
        return {
            "cookies": [list(c) for c in self.cookies],
            "login_ticket": self.login_ticket,
            "execution_token": self.execution_token,
            "event_id": self.event_id,
            "captcha_context": dict(self.captcha_context) if self.captcha_context else None,
            "state": self.state,
            "failure_reason": self.failure_reason,
            "current_url": self.current_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthSession":
        cookies: list[Cookie] = []
        for item in data.get("cookies") or []:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                cookies.append((str(item[0]), str(item[1])))
        ctx = data.get("captcha_context")
        return cls(
            cookies=cookies,
            login_ticket=data.get("login_ticket"),
            execution_token=data.get("execution_token"),
            event_id=data.get("event_id") or "submit",
            captcha_context=dict(ctx) if isinstance(ctx, dict) else None,
            state=data.get("state") or LoginState.INIT,
            failure_reason=data.get("failure_reason"),
            current_url=data.get("current_url"),
        )
