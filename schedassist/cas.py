"""
CAS login state machine.

    INIT -> TOKENS_FETCHED -> CREDENTIALS_SUBMITTED -> REDIRECTING
         -> TARGET_AUTHENTICATED -> DONE

with a resumable CAPTCHA_REQUIRED branch after token retrieval or after
credential submission, and FAILED reachable from every state.

The upstream does not have an API contract: success and failure are
signalled by status codes combined with what the returned page contains.
All of that classification lives in classify_submission() so it is decided
in one place.

No retries happen here. Retrying a rejected password is never correct;
whether to retry a network failure is the caller's decision.
"""

from __future__ import annotations

import base64
import logging
import re
import threading
from typing import Any
from urllib.parse import urljoin, urlsplit

import requests

from schedassist import pages
from schedassist.config import UpstreamConfig
from schedassist.errors import (
    CaptchaRequired,
    InvalidCredentials,
    LoginPageParseError,
    ScheduleImportError,
    UnexpectedUpstreamResponse,
)
from schedassist.session import AuthSession, LoginState
from schedassist.transport import REDIRECT_STATUSES, Transport, redirect_location


_LOGGER = logging.getLogger(__name__)

_CAS_USER = re.compile(r"<cas:user>\s*(.*?)\s*</cas:user>", re.S)
_CAS_FAILURE = re.compile(r"<cas:authenticationFailure[^>]*>(.*?)</cas:authenticationFailure>", re.S)


class CasLoginFlow:
    """
    Drives one AuthSession through the CAS exchange.

    Pass a session previously left in CAPTCHA_REQUIRED to resume it with the
    solved code; pass nothing to start from INIT.
    """

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        http: Any = None,
        session: AuthSession | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config or UpstreamConfig()
        self.transport = Transport(self.config, http, cancel_event)
        self.session = session if session is not None else AuthSession()

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run(self, username: str, password: str, captcha_code: str | None = None) -> AuthSession:
        state = self.session.state
        if state not in (LoginState.INIT, LoginState.CAPTCHA_REQUIRED):
            raise ValueError(f"Cannot start a login from state {state}")
        if state == LoginState.CAPTCHA_REQUIRED and not self.session.captcha_context:
            raise ValueError("Session is waiting for a CAPTCHA but carries no challenge")

        try:
            if state == LoginState.CAPTCHA_REQUIRED:
                if not captcha_code:
                    raise self._pending_captcha()
                _LOGGER.info("Resuming CAS login with CAPTCHA answer")
            else:
                self.fetch_tokens()
                if self.session.captcha_context:
                    raise self._pending_captcha()

            response = self.submit_credentials(username, password, captcha_code)
            location = self.classify_submission(response)
            self.authenticate_target(location)
        except CaptchaRequired:
            raise
        except ScheduleImportError as e:
            self.session.state = LoginState.FAILED
            self.session.failure_reason = e.reason
            raise

        self.session.state = LoginState.DONE
        _LOGGER.info("CAS login finished")
        return self.session

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def fetch_tokens(self) -> None:
        """
        INIT -> TOKENS_FETCHED. Records a CAPTCHA challenge when the page has one.
        """
        _LOGGER.info("CAS step 1: fetching login page")
        response, url = self.transport.follow(self.config.login_url, self.session.cookies)
        self.session.current_url = url

        if response.status_code >= 400:
            raise UnexpectedUpstreamResponse(
                f"CAS login page returned HTTP {response.status_code}", response.status_code
            )

        html = response.text
        soup = pages.parse(html)
        tokens = pages.extract_login_tokens(html, soup)
        if not tokens.found:
            title = pages.page_title(soup)
            _LOGGER.error("CAS login page parsing failed, title: %s", title)
            raise LoginPageParseError(
                "CAS login page parsing failed; the page layout may have changed.",
                page_title=title,
                excerpt=pages.excerpt(html),
            )

        self.session.login_ticket = tokens.login_ticket
        self.session.execution_token = tokens.execution_token
        self.session.event_id = tokens.event_id
        self.session.state = LoginState.TOKENS_FETCHED

        src = pages.find_captcha_src(soup, html)
        if src:
            _LOGGER.info("CAPTCHA challenge present on login page")
            self._capture_captcha(src, url)

    def submit_credentials(
        self, username: str, password: str, captcha_code: str | None = None
    ) -> requests.Response:
        """
        TOKENS_FETCHED / CAPTCHA_REQUIRED -> CREDENTIALS_SUBMITTED.
        Absent tokens are left out of the form instead of sent empty.
        """
        _LOGGER.info("CAS step 2: submitting credentials")
        form = {"username": username, "password": password}
        if self.session.login_ticket:
            form["lt"] = self.session.login_ticket
        if self.session.execution_token:
            form["execution"] = self.session.execution_token
        form["_eventId"] = self.session.event_id or "submit"
        form["button"] = "login"
        if captcha_code:
            form["vcode"] = captcha_code

        parts = urlsplit(self.config.login_url)
        response = self.transport.post(
            self.config.login_url,
            self.session.cookies,
            form,
            headers={"Referer": self.config.login_url, "Origin": f"{parts.scheme}://{parts.netloc}"},
        )
        self.session.state = LoginState.CREDENTIALS_SUBMITTED
        self.session.captcha_context = None
        return response

    def classify_submission(self, response: requests.Response) -> str:
        """
        Decide what the credential POST meant. Returns the redirect target
        on success, raises the typed failure otherwise.
        """
        login_url = self.config.login_url
        status = response.status_code

        location = redirect_location(response, login_url)
        if location:
            _LOGGER.info("Credentials accepted, redirecting to %s", urlsplit(location).netloc)
            self.session.state = LoginState.REDIRECTING
            return location

        if status in REDIRECT_STATUSES:
            raise UnexpectedUpstreamResponse(f"HTTP {status} without a Location header", status)

        if status != 200:
            raise UnexpectedUpstreamResponse(f"Unexpected HTTP {status} from CAS login", status)

        html = response.text
        soup = pages.parse(html)

        src = pages.find_captcha_src(soup, html)
        if src:
            tokens = pages.extract_login_tokens(html, soup)
            if tokens.login_ticket:
                self.session.login_ticket = tokens.login_ticket
            if tokens.execution_token:
                self.session.execution_token = tokens.execution_token
            if self._capture_captcha(src, login_url):
                raise self._pending_captcha()

        if pages.is_login_form(soup):
            message = pages.error_message(soup)
            _LOGGER.info("CAS rejected the credentials")
            raise InvalidCredentials(message)

        # success page that redirects by script instead of by status code
        raw = pages.find_page_redirect(html)
        if raw:
            target = urljoin(login_url, raw)
            if target != login_url:
                _LOGGER.info("CAS answered 200 with a page redirect, treating as success")
                self.session.state = LoginState.REDIRECTING
                return target

        raise UnexpectedUpstreamResponse("CAS answered 200 without a login form or redirect", status)

    def authenticate_target(self, location: str) -> None:
        """
        REDIRECTING -> TARGET_AUTHENTICATED: present the ticket to the target system.
        """
        _LOGGER.info("CAS step 3: handing over to %s", urlsplit(location).netloc)
        response = self.transport.get(location, self.session.cookies)
        if response.status_code >= 400:
            raise UnexpectedUpstreamResponse(
                f"Target system returned HTTP {response.status_code}", response.status_code
            )
        self.session.current_url = location
        self.session.state = LoginState.TARGET_AUTHENTICATED

    # ------------------------------------------------------------------
    # CAPTCHA branch
    # ------------------------------------------------------------------

    def _capture_captcha(self, src: str, page_url: str) -> bool:
        image_url = urljoin(page_url, src)
        response = self.transport.get(image_url, self.session.cookies, headers={"Referer": page_url})
        if response.status_code != 200 or not response.content:
            _LOGGER.warning("Could not load CAPTCHA image (HTTP %s)", response.status_code)
            return False

        mime_type = (response.headers.get("Content-Type") or "").split(";")[0].strip()
        self.session.captcha_context = {
            "image": base64.b64encode(response.content).decode("ascii"),
            "mime_type": mime_type or "image/jpeg",
            "page_url": page_url,
        }
        return True

    def _pending_captcha(self) -> CaptchaRequired:
        ctx = self.session.captcha_context or {}
        self.session.state = LoginState.CAPTCHA_REQUIRED
        return CaptchaRequired(
            "Security check required. Please enter the code.",
            image=base64.b64decode(ctx.get("image", "")),
            mime_type=ctx.get("mime_type", "image/jpeg"),
            session=self.session,
        )


def validate_ticket(
    ticket: str,
    service: str | None = None,
    config: UpstreamConfig | None = None,
    http: Any = None,
    cancel_event: threading.Event | None = None,
) -> str:
    """
    Check a service ticket against CAS serviceValidate and return the
    student id it was issued to (upper-cased).

    Raises InvalidCredentials when CAS refuses the ticket and
    UnexpectedUpstreamResponse when the answer cannot be read.
    """
    ticket = (ticket or "").strip()
    if not ticket:
        raise ValueError("ticket must not be empty")

    config = config or UpstreamConfig()
    transport = Transport(config, http, cancel_event)
    response = transport.get(
        config.validate_url,
        [],
        params={"ticket": ticket, "service": service or config.service_url},
    )
    if response.status_code >= 500:
        raise UnexpectedUpstreamResponse(
            f"CAS validation returned HTTP {response.status_code}", response.status_code
        )

    body = response.text
    if "cas:authenticationSuccess" not in body:
        failure = _CAS_FAILURE.search(body)
        message = failure.group(1).strip() if failure else ""
        _LOGGER.info("CAS refused the ticket")
        raise InvalidCredentials(message or "CAS validation failed")

    user = _CAS_USER.search(body)
    if not user or not user.group(1):
        raise UnexpectedUpstreamResponse("Could not parse student id from CAS response", response.status_code)
    return user.group(1).upper()
