"""
HTTP plumbing shared by the login flow and the feed extractor.

Requests are never auto-redirected: every hop is made explicitly so the
cookies set along the way can be captured and carried forward. Cookies live
in a caller-owned list and are sent as an explicit Cookie header; nothing
here keeps state between calls except the objects handed in.
"""

from __future__ import annotations

import logging
import threading
from typing import Any
from urllib.parse import urljoin

import requests

from schedassist import pages
from schedassist.config import UpstreamConfig
from schedassist.errors import LoginCancelled, NetworkError
from schedassist.session import Cookie, cookie_header, merge_cookies


_LOGGER = logging.getLogger(__name__)

REDIRECT_STATUSES = (301, 302, 303, 307, 308)


def response_cookies(response: requests.Response) -> list[Cookie]:
    return [(name, value or "") for name, value in response.cookies.items()]


def redirect_location(response: requests.Response, base_url: str) -> str | None:
    if response.status_code not in REDIRECT_STATUSES:
        return None
    location = response.headers.get("Location")
    if not location:
        return None
    return urljoin(base_url, location)


class Transport:
    """
    Thin wrapper around a requests-compatible client.

    `http` defaults to the requests module itself; tests pass any object with
    compatible get()/post() methods.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        http: Any = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.http = http if http is not None else requests
        self.cancel_event = cancel_event

    def checkpoint(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise LoginCancelled("Login attempt was cancelled")

    def _headers(self, cookies: list[Cookie], extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = self.config.base_headers()
        if cookies:
            headers["Cookie"] = cookie_header(cookies)
        if extra:
            headers.update(extra)
        return headers

    def get(
        self,
        url: str,
        cookies: list[Cookie],
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        self.checkpoint()
        try:
            response = self.http.get(
                url,
                params=params,
                headers=self._headers(cookies, headers),
                timeout=self.config.timeout,
                allow_redirects=False,
            )
        except requests.Timeout as e:
            raise NetworkError(f"Timed out requesting {url}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        merge_cookies(cookies, response_cookies(response))
        return response

    def post(
        self,
        url: str,
        cookies: list[Cookie],
        data: dict[str, str],
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        self.checkpoint()
        extra = {"Content-Type": "application/x-www-form-urlencoded"}
        if headers:
            extra.update(headers)
        try:
            response = self.http.post(
                url,
                data=data,
                headers=self._headers(cookies, extra),
                timeout=self.config.timeout,
                allow_redirects=False,
            )
        except requests.Timeout as e:
            raise NetworkError(f"Timed out posting to {url}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        merge_cookies(cookies, response_cookies(response))
        return response

    def follow(self, url: str, cookies: list[Cookie]) -> tuple[requests.Response, str]:
        """
        GET `url` and follow HTTP and HTML-level redirects by hand.

        Stops at an error status, at a page that shows a login form, when the
        target equals the current URL or after max_page_redirects hops.
        Returns the final response and its URL.
        """
        current = url
        response = self.get(current, cookies)

        for hop in range(self.config.max_page_redirects):
            target = redirect_location(response, current)
            if target is None:
                if response.status_code >= 400:
                    break
                soup = pages.parse(response.text)
                if pages.is_login_form(soup):
                    break
                raw = pages.find_page_redirect(response.text)
                if not raw:
                    break
                target = urljoin(current, raw)

            if target == current:
                break

            _LOGGER.debug("following redirect %d: %s", hop + 1, target)
            current = target
            response = self.get(current, cookies)

        return response, current
