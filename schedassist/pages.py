"""
HTML scraping helpers for the CAS login pages.

The upstream markup is not a contract: field names move between `name` and
`id` attributes, tokens sometimes only appear inside scripts, and redirects
are sometimes done by JavaScript instead of HTTP. Every lookup here is
therefore an ordered list of small named strategies, tried in sequence;
the first one that yields a non-empty value wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from bs4 import BeautifulSoup


_LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Strategy plumbing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    extract: Callable[[BeautifulSoup, str], str | None]

    def __call__(self, soup: BeautifulSoup, html: str) -> str | None:
        value = self.extract(soup, html)
        if value is None:
            return None
        value = value.strip()
        return value or None


def _input_value(selector: str) -> Callable[[BeautifulSoup, str], str | None]:
    def extract(soup: BeautifulSoup, html: str) -> str | None:
        el = soup.select_one(selector)
        if el is None:
            return None
        value = el.get("value")
        return value if isinstance(value, str) else None

    return extract


def _regex(pattern: str, flags: int = 0) -> Callable[[BeautifulSoup, str], str | None]:
    compiled = re.compile(pattern, flags)

    def extract(soup: BeautifulSoup, html: str) -> str | None:
        m = compiled.search(html)
        return m.group(1) if m else None

    return extract


def first_match(
    strategies: Sequence[ExtractionStrategy],
    soup: BeautifulSoup,
    html: str,
) -> tuple[str | None, str | None]:
    """
    Run strategies in order. Returns (value, strategy name) or (None, None).
    """
    for strategy in strategies:
        value = strategy(soup, html)
        if value:
            return value, strategy.name
    return None, None


LOGIN_TICKET_STRATEGIES: list[ExtractionStrategy] = [
    ExtractionStrategy("lt-by-name", _input_value('input[name="lt"]')),
    ExtractionStrategy("lt-by-id", _input_value("input#lt")),
    ExtractionStrategy(
        "lt-raw-input",
        _regex(r"""<input[^>]*name=["']lt["'][^>]*value=["']([^"']+)["']""", re.I),
    ),
    ExtractionStrategy(
        "lt-raw-input-reversed",
        _regex(r"""<input[^>]*value=["']([^"']+)["'][^>]*name=["']lt["']""", re.I),
    ),
    ExtractionStrategy("lt-pattern", _regex(r"(LT-[A-Za-z0-9\-._]+)")),
]

EXECUTION_STRATEGIES: list[ExtractionStrategy] = [
    ExtractionStrategy("execution-by-name", _input_value('input[name="execution"]')),
    ExtractionStrategy("execution-by-id", _input_value("input#execution")),
    ExtractionStrategy(
        "execution-raw-input",
        _regex(r"""<input[^>]*name=["']execution["'][^>]*value=["']([^"']+)["']""", re.I),
    ),
    ExtractionStrategy(
        "execution-raw-input-reversed",
        _regex(r"""<input[^>]*value=["']([^"']+)["'][^>]*name=["']execution["']""", re.I),
    ),
    ExtractionStrategy(
        "execution-script",
        _regex(r"""["']?execution["']?\s*[:=]\s*["']([^"']+)["']""", re.I),
    ),
    ExtractionStrategy("execution-pattern", _regex(r"\b(e[0-9]+s[0-9]+)\b")),
]

EVENT_ID_STRATEGIES: list[ExtractionStrategy] = [
    ExtractionStrategy("event-id-by-name", _input_value('input[name="_eventId"]')),
]


# ---------------------------------------------------------------------------
# Page inspection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginTokens:
    login_ticket: str | None
    execution_token: str | None
    event_id: str = "submit"

    @property
    def found(self) -> bool:
        return bool(self.login_ticket or self.execution_token)


def parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_login_tokens(html: str, soup: BeautifulSoup | None = None) -> LoginTokens:
    soup = soup if soup is not None else parse(html)

    lt, lt_strategy = first_match(LOGIN_TICKET_STRATEGIES, soup, html)
    execution, exec_strategy = first_match(EXECUTION_STRATEGIES, soup, html)
    event_id, _ = first_match(EVENT_ID_STRATEGIES, soup, html)

    _LOGGER.debug("login ticket via %s, execution via %s", lt_strategy, exec_strategy)
    return LoginTokens(login_ticket=lt, execution_token=execution, event_id=event_id or "submit")


def page_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)
    return "No Title"


def excerpt(html: str, limit: int = 2000) -> str:
    return (html or "")[:limit]


LOGIN_FORM_SELECTOR = "form#fm1, input[name='execution'], input[name='password'], input[type='password']"


def is_login_form(soup: BeautifulSoup) -> bool:
    return soup.select_one(LOGIN_FORM_SELECTOR) is not None


DEFAULT_LOGIN_ERROR = "Invalid credentials or verification required."


def error_message(soup: BeautifulSoup) -> str:
    for selector in ("#msg", ".errors", "#errorMsg"):
        el = soup.select_one(selector)
        if el is not None:
            text = el.get_text(" ", strip=True)
            if text:
                return text
    return DEFAULT_LOGIN_ERROR


_CAPTCHA_SRC_PATTERNS = [
    re.compile(r"""src=["']([^"']*validateCode[^"']*)["']""", re.I),
    re.compile(r"""src=["']([^"']*vcode[^"']*)["']""", re.I),
]


def find_captcha_src(soup: BeautifulSoup, html: str) -> str | None:
    """
    Return the (possibly relative) image URL of a CAPTCHA challenge, if any.
    """
    img = soup.select_one("img#validateImg")
    if img is not None and img.get("src"):
        return str(img["src"])

    lowered = html.lower()
    if "validatecode" not in lowered and "vcode" not in lowered:
        return None

    for pattern in _CAPTCHA_SRC_PATTERNS:
        m = pattern.search(html)
        if m:
            return m.group(1)
    return None


# ---------------------------------------------------------------------------
# HTML-level redirects
# ---------------------------------------------------------------------------

_SSO_MARKERS = ('id="sso_redirect"', "id='sso_redirect'")

_SSO_PATTERNS = [
    re.compile(r"""(?:location\.href|window\.location)\s*=\s*['"]([^'"]+)['"]"""),
    re.compile(r"""location\.replace\(['"]([^'"]+)['"]\)"""),
    re.compile(r"""['"](https?://[^'"]+)['"]"""),
]

_META_REFRESH = re.compile(
    r"""<meta\s+http-equiv=["']refresh["']\s+content=["']\d+;\s*url=([^"']+)["']""", re.I
)

_JS_PATTERNS = [
    re.compile(r"""(?:window\.|self\.|top\.)?location(?:\.href)?\s*=\s*["']([^"']+)["']"""),
    re.compile(r"""(?:window\.|self\.|top\.)?location\.(?:replace|assign)\s*\(\s*["']([^"']+)["']\s*\)"""),
    re.compile(r"""window\.navigate\s*\(\s*["']([^"']+)["']\s*\)"""),
]


def find_page_redirect(html: str) -> str | None:
    """
    Detect a redirect performed by the page itself: SSO loading page,
    meta refresh or a JavaScript location change. Returns the raw target.
    """
    if not html:
        return None

    if any(marker in html for marker in _SSO_MARKERS):
        for pattern in _SSO_PATTERNS:
            m = pattern.search(html)
            if m:
                return m.group(1)

    m = _META_REFRESH.search(html)
    if m:
        return m.group(1).strip()

    for pattern in _JS_PATTERNS:
        m = pattern.search(html)
        if m:
            return m.group(1)

    return None
