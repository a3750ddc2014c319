"""
Upstream endpoints and HTTP settings.

Defaults target the USTC passport (CAS) and the JW timetable system.
Every value can be overridden through SCHEDASSIST_* environment variables;
the CLI loads a .env file before reading them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import quote


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class UpstreamConfig:
    cas_login_url: str = "https://passport.ustc.edu.cn/login"
    service_url: str = "https://jw.ustc.edu.cn/ucas-sso/login"
    course_table_url: str = "https://jw.ustc.edu.cn/for-std/course-table"
    data_url: str = "https://jw.ustc.edu.cn/for-std/course-table/get-data"
    validate_url: str = "https://passport.ustc.edu.cn/serviceValidate"
    # seconds, applied to every single HTTP step
    timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    max_page_redirects: int = 10
    extra_headers: dict[str, str] = field(
        default_factory=lambda: {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
        }
    )

    @property
    def login_url(self) -> str:
        return f"{self.cas_login_url}?service={quote(self.service_url, safe='')}"

    def base_headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        headers.update(self.extra_headers)
        return headers

    @classmethod
    def from_env(cls) -> "UpstreamConfig":
        defaults = cls()
        return cls(
            cas_login_url=os.getenv("SCHEDASSIST_CAS_LOGIN_URL", defaults.cas_login_url),
            service_url=os.getenv("SCHEDASSIST_SERVICE_URL", defaults.service_url),
            course_table_url=os.getenv("SCHEDASSIST_COURSE_TABLE_URL", defaults.course_table_url),
            data_url=os.getenv("SCHEDASSIST_DATA_URL", defaults.data_url),
            validate_url=os.getenv("SCHEDASSIST_VALIDATE_URL", defaults.validate_url),
            timeout=float(os.getenv("SCHEDASSIST_TIMEOUT", str(defaults.timeout))),
            user_agent=os.getenv("SCHEDASSIST_USER_AGENT", defaults.user_agent),
        )
