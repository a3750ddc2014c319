"""
Tests for CLI entry points.

Every test points --store at a temporary directory so no real user data is
touched. Commands exit through SystemExit with their return code.
"""

import io
import json
import os
import tempfile
import unittest
from datetime import datetime
from functools import partial
from pathlib import Path
from unittest.mock import patch

from rich.console import Console

from fakehttp import FakeHttp, make_response
from schedassist.cas import validate_ticket
from schedassist.cli import main
from schedassist.importer import import_from_upstream
from schedassist.storage import JsonFileStore, load_user_data
from upstream_pages import (
    CAPTCHA_BYTES,
    CAPTCHA_URL,
    COURSE_TABLE_URL,
    DATA_URL,
    FEED_JSON,
    FEED_PAGE_WITH_IDS,
    LOGIN_PAGE,
    LOGIN_PAGE_WITH_CAPTCHA,
    LOGIN_URL,
    REJECTED_PAGE,
    TICKET_URL,
    VALIDATE_URL,
    VALIDATION_FAILURE,
    VALIDATION_SUCCESS,
)

STUDENT = "PB21000001"


class TestCLI(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.store = JsonFileStore(self.dir / "users")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def run_cli(self, *argv: str) -> int:
        with self.assertRaises(SystemExit) as ctx:
            main(["--store", str(self.dir / "users"), *argv])
        return ctx.exception.code

    def entries(self):
        return load_user_data(self.store, STUDENT)[0]

    def test_student_is_required(self) -> None:
        self.assertNotEqual(self.run_cli("list"), 0)

    def test_add_by_periods(self) -> None:
        code = self.run_cli("add", "-s", STUDENT, "--title", "Linear Algebra", "--date", "2025-09-01", "--periods", "3-4")
        self.assertEqual(code, 0)

        [entry] = self.entries()
        self.assertEqual(entry.start_time, datetime(2025, 9, 1, 9, 45))
        self.assertEqual(entry.end_time, datetime(2025, 9, 1, 11, 20))
        self.assertEqual(entry.category, "course")

    def test_add_by_named_periods(self) -> None:
        code = self.run_cli("add", "-s", STUDENT, "--title", "Seminar", "--date", "2025-09-01", "--periods", "morning-long")
        self.assertEqual(code, 0)

        [entry] = self.entries()
        self.assertEqual(entry.start_time, datetime(2025, 9, 1, 9, 45))
        self.assertEqual(entry.end_time, datetime(2025, 9, 1, 12, 10))

    def test_add_rejects_bad_input(self) -> None:
        base = ("add", "-s", STUDENT, "--date", "2025-09-01")
        self.assertEqual(self.run_cli(*base, "--title", "  ", "--periods", "1-2"), 1)
        self.assertEqual(self.run_cli(*base, "--title", "X", "--periods", "3-20"), 1)
        self.assertEqual(self.run_cli(*base, "--title", "X", "--periods", "5-3"), 1)
        self.assertEqual(self.run_cli(*base, "--title", "X", "--periods", "brunch"), 1)
        self.assertEqual(self.run_cli(*base, "--title", "X", "--start", "10:00", "--end", "09:00"), 1)
        self.assertEqual(self.run_cli(*base, "--title", "X"), 1)
        self.assertEqual(self.entries(), [])

    def test_add_list_conflicts_remove(self) -> None:
        self.run_cli("add", "-s", STUDENT, "--title", "Physics", "--date", "2025-09-01", "--periods", "3-4")
        code = self.run_cli(
            "add", "-s", STUDENT, "--title", "Club", "--date", "2025-09-01",
            "--start", "10:00", "--end", "11:00", "--category", "activity",
        )
        # overlapping entries are stored, only warned about
        self.assertEqual(code, 0)
        self.assertEqual(len(self.entries()), 2)

        self.assertEqual(self.run_cli("list", "-s", STUDENT), 0)
        self.assertEqual(self.run_cli("conflicts", "-s", STUDENT), 0)

        club = next(e for e in self.entries() if e.title == "Club")
        self.assertEqual(self.run_cli("remove", "-s", STUDENT, club.id), 0)
        self.assertEqual([e.title for e in self.entries()], ["Physics"])

        # unknown ids are reported, not an error
        self.assertEqual(self.run_cli("remove", "-s", STUDENT, "no-such-id"), 0)
        self.assertEqual(len(self.entries()), 1)

    def test_import_json_merges_by_content(self) -> None:
        doc = self.dir / "lessons.json"
        doc.write_text(
            json.dumps(
                {
                    "lessons": [
                        {
                            "courseName": "Linear Algebra",
                            "weeks": [1, 2],
                            "weekday": 2,
                            "startUnit": 1,
                            "endUnit": 2,
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )
        argv = ("import-json", "-s", STUDENT, str(doc), "--semester-start", "2025-09-01")

        self.assertEqual(self.run_cli(*argv), 0)
        first = self.entries()
        self.assertEqual([e.start_time for e in first], [datetime(2025, 9, 2, 7, 50), datetime(2025, 9, 9, 7, 50)])

        self.assertEqual(self.run_cli(*argv), 0)
        self.assertEqual([e.id for e in self.entries()], [e.id for e in first])

    def test_import_json_bad_files(self) -> None:
        self.assertEqual(self.run_cli("import-json", "-s", STUDENT, str(self.dir / "missing.json")), 1)

        doc = self.dir / "lessons.json"
        doc.write_text("[]", encoding="utf-8")
        self.assertEqual(self.run_cli("import-json", "-s", STUDENT, str(doc), "--semester-start", "09/01/2025"), 1)

        broken = self.dir / "broken.json"
        broken.write_text("{", encoding="utf-8")
        self.assertEqual(self.run_cli("import-json", "-s", STUDENT, str(broken)), 1)

        empty = self.dir / "empty.json"
        empty.write_text("[]", encoding="utf-8")
        self.assertEqual(self.run_cli("import-json", "-s", STUDENT, str(empty)), 1)

    def test_export(self) -> None:
        out = self.dir / "out.ics"
        self.assertEqual(self.run_cli("export", "-s", STUDENT, str(out)), 0)
        self.assertFalse(out.exists())

        self.run_cli("add", "-s", STUDENT, "--title", "Physics", "--date", "2025-09-01", "--periods", "6-7")
        self.assertEqual(self.run_cli("export", "-s", STUDENT, str(out)), 0)
        self.assertIn("SUMMARY:Physics", out.read_text(encoding="utf-8"))


class TestImportCommand(unittest.TestCase):
    """
    `import` against canned upstream responses. The password comes from the
    environment and verification codes from a patched input().
    """

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.store = JsonFileStore(self.dir / "users")
        self.http = FakeHttp()
        self.out = io.StringIO()

        for p in (
            patch.dict(os.environ, {"SCHEDASSIST_PASSWORD": "secret"}),
            patch("schedassist.cli.import_from_upstream", partial(import_from_upstream, http=self.http)),
            patch("schedassist.cli.validate_ticket", partial(validate_ticket, http=self.http)),
            patch("schedassist.cli.console", Console(file=self.out, width=200)),
        ):
            p.start()
            self.addCleanup(p.stop)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def run_import(self, *extra: str, code: str = "ab12") -> int:
        self.prompts = 0

        def answer(prompt: str = "") -> str:
            self.prompts += 1
            return code

        argv = [
            "--store", str(self.dir / "users"),
            "import", "-s", STUDENT,
            "--semester-start", "2025-09-01",
            "--captcha-file", str(self.dir / "captcha.jpg"),
            *extra,
        ]
        with patch("builtins.input", answer), self.assertRaises(SystemExit) as ctx:
            main(argv)
        return ctx.exception.code

    def add_handoff_and_feed(self) -> None:
        self.http.add("POST", LOGIN_URL, make_response(302, "", headers={"Location": TICKET_URL}))
        self.http.add("GET", TICKET_URL, make_response(200, "ok", cookies={"SESSION": "jw-1"}))
        self.http.add("GET", COURSE_TABLE_URL, make_response(200, FEED_PAGE_WITH_IDS))
        self.http.add("GET", DATA_URL, make_response(200, FEED_JSON))

    def entries(self):
        return load_user_data(self.store, STUDENT)[0]

    def test_import_stores_and_merges(self) -> None:
        self.http.add("GET", LOGIN_URL, make_response(200, LOGIN_PAGE))
        self.add_handoff_and_feed()

        self.assertEqual(self.run_import(), 0)
        first = self.entries()
        self.assertEqual(len(first), 4)
        self.assertEqual(first[0].start_time, datetime(2025, 9, 1, 7, 50))
        self.assertEqual(self.prompts, 0)
        self.assertIn("via structured feed", self.out.getvalue())

        self.assertEqual(self.run_import(), 0)
        self.assertEqual([e.id for e in self.entries()], [e.id for e in first])

    def test_captcha_is_saved_and_answered(self) -> None:
        self.http.add("GET", LOGIN_URL, make_response(200, LOGIN_PAGE_WITH_CAPTCHA, cookies={"JSESSIONID": "abc123"}))
        self.http.add("GET", CAPTCHA_URL, make_response(200, CAPTCHA_BYTES, headers={"Content-Type": "image/jpeg"}))
        self.add_handoff_and_feed()

        self.assertEqual(self.run_import(), 0)

        self.assertEqual(self.prompts, 1)
        self.assertEqual((self.dir / "captcha.jpg").read_bytes(), CAPTCHA_BYTES)
        [post] = [c for c in self.http.calls_to(LOGIN_URL) if c["method"] == "POST"]
        self.assertEqual(post["data"]["vcode"], "ab12")
        self.assertEqual(post["headers"]["Cookie"], "JSESSIONID=abc123")
        # the resumed attempt goes straight to the POST
        self.assertEqual(len(self.http.calls_to(LOGIN_URL)), 2)
        self.assertEqual(len(self.http.calls_to(CAPTCHA_URL)), 1)
        self.assertEqual(len(self.entries()), 4)

    def test_repeated_captcha_gives_up(self) -> None:
        self.http.add("GET", LOGIN_URL, make_response(200, LOGIN_PAGE_WITH_CAPTCHA))
        self.http.add("GET", CAPTCHA_URL, make_response(200, CAPTCHA_BYTES, headers={"Content-Type": "image/jpeg"}))
        self.http.add("POST", LOGIN_URL, make_response(200, LOGIN_PAGE_WITH_CAPTCHA))

        self.assertEqual(self.run_import(code="0000"), 1)

        # every prompted code is submitted
        self.assertEqual(self.prompts, 3)
        self.assertEqual(self.http.methods().count("POST"), 3)
        self.assertIn("Too many verification attempts", self.out.getvalue())
        self.assertEqual(self.entries(), [])

    def test_rejected_login(self) -> None:
        self.http.add("GET", LOGIN_URL, make_response(200, LOGIN_PAGE))
        self.http.add("POST", LOGIN_URL, make_response(200, REJECTED_PAGE))

        self.assertEqual(self.run_import(), 1)

        output = self.out.getvalue()
        self.assertIn("InvalidCredentials", output)
        self.assertIn("Login rejected", output)
        self.assertIn("Wrong username or password", output)
        self.assertEqual(self.entries(), [])

    def test_bad_semester_start(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["--store", str(self.dir / "users"), "import", "-s", STUDENT, "--semester-start", "2025-13-01"])

        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Invalid --semester-start", self.out.getvalue())
        self.assertEqual(self.http.calls, [])

    def test_saved_feed_can_be_imported_again(self) -> None:
        self.http.add("GET", LOGIN_URL, make_response(200, LOGIN_PAGE))
        self.add_handoff_and_feed()
        feed = self.dir / "feed.json"

        self.assertEqual(self.run_import("--save-feed", str(feed)), 0)
        self.assertEqual(json.loads(feed.read_text(encoding="utf-8")), json.loads(FEED_JSON))

        other = self.dir / "other"
        with self.assertRaises(SystemExit) as ctx:
            main(["--store", str(other), "import-json", "-s", STUDENT, str(feed), "--semester-start", "2025-09-01"])
        self.assertEqual(ctx.exception.code, 0)
        self.assertEqual(len(load_user_data(JsonFileStore(other), STUDENT)[0]), 4)

    def test_validate_ticket(self) -> None:
        self.http.add("GET", VALIDATE_URL, make_response(200, VALIDATION_SUCCESS))
        with self.assertRaises(SystemExit) as ctx:
            main(["validate-ticket", "ST-1-abc"])
        self.assertEqual(ctx.exception.code, 0)
        self.assertIn("PB21000001", self.out.getvalue())

    def test_validate_refused_ticket(self) -> None:
        self.http.add("GET", VALIDATE_URL, make_response(200, VALIDATION_FAILURE))
        with self.assertRaises(SystemExit) as ctx:
            main(["validate-ticket", "ST-1-abc"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Login rejected", self.out.getvalue())



if __name__ == "__main__":
    unittest.main()
