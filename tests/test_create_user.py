"""Tests for the create_user operator script."""

import io
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from app.models import User
from app.scripts.create_user import main
from tests.support import make_session_factory, make_settings


class TestCreateUser(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        patches = [
            patch("app.scripts.create_user.SessionLocal", self.session_factory),
            patch("app.scripts.create_user.get_settings", return_value=make_settings()),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def stored(self, username: str) -> User | None:
        db = self.session_factory()
        try:
            return db.query(User).filter(User.username == username).first()
        finally:
            db.close()

    def test_admin_is_active(self) -> None:
        code, out, _ = self.run_main("boss", "boss@x.com", "secret1", "ROLE_ADMIN")
        self.assertEqual(code, 0)
        self.assertIn("active account 'boss'", out)
        user = self.stored("boss")
        self.assertTrue(user.is_active)
        self.assertEqual(user.role, "ROLE_ADMIN")

    def test_default_role_is_pending_with_code(self) -> None:
        code, out, _ = self.run_main("carol", "c@x.com", "secret1")
        self.assertEqual(code, 0)
        user = self.stored("carol")
        self.assertFalse(user.is_active)
        self.assertEqual(user.role, "ROLE_USER")
        self.assertIn(f"Verification code: {user.otp}", out)

    def test_invalid_input(self) -> None:
        code, _, err = self.run_main("x", "c@x.com", "secret1")
        self.assertEqual(code, 1)
        self.assertIn("username", err)
        self.assertIsNone(self.stored("x"))

    def test_duplicate(self) -> None:
        self.run_main("boss", "boss@x.com", "secret1", "ROLE_ADMIN")
        code, _, err = self.run_main("boss", "other@x.com", "secret1", "ROLE_ADMIN")
        self.assertEqual(code, 1)
        self.assertIn("already exists", err)


if __name__ == "__main__":
    unittest.main()
