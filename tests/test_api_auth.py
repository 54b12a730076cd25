"""End-to-end tests for the /auth and /users routes against in-memory SQLite."""

import unittest

from fastapi.testclient import TestClient

from app.api.deps import get_mailer
from app.core.config import get_settings
from app.core.cookies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from app.core.database import get_db
from app.main import app
from app.models import User, UserRole
from tests.support import (
    RecordingMailer,
    make_account_service,
    make_session_factory,
    make_settings,
)

PREFIX = "/api/v1"
ALICE = {
    "username": "alice",
    "email": "a@x.com",
    "password": "secret1",
    "confirmPassword": "secret1",
}


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = make_settings()
        self.session_factory = make_session_factory()
        self.mailer = RecordingMailer()

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def post(self, path: str, json: dict | None = None, **kwargs):
        return self.client.post(f"{PREFIX}{path}", json=json, **kwargs)

    def register_and_verify(self, payload: dict = ALICE) -> None:
        r = self.post("/auth/register", payload)
        self.assertEqual(r.status_code, 201, r.text)
        r = self.post("/auth/verify-otp", {"email": payload["email"], "otp": self.mailer.last_otp})
        self.assertEqual(r.status_code, 200, r.text)

    def login(self, email: str = "a@x.com", password: str = "secret1"):
        return self.post("/auth/login", {"email": email, "password": password})

    def seed_operator(self, username: str, role: UserRole) -> dict[str, str]:
        """Create an active account directly and return bearer headers for it."""
        db = self.session_factory()
        try:
            make_account_service(db, settings=self.settings).create_account(
                username, f"{username}@x.com", "secret1", role
            )
        finally:
            db.close()
        token = self.login(f"{username}@x.com").json()["tokens"]["accessToken"]
        self.client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    def set_cookie_headers(self, response) -> dict[str, str]:
        cookies = {}
        for header in response.headers.get_list("set-cookie"):
            name = header.split("=", 1)[0]
            cookies[name] = header
        return cookies


class TestRegistrationFlow(ApiTestCase):
    def test_register_does_not_leak_otp_or_hash(self) -> None:
        r = self.post("/auth/register", ALICE)
        self.assertEqual(r.status_code, 201)
        body = r.json()
        self.assertEqual(body["user"]["username"], "alice")
        self.assertEqual(body["user"]["role"], "ROLE_USER")
        self.assertFalse(body["user"]["isActive"])
        for hidden in ("otp", "otpExpiresAt", "passwordHash", "password"):
            self.assertNotIn(hidden, body["user"])
        self.assertEqual(len(self.mailer.sent), 1)

    def test_duplicate_email(self) -> None:
        self.post("/auth/register", ALICE)
        r = self.post("/auth/register", dict(ALICE, username="alice2"))
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "duplicate")

    def test_password_mismatch(self) -> None:
        r = self.post("/auth/register", dict(ALICE, confirmPassword="secret2"))
        self.assertEqual(r.status_code, 422)

    def test_invalid_username_and_short_password(self) -> None:
        for payload in (
            dict(ALICE, username="al"),
            dict(ALICE, username="bad name"),
            dict(ALICE, password="12345", confirmPassword="12345"),
            dict(ALICE, email="not-an-email"),
        ):
            with self.subTest(payload=payload):
                self.assertEqual(self.post("/auth/register", payload).status_code, 422)

    def test_email_failure_returns_502_and_frees_address(self) -> None:
        self.mailer.succeed = False
        r = self.post("/auth/register", ALICE)
        self.assertEqual(r.status_code, 502)
        self.assertEqual(r.json()["code"], "notification_failed")
        self.mailer.succeed = True
        self.assertEqual(self.post("/auth/register", ALICE).status_code, 201)

    def test_wrong_otp(self) -> None:
        self.post("/auth/register", ALICE)
        wrong = "000000" if self.mailer.last_otp != "000000" else "111111"
        r = self.post("/auth/verify-otp", {"email": "a@x.com", "otp": wrong})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "invalid_otp")

    def test_resend_otp(self) -> None:
        self.post("/auth/register", ALICE)
        r = self.post("/auth/resend-otp", {"email": "a@x.com"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(len(self.mailer.sent), 2)
        r = self.post("/auth/verify-otp", {"email": "a@x.com", "otp": self.mailer.last_otp})
        self.assertTrue(r.json()["user"]["isActive"])
        self.assertEqual(self.post("/auth/resend-otp", {"email": "a@x.com"}).status_code, 404)

    def test_login_before_verification(self) -> None:
        self.post("/auth/register", ALICE)
        r = self.login()
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["code"], "account_not_activated")


class TestSessionFlow(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register_and_verify()

    def test_login_returns_pair_and_sets_cookies(self) -> None:
        r = self.login()
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["message"], "Login successful")
        self.assertEqual(body["tokens"]["expiresIn"], 86400)
        self.assertEqual(body["tokens"]["tokenType"], "bearer")

        cookies = self.set_cookie_headers(r)
        access = cookies[ACCESS_TOKEN_COOKIE]
        refresh = cookies[REFRESH_TOKEN_COOKIE]
        self.assertIn("Path=/;", access + ";")
        self.assertIn("Max-Age=86400", access)
        self.assertIn(f"Path={PREFIX}/auth/refresh-token", refresh)
        self.assertIn("Max-Age=604800", refresh)
        for header in (access, refresh):
            self.assertIn("HttpOnly", header)
            self.assertIn("SameSite=strict", header)
            self.assertNotIn("Secure", header)

    def test_wrong_password_and_unknown_email(self) -> None:
        wrong = self.login(password="nope12")
        unknown = self.login(email="nobody@x.com")
        self.assertEqual(wrong.status_code, 400)
        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(wrong.json(), unknown.json())

    def test_refresh_via_body_rotates(self) -> None:
        tokens = self.login().json()["tokens"]
        self.client.cookies.clear()
        r = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(r.status_code, 200, r.text)
        new = r.json()["tokens"]
        self.assertNotEqual(new["accessToken"], tokens["accessToken"])
        self.assertNotEqual(new["refreshToken"], tokens["refreshToken"])
        self.assertEqual(r.json()["message"], "Token refreshed successfully")

        self.client.cookies.clear()
        replay = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(replay.status_code, 401)

    def test_refresh_via_cookie(self) -> None:
        self.login()
        r = self.post("/auth/refresh-token")
        self.assertEqual(r.status_code, 200, r.text)

    def test_refresh_without_token(self) -> None:
        r = self.post("/auth/refresh-token")
        self.assertEqual(r.status_code, 401)
        self.assertEqual(r.json()["code"], "unauthorized")

    def test_access_token_cookie_authenticates(self) -> None:
        self.login()
        r = self.client.get(f"{PREFIX}/users/profile")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["user"]["email"], "a@x.com")

    def test_logout_clears_cookies_and_revokes(self) -> None:
        tokens = self.login().json()["tokens"]
        r = self.post("/auth/logout", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"message": "Logout successful"})

        cookies = self.set_cookie_headers(r)
        self.assertIn("Max-Age=0", cookies[ACCESS_TOKEN_COOKIE])
        self.assertIn("Path=/;", cookies[ACCESS_TOKEN_COOKIE] + ";")
        self.assertIn(f"Path={PREFIX}/auth/refresh-token", cookies[REFRESH_TOKEN_COOKIE])
        self.assertIn("Max-Age=0", cookies[REFRESH_TOKEN_COOKIE])

        self.client.cookies.clear()
        r = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(r.status_code, 401)

    def test_cookie_only_logout_revokes_refresh_token(self) -> None:
        tokens = self.login().json()["tokens"]
        # Only the access cookie reaches /auth/logout; the refresh cookie is path-scoped.
        r = self.post("/auth/logout")
        self.assertEqual(r.status_code, 200)
        self.client.cookies.clear()
        replay = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(replay.status_code, 401)
        self.assertEqual(replay.json()["code"], "invalid_token")

    def test_bearer_logout_revokes_refresh_token(self) -> None:
        tokens = self.login().json()["tokens"]
        self.client.cookies.clear()
        headers = {"Authorization": f"Bearer {tokens['accessToken']}"}
        self.assertEqual(self.post("/auth/logout", headers=headers).status_code, 200)
        replay = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(replay.status_code, 401)

    def test_logout_without_session_succeeds(self) -> None:
        self.assertEqual(self.post("/auth/logout").status_code, 200)

    def test_change_password(self) -> None:
        headers = {"Authorization": f"Bearer {self.login().json()['tokens']['accessToken']}"}
        self.client.cookies.clear()
        url = f"{PREFIX}/users/change-password"

        r = self.client.put(url, json={"currentPassword": "nope", "newPassword": "newsecret"}, headers=headers)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["detail"], "Current password is incorrect")

        r = self.client.put(url, json={"currentPassword": "secret1", "newPassword": "newsecret"}, headers=headers)
        self.assertEqual(r.status_code, 200)
        self.assertEqual(self.login(password="secret1").status_code, 400)
        self.assertEqual(self.login(password="newsecret").status_code, 200)

    def test_update_profile(self) -> None:
        self.login()
        r = self.client.put(
            f"{PREFIX}/users/profile",
            json={"username": "alice_b", "image": "https://cdn.example.com/a.png"},
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["user"]["username"], "alice_b")
        self.assertEqual(r.json()["user"]["image"], "https://cdn.example.com/a.png")

    def test_profile_requires_token(self) -> None:
        r = self.client.get(f"{PREFIX}/users/profile")
        self.assertEqual(r.status_code, 401)


class TestUserAdministration(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register_and_verify()
        self.alice_id = self.alice().id

    def alice(self) -> User:
        db = self.session_factory()
        try:
            return db.query(User).filter(User.email == "a@x.com").one()
        finally:
            db.close()

    def test_customer_cannot_list_users(self) -> None:
        self.login()
        self.assertEqual(self.client.get(f"{PREFIX}/users").status_code, 403)

    def test_staff_can_list_and_search(self) -> None:
        headers = self.seed_operator("staffer", UserRole.STAFF)
        r = self.client.get(f"{PREFIX}/users", headers=headers)
        self.assertEqual(r.status_code, 200)
        self.assertEqual({u["username"] for u in r.json()["users"]}, {"alice", "staffer"})

        r = self.client.get(f"{PREFIX}/users/search", params={"search": "ali"}, headers=headers)
        self.assertEqual([u["username"] for u in r.json()["users"]], ["alice"])

        r = self.client.get(f"{PREFIX}/users/{self.alice_id}", headers=headers)
        self.assertEqual(r.json()["email"], "a@x.com")
        self.assertEqual(self.client.get(f"{PREFIX}/users/9999", headers=headers).status_code, 404)

    def test_staff_cannot_filter_by_role_or_delete(self) -> None:
        headers = self.seed_operator("staffer", UserRole.STAFF)
        self.assertEqual(
            self.client.get(f"{PREFIX}/users/role/ROLE_USER", headers=headers).status_code, 403
        )
        self.assertEqual(
            self.client.delete(f"{PREFIX}/users/{self.alice_id}", headers=headers).status_code, 403
        )

    def test_admin_soft_delete_blocks_login_and_refresh(self) -> None:
        tokens = self.login().json()["tokens"]
        headers = self.seed_operator("boss", UserRole.ADMIN)

        r = self.client.get(f"{PREFIX}/users/role/ROLE_USER", headers=headers)
        self.assertEqual([u["username"] for u in r.json()["users"]], ["alice"])

        r = self.client.patch(f"{PREFIX}/users/{self.alice_id}/soft-delete", headers=headers)
        self.assertEqual(r.status_code, 200)
        self.assertFalse(self.alice().is_active)

        self.assertEqual(self.login().status_code, 403)
        self.client.cookies.clear()
        r = self.post("/auth/refresh-token", {"refreshToken": tokens["refreshToken"]})
        self.assertEqual(r.status_code, 403)

    def test_soft_deleted_pending_account_cannot_verify(self) -> None:
        self.post("/auth/register", dict(ALICE, username="bob", email="b@x.com"))
        otp = self.mailer.last_otp
        db = self.session_factory()
        try:
            bob_id = db.query(User).filter(User.email == "b@x.com").one().id
        finally:
            db.close()
        headers = self.seed_operator("boss", UserRole.ADMIN)
        r = self.client.patch(f"{PREFIX}/users/{bob_id}/soft-delete", headers=headers)
        self.assertEqual(r.status_code, 200)

        self.assertEqual(self.post("/auth/resend-otp", {"email": "b@x.com"}).status_code, 404)
        r = self.post("/auth/verify-otp", {"email": "b@x.com", "otp": otp})
        self.assertEqual(r.status_code, 400)

    def test_delete_verb_is_soft(self) -> None:
        headers = self.seed_operator("boss", UserRole.SUPER_ADMIN)
        r = self.client.delete(f"{PREFIX}/users/{self.alice_id}", headers=headers)
        self.assertEqual(r.json(), {"message": "Deleted successfully"})
        self.assertFalse(self.alice().is_active)


class TestRoot(ApiTestCase):
    def test_root(self) -> None:
        self.assertEqual(self.client.get("/").json(), {"message": "Storefront API"})

    def test_health_reports_database(self) -> None:
        r = self.client.get(f"{PREFIX}/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["database"], "connected")


if __name__ == "__main__":
    unittest.main()
