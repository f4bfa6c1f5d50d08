"""HTTP tests for the account endpoints via FastAPI TestClient."""

import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient

from ckam.core.config import Settings
from ckam.main import create_app
from ckam.services.account_store import AccountStore


class ApiTestCase(unittest.TestCase):
    """App wired to a store in a temp dir; prod mode unless a test overrides it."""

    app_env = "prod"
    legacy_routes = True

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        path = Path(self._tmp.name) / "accounts.json"
        self.settings = Settings(
            APP_ENV=self.app_env,
            ACCOUNTS_FILE=str(path),
            BCRYPT_ROUNDS=4,
            LEGACY_ROUTES_ENABLED=self.legacy_routes,
        )
        self.store = AccountStore(path, bcrypt_rounds=4)
        self.client = TestClient(
            create_app(settings=self.settings, store=self.store),
            raise_server_exceptions=False,
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def register(self, display_name: str = "Алексей", username: str = "alexey", password: str = "password123"):
        return self.client.post(
            "/api/register",
            json={"displayName": display_name, "username": username, "password": password},
        )


class TestRegisterAndLogin(ApiTestCase):
    def test_scenario(self) -> None:
        resp = self.register()
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Registration successful")
        user = body["user"]
        self.assertEqual(user["username"], "alexey")
        self.assertEqual(user["displayName"], "Алексей")
        self.assertNotIn("password", user)
        self.assertNotIn("passwordHash", user)
        self.assertIn("createdAt", user)
        self.assertIn("lastSeen", user)
        self.assertIsNone(user["avatar"])
        self.assertEqual(user["theme"], "dark")

        resp = self.client.post("/api/login", json={"username": "Alexey", "password": "password123"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["id"], user["id"])
        self.assertEqual(resp.json()["message"], "Login successful")

        resp = self.client.post("/api/login", json={"username": "alexey", "password": "wrong"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"success": False, "message": "Invalid password."})

    def test_register_conflict_is_400(self) -> None:
        self.register()
        resp = self.register(username="ALEXEY")
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])
        self.assertIn("taken", resp.json()["message"])

    def test_register_missing_fields_is_400(self) -> None:
        resp = self.client.post("/api/register", json={"username": "alexey"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_register_short_password_is_400(self) -> None:
        resp = self.register(password="12345")
        self.assertEqual(resp.status_code, 400)

    def test_login_unknown_user_is_401(self) -> None:
        resp = self.client.post("/api/login", json={"username": "ghost", "password": "password123"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "User not found.")

    def test_login_empty_body_is_400(self) -> None:
        resp = self.client.post("/api/login", json={})
        self.assertEqual(resp.status_code, 400)

    def test_malformed_json_is_400(self) -> None:
        resp = self.client.post(
            "/api/login",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"success": False, "message": "Invalid request body."})

    def test_wrong_field_type_is_400(self) -> None:
        resp = self.client.post("/api/login", json={"username": 123, "password": "password123"})
        self.assertEqual(resp.status_code, 400)


class TestUsersAndSearch(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.register("Алексей", "alexey")
        self.register("Maria", "masha")

    def test_list_users(self) -> None:
        resp = self.client.get("/api/users")
        self.assertEqual(resp.status_code, 200)
        users = resp.json()
        self.assertEqual([u["username"] for u in users], ["alexey", "masha"])
        for u in users:
            self.assertTrue(u["isOnline"])
            self.assertNotIn("passwordHash", u)

    def test_search(self) -> None:
        resp = self.client.get("/api/search", params={"q": "MAR"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([u["username"] for u in resp.json()], ["masha"])

    def test_search_empty_query(self) -> None:
        self.assertEqual(len(self.client.get("/api/search").json()), 2)
        self.assertEqual(len(self.client.get("/api/search", params={"q": ""}).json()), 2)

    def test_list_failure_returns_500_empty_array(self) -> None:
        with patch.object(AccountStore, "list_users", side_effect=RuntimeError("boom")):
            resp = self.client.get("/api/users")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), [])

    def test_search_failure_returns_500_empty_array(self) -> None:
        with patch.object(AccountStore, "search_users", side_effect=RuntimeError("boom")):
            resp = self.client.get("/api/search", params={"q": "a"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), [])


class TestUpdateProfile(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user_id = self.register().json()["user"]["id"]
        self.register("Maria", "maria")

    def test_update_display_name_and_avatar(self) -> None:
        avatar = "data:image/png;base64,AAAA"
        resp = self.client.post(
            "/api/update-profile",
            json={"userId": self.user_id, "displayName": "Лёша", "avatar": avatar},
        )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["message"], "Profile updated")
        self.assertEqual(body["user"]["displayName"], "Лёша")
        self.assertEqual(body["user"]["avatar"], avatar)
        self.assertIsNotNone(body["user"]["updatedAt"])
        self.assertNotIn("passwordHash", body["user"])

    def test_unknown_user_is_404(self) -> None:
        resp = self.client.post("/api/update-profile", json={"userId": "nope", "displayName": "X"})
        self.assertEqual(resp.status_code, 404)
        self.assertFalse(resp.json()["success"])

    def test_username_conflict_is_400(self) -> None:
        resp = self.client.post(
            "/api/update-profile", json={"userId": self.user_id, "username": "Maria"}
        )
        self.assertEqual(resp.status_code, 400)

    def test_wrong_current_password_is_401(self) -> None:
        resp = self.client.post(
            "/api/update-profile",
            json={"userId": self.user_id, "currentPassword": "bad-pass", "newPassword": "newsecret"},
        )
        self.assertEqual(resp.status_code, 401)

    def test_short_new_password_is_400(self) -> None:
        resp = self.client.post(
            "/api/update-profile",
            json={"userId": self.user_id, "currentPassword": "password123", "newPassword": "123"},
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/api/login", json={"username": "alexey", "password": "password123"})
        self.assertEqual(resp.status_code, 200)

    def test_write_failure_is_reported_as_warning(self) -> None:
        with patch.object(AccountStore, "_atomic_write", side_effect=OSError("disk full")):
            resp = self.client.post(
                "/api/update-profile", json={"userId": self.user_id, "displayName": "Lesha"}
            )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertIsNotNone(body["warning"])
        self.assertEqual(body["user"]["displayName"], "Lesha")


class TestHealth(ApiTestCase):
    def test_health(self) -> None:
        self.register()
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["users"], 1)
        self.assertEqual(body["environment"], "prod")
        self.assertEqual(body["service"], "ckam-messenger")
        self.assertGreaterEqual(body["uptime"], 0)
        self.assertTrue(body["timestamp"].endswith("Z"))

    def test_uptime_counts_from_app_start(self) -> None:
        self.client.app.state.started_at = time.monotonic() - 30
        self.assertGreaterEqual(self.client.get("/api/health").json()["uptime"], 30)

    def test_startup_logs_user_count(self) -> None:
        self.register()
        self.register("Maria", "maria")
        with self.assertLogs("ckam.main", level="INFO") as logs:
            with TestClient(create_app(settings=self.settings, store=self.store)):
                pass
        self.assertTrue(any("ready: 2 users (environment=prod)" in line for line in logs.output))

    def test_root(self) -> None:
        resp = self.client.get("/")
        self.assertEqual(resp.json(), {"message": "ckam-messenger API"})


class TestLegacyRoutes(ApiTestCase):
    """The browser client posts to /login and /register without the /api prefix."""

    def test_unprefixed_routes(self) -> None:
        resp = self.client.post(
            "/register",
            json={"displayName": "Alexey", "username": "alexey", "password": "password123"},
        )
        self.assertEqual(resp.status_code, 200)
        resp = self.client.post("/login", json={"username": "alexey", "password": "password123"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(self.client.get("/users").json()), 1)


class TestLegacyRoutesDisabled(ApiTestCase):
    legacy_routes = False

    def test_unprefixed_routes_absent(self) -> None:
        resp = self.client.post("/login", json={"username": "alexey", "password": "password123"})
        self.assertEqual(resp.status_code, 404)


class TestUnhandledErrors(ApiTestCase):
    """Unexpected exceptions become a 500 envelope; details only in dev."""

    def test_prod_hides_details(self) -> None:
        with patch.object(AccountStore, "register", side_effect=RuntimeError("secret internals")):
            resp = self.register()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "message": "Internal server error"})


class TestUnhandledErrorsDev(ApiTestCase):
    app_env = "dev"

    def test_dev_includes_error_text(self) -> None:
        with patch.object(AccountStore, "register", side_effect=RuntimeError("secret internals")):
            resp = self.register()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"], "secret internals")


if __name__ == "__main__":
    unittest.main()
