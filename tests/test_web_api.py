import os
import tempfile
import unittest
from unittest import mock

from application import accounts
from domain.models import COMPUTER_PLAYER_ID
from infrastructure.container import build_services
from interfaces.web.api import create_web_app


class RecordingScheduler:
    def __init__(self):
        self.calls = []

    def schedule(self, delay, fn, *args):
        self.calls.append((delay, fn, args))

    def cancel_all(self):
        self.calls.clear()


class WebApiTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)

        patcher = mock.patch.object(accounts, "BCRYPT_ROUNDS", 4)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.scheduler = RecordingScheduler()
        self.services = build_services(
            os.path.join(tmp.name, "chess.db"),
            scheduler=self.scheduler,
        )
        app = create_web_app(self.services)
        app.testing = True
        self.client = app.test_client()

    def _register(self, username):
        resp = self.client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": "secret1",
            },
        )
        self.assertEqual(resp.status_code, 201)
        body = resp.get_json()
        return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}

    def test_register_login_and_profile(self):
        user_id, _ = self._register("alice")

        resp = self.client.post("/api/login", json={"username": "alice", "password": "secret1"})
        self.assertEqual(resp.status_code, 200)
        token = resp.get_json()["token"]

        resp = self.client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.status_code, 200)
        profile = resp.get_json()
        self.assertEqual(profile["id"], user_id)
        self.assertEqual(profile["balance"], 0)
        self.assertNotIn("password_hash", profile)

    def test_errors_are_structured(self):
        self._register("alice")

        resp = self.client.post(
            "/api/register",
            json={"username": "alice", "email": "alice@example.com", "password": "secret1"},
        )
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.get_json()["code"], "conflict")

        resp = self.client.post("/api/register", json={"username": "al"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["code"], "validation_error")

        resp = self.client.post("/api/login", json={"username": "alice", "password": "nope123"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.get_json(),
            {"error": "Invalid username or password.", "code": "validation_error"},
        )

        resp = self.client.get("/api/profile")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json()["error"], "Access token required.")

        resp = self.client.get("/api/games/missing")
        self.assertEqual(resp.status_code, 404)

    def test_non_string_fields_are_validation_errors(self):
        _, alice = self._register("alice")
        self._register("bob")

        requests = (
            ("/api/register", {"username": 12345, "email": "x@example.com", "password": "secret1"}, {}),
            ("/api/login", {"username": "alice", "password": 123456}, {}),
            ("/api/games", {"mode": 5}, alice),
            ("/api/games", {"mode": "friend", "friend": 7}, alice),
            ("/api/games", {"mode": "open", "time_control": {"minutes": 10}}, alice),
        )
        for path, body, headers in requests:
            with self.subTest(path=path, body=body):
                resp = self.client.post(path, json=body, headers=headers)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.get_json()["code"], "validation_error")

        self.assertEqual(self.client.get("/api/games").get_json(), [])

    def test_open_game_join_and_moves(self):
        _, alice = self._register("alice")
        bob_id, bob = self._register("bob")

        resp = self.client.post("/api/games", json={"mode": "open"}, headers=alice)
        self.assertEqual(resp.status_code, 201)
        game = resp.get_json()["game"]
        self.assertEqual(game["status"], "waiting")

        listed = self.client.get("/api/games").get_json()
        self.assertEqual([g["id"] for g in listed], [game["id"]])

        resp = self.client.put(f"/api/games/{game['id']}/join", headers=alice)
        self.assertEqual(resp.status_code, 409)

        resp = self.client.post(f"/api/game/{game['id']}/join", headers=bob)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["game"]["player_black"], bob_id)

        resp = self.client.post(f"/api/games/{game['id']}/move", json={"move": "e2e4"}, headers=bob)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["code"], "invalid_move")

        resp = self.client.post(f"/api/game/{game['id']}/move", json={"move": "e2e4"}, headers=alice)
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertFalse(body["game_over"])
        self.assertEqual(body["game"]["turn"], bob_id)
        self.assertEqual(body["game"]["moves"][0]["san"], "e4")

    def test_move_for_someone_else_is_rejected(self):
        _, alice = self._register("alice")
        bob_id, _ = self._register("bob")
        game = self.client.post(
            "/api/games", json={"mode": "friend", "friend": "bob"}, headers=alice
        ).get_json()["game"]
        self.assertEqual(game["status"], "active")

        resp = self.client.post(
            f"/api/games/{game['id']}/move",
            json={"playerId": bob_id, "move": "e2e4"},
            headers=alice,
        )
        self.assertEqual(resp.status_code, 401)

        resp = self.client.post(f"/api/games/{game['id']}/move", json={}, headers=alice)
        self.assertEqual(resp.status_code, 400)

    def test_computer_game_schedules_reply(self):
        _, alice = self._register("alice")
        game = self.client.post(
            "/api/games", json={"gameMode": "computer", "timeControl": "5+0"}, headers=alice
        ).get_json()["game"]
        self.assertEqual(game["player_black"], COMPUTER_PLAYER_ID)
        self.assertEqual(game["time_control"], "5+0")

        resp = self.client.post(
            f"/api/games/{game['id']}/move", json={"move": "e4"}, headers=alice
        )
        body = resp.get_json()
        self.assertTrue(body["computer_pending"])
        self.assertEqual(len(self.scheduler.calls), 1)

        _, fn, args = self.scheduler.calls[0]
        fn(*args)
        game = self.client.get(f"/api/games/{game['id']}").get_json()
        self.assertEqual(len(game["moves"]), 2)
        self.assertTrue(game["moves"][1]["is_computer"])

    def test_leaderboard(self):
        alice_id, _ = self._register("alice")
        bob_id, _ = self._register("bob")
        self.services.user_repo.update_balance(bob_id, 100)

        board = self.client.get("/api/leaderboard").get_json()
        self.assertEqual([u["id"] for u in board], [bob_id, alice_id])

    def test_health(self):
        self.assertEqual(self.client.get("/api/health").get_json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
