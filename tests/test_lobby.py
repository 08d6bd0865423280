import os
import tempfile
import unittest

from application import lobby
from application.sessions import GameSessionService
from domain.errors import Conflict, NotFound, ValidationError
from domain.models import COMPUTER_PLAYER_ID, GameMode, GameStatus, User
from domain.rules import RulesEngine
from infrastructure.db.game_repository_sqlite import SqliteGameRepository
from infrastructure.db.user_repository_sqlite import SqliteUserRepository
from infrastructure.scheduler import ThreadingScheduler


class LobbyTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        db_path = os.path.join(tmp.name, "chess.db")

        self.user_repo = SqliteUserRepository(db_path)
        self.game_repo = SqliteGameRepository(db_path)
        scheduler = ThreadingScheduler()
        self.addCleanup(scheduler.cancel_all)
        self.sessions = GameSessionService(
            self.game_repo, self.user_repo, RulesEngine(), scheduler
        )
        self.user_repo.add_user(
            User(id="u1", display_name="Alice", username="alice", email="alice@example.com")
        )
        self.user_repo.add_user(
            User(id="u2", display_name="Bob", username="bob", email="bob@example.com")
        )

    def test_list_open_games_newest_first(self):
        first = lobby.create_open("u1", self.sessions)
        second = lobby.create_vs_computer("u1", self.sessions)
        third = lobby.create_open("u2", self.sessions)

        games = lobby.list_open_games(self.game_repo)
        self.assertEqual([g.id for g in games], [third.id, second.id, first.id])

    def test_list_open_games_is_capped(self):
        for _ in range(lobby.MAX_LISTED_GAMES + 5):
            lobby.create_open("u1", self.sessions)

        self.assertEqual(len(lobby.list_open_games(self.game_repo, 100)), lobby.MAX_LISTED_GAMES)
        self.assertEqual(len(lobby.list_open_games(self.game_repo, 3)), 3)
        self.assertEqual(lobby.list_open_games(self.game_repo, 0), [])

    def test_finished_games_are_not_listed(self):
        game = lobby.create_open("u1", self.sessions)
        stored = self.game_repo.get_game(game.id)
        stored.status = GameStatus.FINISHED
        self.game_repo.save_game(stored)

        self.assertEqual(lobby.list_open_games(self.game_repo), [])

    def test_create_for_friend_by_email_username_or_id(self):
        for key in ("bob@example.com", "BOB@example.com", "bob", "u2"):
            with self.subTest(key=key):
                game = lobby.create_for_friend("u1", key, self.sessions, self.user_repo)
                self.assertEqual(game.status, GameStatus.ACTIVE)
                self.assertEqual(game.player_white, "u1")
                self.assertEqual(game.player_black, "u2")

    def test_create_for_unknown_friend(self):
        with self.assertRaises(NotFound):
            lobby.create_for_friend("u1", "ghost@example.com", self.sessions, self.user_repo)

    def test_cannot_invite_yourself(self):
        with self.assertRaises(Conflict):
            lobby.create_for_friend("u1", "alice", self.sessions, self.user_repo)

    def test_create_vs_computer(self):
        game = lobby.create_vs_computer("u1", self.sessions, time_control="5+3")
        self.assertEqual(game.status, GameStatus.ACTIVE)
        self.assertEqual(game.player_black, COMPUTER_PLAYER_ID)
        self.assertEqual(game.time_control, "5+3")
        self.assertEqual(game.moves, [])

    def test_create_game_dispatch(self):
        open_game = lobby.create_game("u1", GameMode.OPEN, self.sessions, self.user_repo)
        self.assertEqual(open_game.status, GameStatus.WAITING)
        self.assertEqual(open_game.time_control, "10+0")

        with self.assertRaises(ValidationError):
            lobby.create_game("u1", GameMode.FRIEND, self.sessions, self.user_repo)
        with self.assertRaises(ValidationError):
            lobby.create_game("u1", "blitz", self.sessions, self.user_repo)

    def test_create_game_rejects_non_string_fields(self):
        cases = (
            {"mode": 3},
            {"mode": GameMode.FRIEND, "friend": 42},
            {"mode": GameMode.OPEN, "time_control": {"minutes": 10}},
        )
        for kwargs in cases:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError):
                    lobby.create_game("u1", sessions=self.sessions, user_repo=self.user_repo, **kwargs)

        self.assertEqual(lobby.list_open_games(self.game_repo), [])


if __name__ == "__main__":
    unittest.main()
