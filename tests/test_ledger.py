import os
import tempfile
import unittest

from application.ledger import (
    COMPUTER_WIN_REWARD,
    WIN_REWARD,
    credit,
    record_game_completion,
    settle_game,
)
from domain.errors import NotFound
from domain.models import COMPUTER_PLAYER_ID, Game, GameStatus, User
from infrastructure.db.user_repository_sqlite import SqliteUserRepository


class LedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.user_repo = SqliteUserRepository(os.path.join(tmp.name, "chess.db"))
        self.user_repo.add_user(User(id="alice", display_name="Alice"))
        self.user_repo.add_user(User(id="bob", display_name="Bob"))

    def _finished_game(self, winner, vs_computer=False):
        return Game(
            id="g1",
            player_white="alice",
            player_black=COMPUTER_PLAYER_ID if vs_computer else "bob",
            vs_computer=vs_computer,
            fen="",
            status=GameStatus.FINISHED,
            turn="alice",
            winner=winner,
        )

    def test_credit_adds_to_balance_and_earned(self):
        credit("alice", 100, self.user_repo)
        credit("alice", 30, self.user_repo)

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.balance, 130)
        self.assertEqual(alice.total_earned, 130)

    def test_negative_credit_does_not_count_as_earned(self):
        credit("alice", 100, self.user_repo)
        credit("alice", -40, self.user_repo)

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.balance, 60)
        self.assertEqual(alice.total_earned, 100)

    def test_credit_unknown_player(self):
        with self.assertRaises(NotFound):
            credit("nobody", 10, self.user_repo)

    def test_record_game_completion(self):
        record_game_completion("alice", won=True, vs_computer=False, user_repo=self.user_repo)
        record_game_completion("alice", won=True, vs_computer=True, user_repo=self.user_repo)
        record_game_completion("alice", won=False, vs_computer=False, user_repo=self.user_repo)
        record_game_completion(
            "alice", won=False, vs_computer=False, user_repo=self.user_repo, drawn=True
        )

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.games_played, 4)
        self.assertEqual(alice.games_won, 2)
        self.assertEqual(alice.computer_games_won, 1)
        self.assertEqual(alice.games_lost, 1)
        self.assertEqual(alice.games_drawn, 1)

        with self.assertRaises(NotFound):
            record_game_completion("nobody", won=True, vs_computer=False, user_repo=self.user_repo)

    def test_settle_human_win(self):
        settle_game(self._finished_game("alice"), self.user_repo)

        alice = self.user_repo.get_user("alice")
        bob = self.user_repo.get_user("bob")
        self.assertEqual(alice.balance, WIN_REWARD)
        self.assertEqual(alice.total_earned, WIN_REWARD)
        self.assertEqual(bob.balance, 0)
        self.assertEqual(bob.games_lost, 1)

    def test_settle_draw_pays_nobody(self):
        settle_game(self._finished_game(None), self.user_repo)

        for user_id in ("alice", "bob"):
            user = self.user_repo.get_user(user_id)
            self.assertEqual(user.balance, 0)
            self.assertEqual(user.games_drawn, 1)
            self.assertEqual(user.games_played, 1)

    def test_settle_loss_to_computer(self):
        settle_game(self._finished_game(COMPUTER_PLAYER_ID, vs_computer=True), self.user_repo)

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.balance, 0)
        self.assertEqual((alice.games_played, alice.games_lost), (1, 1))
        self.assertIsNone(self.user_repo.get_user(COMPUTER_PLAYER_ID))

    def test_settle_twice_pays_once(self):
        game = self._finished_game("alice")

        self.assertTrue(settle_game(game, self.user_repo))
        self.assertFalse(settle_game(game, self.user_repo))

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.balance, WIN_REWARD)
        self.assertEqual(alice.games_played, 1)

    def test_settlement_is_all_or_nothing(self):
        game = self._finished_game("alice")
        game.player_black = "ghost"

        with self.assertRaises(NotFound):
            settle_game(game, self.user_repo)

        alice = self.user_repo.get_user("alice")
        self.assertEqual((alice.balance, alice.games_played), (0, 0))

        # Nothing was claimed, so a corrected game still settles.
        game.player_black = "bob"
        self.assertTrue(settle_game(game, self.user_repo))
        self.assertEqual(self.user_repo.get_user("alice").balance, WIN_REWARD)

    def test_settle_win_against_computer(self):
        settle_game(self._finished_game("alice", vs_computer=True), self.user_repo)

        alice = self.user_repo.get_user("alice")
        self.assertEqual(alice.balance, COMPUTER_WIN_REWARD)
        self.assertEqual(alice.computer_games_won, 1)


if __name__ == "__main__":
    unittest.main()
