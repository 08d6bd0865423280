import random
import unittest

from application.opponent import HeuristicOpponent
from domain.rules import RulesEngine


ONE_CAPTURE = "rnbqkbnr/ppp1pppp/8/3p4/4P3/8/PPPP1PPP/RNBQKBNR w KQkq d6 0 2"
CHECKS_NO_CAPTURES = "7k/4Q3/6K1/8/8/8/8/8 w - - 0 1"
STALEMATED = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"


class HeuristicOpponentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.rules = RulesEngine()

    def _opponent(self, seed: int) -> HeuristicOpponent:
        return HeuristicOpponent(self.rules, rng=random.Random(seed))

    def test_prefers_captures(self):
        for seed in range(20):
            with self.subTest(seed=seed):
                self.assertEqual(self._opponent(seed).choose_move(ONE_CAPTURE), "e4d5")

    def test_prefers_checks_when_nothing_to_capture(self):
        legal = self.rules.legal_moves(CHECKS_NO_CAPTURES)
        for seed in range(20):
            with self.subTest(seed=seed):
                move = self._opponent(seed).choose_move(CHECKS_NO_CAPTURES)
                self.assertIn(move, legal)
                self.assertTrue(self.rules.gives_check(CHECKS_NO_CAPTURES, move))

    def test_falls_back_to_any_legal_move(self):
        start = self.rules.initial_position()
        legal = self.rules.legal_moves(start)
        for seed in range(20):
            with self.subTest(seed=seed):
                self.assertIn(self._opponent(seed).choose_move(start), legal)

    def test_returns_none_without_legal_moves(self):
        self.assertIsNone(self._opponent(0).choose_move(STALEMATED))

    def test_capture_is_chosen_from_several(self):
        # White queen on d4 can take on a7 or g7.
        fen = "4k3/p5p1/8/8/3Q4/8/8/4K3 w - - 0 1"
        seen = {self._opponent(seed).choose_move(fen) for seed in range(40)}
        self.assertEqual(seen, {"d4a7", "d4g7"})


if __name__ == "__main__":
    unittest.main()
