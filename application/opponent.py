from __future__ import annotations

import random
from typing import Optional

from domain.rules import RulesEngine


class HeuristicOpponent:
    """
    Computer opponent with a fixed preference order:

    1. a random capture, if any legal move captures;
    2. otherwise a random checking move, if any;
    3. otherwise any random legal move.

    There is no lookahead and no evaluation beyond those two flags.
    """

    name = "Computer"

    def __init__(self, rules: RulesEngine, rng: Optional[random.Random] = None) -> None:
        self._rules = rules
        self._rng = rng or random.Random()

    def choose_move(self, fen: str) -> Optional[str]:
        legal = self._rules.legal_moves(fen)
        if not legal:
            return None

        captures = [m for m in legal if self._rules.is_capture(fen, m)]
        if captures:
            return self._rng.choice(captures)

        checks = [m for m in legal if self._rules.gives_check(fen, m)]
        if checks:
            return self._rng.choice(checks)

        return self._rng.choice(legal)
