"""
Chess rules contract backed by python-chess.

The rest of the service treats chess as a black box: positions are FEN
strings, moves are UCI strings, and this module is the only place that
builds a `chess.Board`. Nothing here mutates shared state; every call
works on a fresh board parsed from the given FEN.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import chess

from .errors import InvalidMove


WHITE = "white"
BLACK = "black"


@dataclass(frozen=True)
class AppliedMove:
    uci: str
    san: str
    fen: str


@dataclass(frozen=True)
class GameOutcome:
    termination: str
    winner_color: Optional[str]

    @property
    def is_checkmate(self) -> bool:
        return self.termination == "checkmate"

    @property
    def result(self) -> str:
        if self.winner_color == WHITE:
            return "1-0"
        if self.winner_color == BLACK:
            return "0-1"
        return "1/2-1/2"


class RulesEngine:
    """Stateless facade over `chess.Board`."""

    def initial_position(self) -> str:
        return chess.STARTING_FEN

    def _board(self, fen: str) -> chess.Board:
        try:
            return chess.Board(fen)
        except ValueError as exc:
            raise InvalidMove(f"Invalid position: {fen}") from exc

    def _parse(self, board: chess.Board, move: str) -> chess.Move:
        text = (move or "").strip()
        if not text:
            raise InvalidMove("Move is required.")

        try:
            parsed = board.parse_uci(text)
        except ValueError:
            try:
                parsed = board.parse_san(text)
            except ValueError as exc:
                raise InvalidMove(f"Illegal move: {text}") from exc

        # parse_uci accepts "0000" as a null move.
        if not parsed:
            raise InvalidMove(f"Illegal move: {text}")
        return parsed

    def legal_moves(self, fen: str) -> List[str]:
        board = self._board(fen)
        return [m.uci() for m in board.legal_moves]

    def apply(self, fen: str, move: str) -> AppliedMove:
        """
        Validate `move` (UCI or SAN) against `fen` and return the result.

        Raises `InvalidMove` if the move cannot be parsed or is illegal.
        """

        board = self._board(fen)
        parsed = self._parse(board, move)
        san = board.san(parsed)
        board.push(parsed)
        return AppliedMove(uci=parsed.uci(), san=san, fen=board.fen())

    def outcome(self, fen: str) -> Optional[GameOutcome]:
        board = self._board(fen)
        result = board.outcome()
        if result is None:
            return None

        winner_color = None
        if result.winner is not None:
            winner_color = WHITE if result.winner == chess.WHITE else BLACK
        return GameOutcome(
            termination=result.termination.name.lower(),
            winner_color=winner_color,
        )

    def side_to_move(self, fen: str) -> str:
        board = self._board(fen)
        return WHITE if board.turn == chess.WHITE else BLACK

    def is_capture(self, fen: str, move: str) -> bool:
        board = self._board(fen)
        return board.is_capture(self._parse(board, move))

    def gives_check(self, fen: str, move: str) -> bool:
        board = self._board(fen)
        return board.gives_check(self._parse(board, move))
