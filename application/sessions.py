from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Set

from application import ledger
from application.opponent import HeuristicOpponent
from domain.errors import ChessServiceError, Conflict, InvalidMove, NotFound, ValidationError
from domain.models import (
    COMPUTER_PLAYER_ID,
    DEFAULT_TIME_CONTROL,
    Game,
    GameStatus,
    MoveRecord,
    utcnow,
)
from domain.repositories import GameRepository, UserRepository
from domain.rules import BLACK, WHITE, GameOutcome, RulesEngine


log = logging.getLogger(__name__)

DEFAULT_COMPUTER_DELAY = 1.0
LOCK_STRIPES = 64


class Scheduler(Protocol):
    """Runs a callback once after a delay (in seconds)."""

    def schedule(self, delay: float, fn: Callable[..., object], *args: object) -> object:
        ...

    def cancel_all(self) -> None:
        ...


@dataclass
class MoveResult:
    """Outcome of an accepted move."""

    game: Game
    game_over: bool
    computer_pending: bool = False


class GameSessionService:
    """
    Owns the lifecycle of every game: waiting -> active -> finished.

    All mutations of a given game go through a per-game lock, and the
    repository rejects stale saves, so two requests for the same game
    cannot interleave their read-modify-write cycles. Locks are striped
    over a fixed pool, so memory does not grow with the number of game
    ids seen. `finished` is terminal: nothing here moves a game out of it.

    Computer replies and ledger settlement happen after the move that
    triggers them. Both are recoverable: a game left waiting on the
    computer gets its reply scheduled again, and a finished game that
    was never settled is settled by `recover()`.
    """

    def __init__(
        self,
        game_repo: GameRepository,
        user_repo: UserRepository,
        rules: RulesEngine,
        scheduler: Scheduler,
        opponent: Optional[HeuristicOpponent] = None,
        computer_delay: float = DEFAULT_COMPUTER_DELAY,
    ) -> None:
        self._game_repo = game_repo
        self._user_repo = user_repo
        self._rules = rules
        self._scheduler = scheduler
        self._opponent = opponent or HeuristicOpponent(rules)
        self._computer_delay = computer_delay
        self._locks = tuple(threading.RLock() for _ in range(LOCK_STRIPES))
        self._pending_replies: Set[str] = set()
        self._pending_guard = threading.Lock()

    def _lock_for(self, game_id: str) -> threading.RLock:
        # Never hold two of these at once; games sharing a stripe only
        # wait on each other.
        return self._locks[hash(game_id) % len(self._locks)]

    def get(self, game_id: str) -> Game:
        """
        Return the stored game or raise `NotFound`.

        Reading a game that waits on a computer reply no longer in flight
        schedules that reply.
        """

        game = self._game_repo.get_game(game_id)
        if game is None:
            raise NotFound(f"Game {game_id} not found.")
        if self._awaits_computer(game):
            self._ensure_computer_reply(game.id)
        return game

    def recover(self) -> None:
        """
        Pick up work a previous process left unfinished.

        Settles finished games the ledger never recorded, then schedules
        the computer's reply in every active game where it is to move.
        """

        settled = 0
        for game in self._game_repo.list_unsettled():
            with self._lock_for(game.id):
                current = self._game_repo.get_game(game.id)
                if current is None or current.status != GameStatus.FINISHED or current.settled:
                    continue
                self._settle(current)
                if current.settled:
                    settled += 1

        resumed = 0
        for game in self._game_repo.list_active_vs_computer():
            if self._awaits_computer(game) and self._ensure_computer_reply(game.id):
                resumed += 1

        log.info("Recovered %s unsettled games and %s computer replies", settled, resumed)

    def create(
        self,
        player_a: str,
        player_b: Optional[str] = None,
        vs_computer: bool = False,
        time_control: Optional[str] = None,
    ) -> Game:
        """
        Start a new game at the initial position with `player_a` as white.

        The game is `waiting` until a second human joins, unless it is
        against the computer or `player_b` is already known.
        """

        if not player_a:
            raise ValidationError("Player is required to create a game.")
        if player_a == COMPUTER_PLAYER_ID:
            raise ValidationError("The computer cannot create games.")

        if player_b == COMPUTER_PLAYER_ID:
            vs_computer = True
        if vs_computer:
            player_b = COMPUTER_PLAYER_ID
        if player_b == player_a:
            raise ValidationError("You cannot play against yourself.")

        status = GameStatus.ACTIVE if player_b else GameStatus.WAITING
        game = Game(
            id=uuid.uuid4().hex,
            player_white=player_a,
            player_black=player_b,
            vs_computer=vs_computer,
            fen=self._rules.initial_position(),
            status=status,
            turn=player_a,
            time_control=time_control or DEFAULT_TIME_CONTROL,
        )
        self._game_repo.add_game(game)
        log.info(
            "Created game %s for %s (opponent=%s, status=%s)",
            game.id,
            player_a,
            player_b,
            status,
        )
        return game

    def join(self, game_id: str, player: str) -> Game:
        if not player:
            raise ValidationError("Player is required to join a game.")

        with self._lock_for(game_id):
            game = self.get(game_id)
            if player == game.player_white:
                raise Conflict("You cannot join your own game.")
            if game.status != GameStatus.WAITING or game.player_black:
                raise Conflict("Game is not available.")

            game.player_black = player
            game.status = GameStatus.ACTIVE
            self._game_repo.save_game(game)

        log.info("Player %s joined game %s", player, game_id)
        return game

    def submit_move(self, game_id: str, acting_player: str, move: str) -> MoveResult:
        """
        Validate and apply a move for `acting_player`.

        Raises `InvalidMove` for unknown or inactive games, moves out of
        turn and moves the rules engine rejects; in all of those cases the
        stored game is untouched. Against the computer, an accepted human
        move schedules the computer's reply.
        """

        with self._lock_for(game_id):
            result = self._apply_move(game_id, acting_player, move)

        if result.computer_pending:
            self._ensure_computer_reply(game_id)
        return result

    def play_computer_reply(self, game_id: str) -> Optional[Game]:
        """
        Let the computer answer in `game_id`.

        Returns None without touching the game if it is no longer active
        or it is not the computer's move.
        """

        with self._lock_for(game_id):
            game = self._game_repo.get_game(game_id)
            if game is None or not self._awaits_computer(game):
                return None

            move = self._opponent.choose_move(game.fen)
            if move is None:
                return None

            result = self._apply_move(game_id, COMPUTER_PLAYER_ID, move)

        log.info("Computer played %s in game %s", move, game_id)
        return result.game

    def _awaits_computer(self, game: Game) -> bool:
        return (
            game.vs_computer
            and game.status == GameStatus.ACTIVE
            and self._rules.side_to_move(game.fen) == BLACK
        )

    def _ensure_computer_reply(self, game_id: str) -> bool:
        """Schedule the computer's reply unless one is already in flight."""

        with self._pending_guard:
            if game_id in self._pending_replies:
                return False
            self._pending_replies.add(game_id)

        self._scheduler.schedule(self._computer_delay, self._run_computer_reply, game_id)
        return True

    def _run_computer_reply(self, game_id: str) -> None:
        # Top of the scheduler's thread: there is no caller to report to.
        try:
            with self._pending_guard:
                self._pending_replies.discard(game_id)
            self.play_computer_reply(game_id)
        except Exception:
            log.exception("Computer reply failed for game %s", game_id)

    def _apply_move(self, game_id: str, acting_player: str, move: str) -> MoveResult:
        game = self._game_repo.get_game(game_id)
        if game is None:
            raise InvalidMove(f"Game {game_id} not found.")
        if game.status != GameStatus.ACTIVE:
            raise InvalidMove("Game is not active.")

        is_computer = acting_player == COMPUTER_PLAYER_ID
        side = self._rules.side_to_move(game.fen)
        if is_computer:
            if not game.vs_computer or side != BLACK:
                raise InvalidMove("It is not the computer's move.")
        else:
            if acting_player != game.turn:
                raise InvalidMove("It is not your turn.")
            if game.vs_computer and side != WHITE:
                # The reply may have been lost with a previous process.
                self._ensure_computer_reply(game_id)
                raise InvalidMove("Waiting for the computer to move.")

        applied = self._rules.apply(game.fen, move)

        now = utcnow()
        game.moves.append(
            MoveRecord(
                player=acting_player,
                move=applied.uci,
                san=applied.san,
                fen=applied.fen,
                is_computer=is_computer,
                timestamp=now,
            )
        )
        game.fen = applied.fen
        game.last_move_at = now
        if not game.vs_computer:
            game.turn = game.opponent_of(acting_player)

        outcome = self._rules.outcome(game.fen)
        if outcome is not None:
            self._finish(game, outcome, acting_player)

        self._game_repo.save_game(game)

        game_over = game.status == GameStatus.FINISHED
        if game_over:
            self._settle(game)

        return MoveResult(
            game=game,
            game_over=game_over,
            computer_pending=game.vs_computer and not is_computer and not game_over,
        )

    def _settle(self, game: Game) -> None:
        """
        Record a finished game in the ledger and mark it settled.

        The move that finished the game stands even if this fails; the
        game stays unsettled and `recover()` retries it. The ledger claims
        each game once, so a retry never pays twice.
        """

        try:
            ledger.settle_game(game, self._user_repo)
            game.settled = True
            self._game_repo.save_game(game)
        except ChessServiceError:
            game.settled = False
            log.exception("Settlement of game %s failed; it will be retried", game.id)

    @staticmethod
    def _finish(game: Game, outcome: GameOutcome, acting_player: str) -> None:
        game.status = GameStatus.FINISHED
        game.result = outcome.result
        game.termination = outcome.termination
        if outcome.is_checkmate:
            game.winner = acting_player
        log.info(
            "Game %s finished: %s (%s), winner=%s",
            game.id,
            game.result,
            game.termination,
            game.winner,
        )
