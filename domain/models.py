from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


COMPUTER_PLAYER_ID = "computer"
DEFAULT_RATING = 1500
DEFAULT_TIME_CONTROL = "10+0"


class GameStatus:
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class GameMode:
    OPEN = "open"
    FRIEND = "friend"
    COMPUTER = "computer"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    """
    Domain representation of a chess player.

    This model is intentionally simple and independent of any
    particular transport (Telegram, web) or database schema. Chat-only
    users have no username, email or password hash.
    """

    id: str
    display_name: str
    username: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    balance: int = 0
    total_earned: int = 0
    games_played: int = 0
    games_won: int = 0
    games_lost: int = 0
    games_drawn: int = 0
    computer_games_won: int = 0
    rating: int = DEFAULT_RATING
    created_at: datetime = field(default_factory=utcnow)
    last_login: Optional[datetime] = None
    active: bool = True


@dataclass
class MoveRecord:
    """One accepted move in a game's history."""

    player: str
    move: str
    san: str
    fen: str
    is_computer: bool = False
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Game:
    """
    A single chess game between two players, or a player and the computer.

    `player_white` is always the creator and always moves first.
    `turn` holds the id of the player whose move is expected; in games
    against the computer it stays with the human. `settled` turns true
    once the ledger has recorded a finished game.
    """

    id: str
    player_white: str
    player_black: Optional[str]
    vs_computer: bool
    fen: str
    status: str
    turn: str
    moves: List[MoveRecord] = field(default_factory=list)
    winner: Optional[str] = None
    result: str = ""
    termination: str = ""
    time_control: str = DEFAULT_TIME_CONTROL
    created_at: datetime = field(default_factory=utcnow)
    last_move_at: Optional[datetime] = None
    settled: bool = False
    version: int = 0

    @property
    def players(self) -> List[str]:
        return [p for p in (self.player_white, self.player_black) if p]

    def opponent_of(self, player_id: str) -> Optional[str]:
        if player_id == self.player_white:
            return self.player_black
        if player_id == self.player_black:
            return self.player_white
        return None


@dataclass
class LedgerEntry:
    """Balance and counter changes for one player from one finished game."""

    user_id: str
    amount: int = 0
    games_played: int = 0
    games_won: int = 0
    games_lost: int = 0
    games_drawn: int = 0
    computer_games_won: int = 0


@dataclass
class Session:
    """A bearer token issued to a user after login or chat onboarding."""

    token: str
    user_id: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at
