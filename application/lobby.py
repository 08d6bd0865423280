from __future__ import annotations

from typing import List, Optional

from application.sessions import GameSessionService
from domain.errors import Conflict, NotFound, ValidationError, ensure_text
from domain.models import Game, GameMode, GameStatus, User
from domain.repositories import GameRepository, UserRepository


MAX_LISTED_GAMES = 20


def list_open_games(game_repo: GameRepository, limit: int = MAX_LISTED_GAMES) -> List[Game]:
    """Return waiting and active games, newest first, never more than 20."""

    limit = max(0, min(limit, MAX_LISTED_GAMES))
    if limit == 0:
        return []
    return game_repo.list_by_status([GameStatus.WAITING, GameStatus.ACTIVE], limit)


def find_player(user_repo: UserRepository, email_or_id: str) -> Optional[User]:
    """Resolve a player by email, then username, then internal ID."""

    key = ensure_text(email_or_id, "Friend").strip()
    if not key:
        return None
    if "@" in key:
        return user_repo.get_by_email(key.lower())
    return user_repo.get_by_username(key) or user_repo.get_user(key)


def create_open(
    player_a: str,
    sessions: GameSessionService,
    time_control: Optional[str] = None,
) -> Game:
    return sessions.create(player_a, time_control=time_control)


def create_for_friend(
    player_a: str,
    friend_email_or_id: str,
    sessions: GameSessionService,
    user_repo: UserRepository,
    time_control: Optional[str] = None,
) -> Game:
    """
    Start a game against a known player.

    Both seats are bound immediately, so the game is active from the start.
    """

    friend = find_player(user_repo, friend_email_or_id)
    if friend is None:
        raise NotFound(f"Player {friend_email_or_id} not found.")
    if friend.id == player_a:
        raise Conflict("You cannot invite yourself.")

    return sessions.create(player_a, friend.id, time_control=time_control)


def create_vs_computer(
    player_a: str,
    sessions: GameSessionService,
    time_control: Optional[str] = None,
) -> Game:
    # The human is always white, so the computer never opens.
    return sessions.create(player_a, vs_computer=True, time_control=time_control)


def create_game(
    player_a: str,
    mode: str,
    sessions: GameSessionService,
    user_repo: UserRepository,
    friend: Optional[str] = None,
    time_control: Optional[str] = None,
) -> Game:
    mode = (ensure_text(mode, "Game mode") or GameMode.OPEN).lower()
    friend = ensure_text(friend, "Friend").strip()
    time_control = ensure_text(time_control, "Time control").strip() or None
    if mode == GameMode.OPEN:
        return create_open(player_a, sessions, time_control)
    if mode == GameMode.FRIEND:
        if not friend:
            raise ValidationError("Friend email or id is required.")
        return create_for_friend(player_a, friend, sessions, user_repo, time_control)
    if mode == GameMode.COMPUTER:
        return create_vs_computer(player_a, sessions, time_control)
    raise ValidationError(f"Unknown game mode: {mode}")
