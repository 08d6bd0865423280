from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence

from .models import Game, LedgerEntry, Session, User


class UserRepository(Protocol):
    """
    Abstraction over user persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `User` domain model.
    - Hiding any SQL / driver details from the application layer.
    - Applying balance and counter changes atomically per user, so that
      concurrent updates to different users never clobber each other.
    """

    def get_user(self, user_id: str) -> Optional[User]:
        """Return the user with the given internal ID, or None if not found."""

        ...

    def get_by_username(self, username: str) -> Optional[User]:
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        ...

    def get_all_users(self) -> List[User]:
        """Return all users currently known to the system."""

        ...

    def add_user(self, user: User) -> None:
        """
        Persist a new user.

        Raises `Conflict` if the ID, username or email is already taken.
        """

        ...

    def update_balance(self, user_id: str, delta: int) -> bool:
        """
        Adjust a user's balance by `delta`.

        Positive deltas are also added to the lifetime `total_earned`
        counter. Implementations should atomically apply the delta and
        return False when no such user exists.
        """

        ...

    def increment_counters(self, user_id: str, **deltas: int) -> bool:
        """
        Atomically add to the named game counters (`games_played`,
        `games_won`, ...). Returns False when no such user exists.
        """

        ...

    def apply_settlement(self, game_id: str, entries: Sequence[LedgerEntry]) -> bool:
        """
        Apply every entry of a finished game in one transaction.

        Each game is settled at most once: returns False, changing nothing,
        when `game_id` was already settled. Raises `NotFound` (and applies
        nothing) when an entry names an unknown user.
        """

        ...

    def set_last_login(self, user_id: str, when: datetime) -> None:
        ...

    def top_by_balance(self, limit: int) -> List[User]:
        ...


class GameRepository(Protocol):
    """
    Persistence abstraction for games.

    Each game is stored under its own key; saving one game never touches
    another.
    """

    def get_game(self, game_id: str) -> Optional[Game]:
        ...

    def add_game(self, game: Game) -> None:
        ...

    def save_game(self, game: Game) -> None:
        """
        Persist `game` if the stored version still equals `game.version`.

        On success `game.version` is incremented. A stale write raises
        `Conflict` and leaves the stored record untouched.
        """

        ...

    def list_by_status(self, statuses: Iterable[str], limit: int) -> List[Game]:
        """Return games in any of `statuses`, newest first."""

        ...

    def list_active_vs_computer(self) -> List[Game]:
        """Return every active game against the computer."""

        ...

    def list_unsettled(self) -> List[Game]:
        """Return finished games whose ledger effects are not recorded yet."""

        ...


class IdentityRepository(Protocol):
    """
    Maps external identities (Telegram/web) to internal user IDs.

    The application layer should work exclusively with internal user IDs
    and leave provider-specific identifiers to this abstraction.
    """

    def find_user_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[User]:
        """Return the user mapped to the given external identity, if any."""

        ...

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        user_id: str,
    ) -> None:
        """Associate an external identity with an internal user ID."""

        ...


class SessionRepository(Protocol):
    """
    Persistence abstraction for bearer tokens.
    """

    def add_session(self, session: Session) -> None:
        ...

    def get_session(self, token: str) -> Optional[Session]:
        ...

    def delete_session(self, token: str) -> None:
        ...
