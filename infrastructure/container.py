from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from application.opponent import HeuristicOpponent
from application.sessions import DEFAULT_COMPUTER_DELAY, GameSessionService, Scheduler
from domain.rules import RulesEngine
from infrastructure.db.game_repository_sqlite import SqliteGameRepository
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository
from infrastructure.db.session_repository_sqlite import SqliteSessionRepository
from infrastructure.db.user_repository_sqlite import SqliteUserRepository
from infrastructure.scheduler import ThreadingScheduler


@dataclass
class Services:
    """Everything the interfaces need, wired against one database."""

    user_repo: SqliteUserRepository
    game_repo: SqliteGameRepository
    identity_repo: SqliteIdentityRepository
    session_repo: SqliteSessionRepository
    sessions: GameSessionService
    scheduler: Scheduler


def build_services(
    db_path: str,
    computer_delay: float = DEFAULT_COMPUTER_DELAY,
    scheduler: Optional[Scheduler] = None,
    opponent: Optional[HeuristicOpponent] = None,
) -> Services:
    user_repo = SqliteUserRepository(db_path)
    game_repo = SqliteGameRepository(db_path)
    identity_repo = SqliteIdentityRepository(db_path, user_repo)
    session_repo = SqliteSessionRepository(db_path)
    rules = RulesEngine()
    scheduler = scheduler or ThreadingScheduler()

    sessions = GameSessionService(
        game_repo,
        user_repo,
        rules,
        scheduler,
        opponent=opponent or HeuristicOpponent(rules),
        computer_delay=computer_delay,
    )
    return Services(
        user_repo=user_repo,
        game_repo=game_repo,
        identity_repo=identity_repo,
        session_repo=session_repo,
        sessions=sessions,
        scheduler=scheduler,
    )
