from __future__ import annotations

from typing import Optional

from domain.models import User
from domain.repositories import IdentityRepository, UserRepository
from infrastructure.db.sqlite_base import SqliteRepository


class SqliteIdentityRepository(SqliteRepository, IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    Stores mappings from (provider, provider_user_id) to internal user IDs
    in a `user_identities` table.
    """

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS user_identities (
            provider TEXT NOT NULL,
            provider_user_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            PRIMARY KEY (provider, provider_user_id)
        )
        """,
    )

    def __init__(self, db_path: str, user_repo: UserRepository) -> None:
        self._user_repo = user_repo
        super().__init__(db_path)

    def _get_internal_user_id(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT user_id
                FROM user_identities
                WHERE provider = ? AND provider_user_id = ?
                """,
                (provider, provider_user_id),
            ).fetchone()
            if not row:
                return None
            return str(row[0])

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        user_id: str,
    ) -> None:
        """
        Upsert a mapping from external identity to internal user ID.
        """

        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO user_identities (provider, provider_user_id, user_id)
                VALUES (?, ?, ?)
                ON CONFLICT (provider, provider_user_id)
                DO UPDATE SET user_id = excluded.user_id
                """,
                (provider, provider_user_id, user_id),
            )

    def find_user_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[User]:
        user_id = self._get_internal_user_id(provider, provider_user_id)
        if user_id is None:
            return None
        return self._user_repo.get_user(user_id)
