from __future__ import annotations

import sqlite3
from typing import Optional

from domain.models import Session
from domain.repositories import SessionRepository
from infrastructure.db.sqlite_base import SqliteRepository, from_iso, to_iso


class SqliteSessionRepository(SqliteRepository, SessionRepository):
    """
    SQLite-backed implementation of `SessionRepository`.

    Manages the `sessions` table, which stores bearer tokens issued at
    login and by the chat bot.
    """

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS sessions (
            token TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
        """,
    )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Session:
        return Session(
            token=row[0],
            user_id=str(row[1]),
            created_at=from_iso(row[2]),
            expires_at=from_iso(row[3]),
        )

    def add_session(self, session: Session) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (token, user_id, created_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session.token,
                    session.user_id,
                    to_iso(session.created_at),
                    to_iso(session.expires_at),
                ),
            )

    def get_session(self, token: str) -> Optional[Session]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT token, user_id, created_at, expires_at FROM sessions WHERE token = ?",
                (token,),
            ).fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def delete_session(self, token: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
