from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional, Sequence

from domain.errors import NotFound
from domain.models import LedgerEntry, User, utcnow
from domain.repositories import UserRepository
from infrastructure.db.sqlite_base import SqliteRepository, from_iso, to_iso


_COLUMNS = (
    "id, display_name, username, email, password_hash, balance, total_earned, "
    "games_played, games_won, games_lost, games_drawn, computer_games_won, "
    "rating, created_at, last_login, active"
)

_COUNTERS = frozenset(
    {
        "games_played",
        "games_won",
        "games_lost",
        "games_drawn",
        "computer_games_won",
    }
)


class SqliteUserRepository(SqliteRepository, UserRepository):
    """
    SQLite-backed implementation of `UserRepository`.

    This repository owns the `users` table and maps rows to the `User`
    domain model. It is self-initialising: the table is created if needed.
    Balance and counter changes are single UPDATE statements, so they are
    atomic per user. A finished game is settled in one transaction that also
    claims its row in `settlements`, so a retry never pays twice.
    """

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            username TEXT UNIQUE,
            email TEXT UNIQUE,
            password_hash TEXT,
            balance INTEGER NOT NULL DEFAULT 0,
            total_earned INTEGER NOT NULL DEFAULT 0,
            games_played INTEGER NOT NULL DEFAULT 0,
            games_won INTEGER NOT NULL DEFAULT 0,
            games_lost INTEGER NOT NULL DEFAULT 0,
            games_drawn INTEGER NOT NULL DEFAULT 0,
            computer_games_won INTEGER NOT NULL DEFAULT 0,
            rating INTEGER NOT NULL DEFAULT 1500,
            created_at TEXT NOT NULL,
            last_login TEXT,
            active INTEGER NOT NULL DEFAULT 1
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS settlements (
            game_id TEXT PRIMARY KEY,
            settled_at TEXT NOT NULL
        )
        """,
    )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> User:
        return User(
            id=str(row[0]),
            display_name=row[1],
            username=row[2],
            email=row[3],
            password_hash=row[4],
            balance=int(row[5]),
            total_earned=int(row[6]),
            games_played=int(row[7]),
            games_won=int(row[8]),
            games_lost=int(row[9]),
            games_drawn=int(row[10]),
            computer_games_won=int(row[11]),
            rating=int(row[12]),
            created_at=from_iso(row[13]),
            last_login=from_iso(row[14]),
            active=bool(row[15]),
        )

    def _fetch_one(self, where: str, value: str) -> Optional[User]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE {where} = ?",
                (value,),
            ).fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def get_user(self, user_id: str) -> Optional[User]:
        return self._fetch_one("id", user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return self._fetch_one("username", username)

    def get_by_email(self, email: str) -> Optional[User]:
        return self._fetch_one("email", email)

    def get_all_users(self) -> List[User]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT {_COLUMNS} FROM users").fetchall()
            return [self._to_domain(row) for row in rows]

    def add_user(self, user: User) -> None:
        with self._connection() as conn:
            conn.execute(
                f"""
                INSERT INTO users ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.display_name,
                    user.username,
                    user.email,
                    user.password_hash,
                    user.balance,
                    user.total_earned,
                    user.games_played,
                    user.games_won,
                    user.games_lost,
                    user.games_drawn,
                    user.computer_games_won,
                    user.rating,
                    to_iso(user.created_at),
                    to_iso(user.last_login),
                    int(user.active),
                ),
            )

    def update_balance(self, user_id: str, delta: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                """
                UPDATE users
                SET balance = balance + ?,
                    total_earned = total_earned + ?
                WHERE id = ?
                """,
                (delta, max(delta, 0), user_id),
            )
            return cur.rowcount > 0

    def increment_counters(self, user_id: str, **deltas: int) -> bool:
        unknown = set(deltas) - _COUNTERS
        if unknown:
            raise ValueError(f"Unknown counters: {sorted(unknown)}")
        if not deltas:
            return self.get_user(user_id) is not None

        names = sorted(deltas)
        assignments = ", ".join(f"{name} = {name} + ?" for name in names)
        with self._connection() as conn:
            cur = conn.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                (*[deltas[name] for name in names], user_id),
            )
            return cur.rowcount > 0

    def apply_settlement(self, game_id: str, entries: Sequence[LedgerEntry]) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO settlements (game_id, settled_at) VALUES (?, ?)",
                (game_id, to_iso(utcnow())),
            )
            if cur.rowcount == 0:
                return False

            for entry in entries:
                cur = conn.execute(
                    """
                    UPDATE users
                    SET balance = balance + ?,
                        total_earned = total_earned + ?,
                        games_played = games_played + ?,
                        games_won = games_won + ?,
                        games_lost = games_lost + ?,
                        games_drawn = games_drawn + ?,
                        computer_games_won = computer_games_won + ?
                    WHERE id = ?
                    """,
                    (
                        entry.amount,
                        max(entry.amount, 0),
                        entry.games_played,
                        entry.games_won,
                        entry.games_lost,
                        entry.games_drawn,
                        entry.computer_games_won,
                        entry.user_id,
                    ),
                )
                if cur.rowcount == 0:
                    # Rolls back the claim and every entry applied so far.
                    raise NotFound(f"Player {entry.user_id} not found.")
            return True

    def set_last_login(self, user_id: str, when: datetime) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE users SET last_login = ? WHERE id = ?",
                (to_iso(when), user_id),
            )

    def top_by_balance(self, limit: int) -> List[User]:
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM users
                WHERE active = 1
                ORDER BY balance DESC, games_won DESC, created_at ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
            return [self._to_domain(row) for row in rows]
