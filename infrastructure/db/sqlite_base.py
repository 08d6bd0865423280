from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from domain.errors import Conflict, StoreFailure


class SqliteRepository:
    """
    Shared plumbing for the SQLite repositories.

    Every operation opens its own connection and runs in its own
    transaction, so repositories can be used from several threads. Driver
    errors never leak: unique-key violations become `Conflict` and
    anything else becomes `StoreFailure`.
    """

    _SCHEMA: tuple = ()

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, timeout=10)
        except sqlite3.Error as exc:
            raise StoreFailure(f"Cannot open database: {exc}") from exc

        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError as exc:
            raise Conflict(f"Record already exists: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreFailure(f"Database error: {exc}") from exc
        finally:
            conn.close()

    def _ensure_table(self) -> None:
        with self._connection() as conn:
            for statement in self._SCHEMA:
                conn.execute(statement)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # Fixed width so that string order matches time order.
    return value.isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
