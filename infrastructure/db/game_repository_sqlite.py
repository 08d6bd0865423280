from __future__ import annotations

import json
import sqlite3
from typing import Iterable, List, Optional

from domain.errors import Conflict, NotFound
from domain.models import Game, GameStatus, MoveRecord
from domain.repositories import GameRepository
from infrastructure.db.sqlite_base import SqliteRepository, from_iso, to_iso


_COLUMNS = (
    "id, player_white, player_black, vs_computer, fen, status, turn, moves, "
    "winner, result, termination, time_control, created_at, last_move_at, settled, version"
)


def _moves_to_json(moves: List[MoveRecord]) -> str:
    return json.dumps(
        [
            {
                "player": m.player,
                "move": m.move,
                "san": m.san,
                "fen": m.fen,
                "is_computer": m.is_computer,
                "timestamp": to_iso(m.timestamp),
            }
            for m in moves
        ]
    )


def _moves_from_json(raw: str) -> List[MoveRecord]:
    return [
        MoveRecord(
            player=item["player"],
            move=item["move"],
            san=item["san"],
            fen=item["fen"],
            is_computer=bool(item["is_computer"]),
            timestamp=from_iso(item["timestamp"]),
        )
        for item in json.loads(raw or "[]")
    ]


class SqliteGameRepository(SqliteRepository, GameRepository):
    """
    SQLite-backed implementation of `GameRepository`.

    One row per game, with the move history kept as a JSON column. Saves
    are compare-and-swap on the `version` column: a writer holding an
    outdated copy gets `Conflict` and the stored row is left alone.
    """

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS games (
            id TEXT PRIMARY KEY,
            player_white TEXT NOT NULL,
            player_black TEXT,
            vs_computer INTEGER NOT NULL DEFAULT 0,
            fen TEXT NOT NULL,
            status TEXT NOT NULL,
            turn TEXT NOT NULL,
            moves TEXT NOT NULL DEFAULT '[]',
            winner TEXT,
            result TEXT NOT NULL DEFAULT '',
            termination TEXT NOT NULL DEFAULT '',
            time_control TEXT NOT NULL,
            created_at TEXT NOT NULL,
            last_move_at TEXT,
            settled INTEGER NOT NULL DEFAULT 0,
            version INTEGER NOT NULL DEFAULT 0
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_games_status_created ON games (status, created_at)",
        "CREATE INDEX IF NOT EXISTS idx_games_unsettled ON games (status, settled)",
    )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Game:
        return Game(
            id=str(row[0]),
            player_white=row[1],
            player_black=row[2],
            vs_computer=bool(row[3]),
            fen=row[4],
            status=row[5],
            turn=row[6],
            moves=_moves_from_json(row[7]),
            winner=row[8],
            result=row[9],
            termination=row[10],
            time_control=row[11],
            created_at=from_iso(row[12]),
            last_move_at=from_iso(row[13]),
            settled=bool(row[14]),
            version=int(row[15]),
        )

    def get_game(self, game_id: str) -> Optional[Game]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM games WHERE id = ?",
                (game_id,),
            ).fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_game(self, game: Game) -> None:
        with self._connection() as conn:
            conn.execute(
                f"""
                INSERT INTO games ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    game.id,
                    game.player_white,
                    game.player_black,
                    int(game.vs_computer),
                    game.fen,
                    game.status,
                    game.turn,
                    _moves_to_json(game.moves),
                    game.winner,
                    game.result,
                    game.termination,
                    game.time_control,
                    to_iso(game.created_at),
                    to_iso(game.last_move_at),
                    int(game.settled),
                    game.version,
                ),
            )

    def save_game(self, game: Game) -> None:
        with self._connection() as conn:
            cur = conn.execute(
                """
                UPDATE games
                SET player_black = ?,
                    fen = ?,
                    status = ?,
                    turn = ?,
                    moves = ?,
                    winner = ?,
                    result = ?,
                    termination = ?,
                    last_move_at = ?,
                    settled = ?,
                    version = version + 1
                WHERE id = ? AND version = ?
                """,
                (
                    game.player_black,
                    game.fen,
                    game.status,
                    game.turn,
                    _moves_to_json(game.moves),
                    game.winner,
                    game.result,
                    game.termination,
                    to_iso(game.last_move_at),
                    int(game.settled),
                    game.id,
                    game.version,
                ),
            )
            if cur.rowcount == 0:
                exists = conn.execute(
                    "SELECT 1 FROM games WHERE id = ?",
                    (game.id,),
                ).fetchone()
                if exists:
                    raise Conflict(f"Game {game.id} was modified by another request.")
                raise NotFound(f"Game {game.id} not found.")

        game.version += 1

    def list_by_status(self, statuses: Iterable[str], limit: int) -> List[Game]:
        statuses = list(statuses)
        if not statuses:
            return []

        placeholders = ", ".join("?" for _ in statuses)
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM games
                WHERE status IN ({placeholders})
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (*statuses, limit),
            ).fetchall()
            return [self._to_domain(row) for row in rows]

    def _select_where(self, where: str, params: tuple) -> List[Game]:
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM games WHERE {where} ORDER BY created_at ASC, rowid ASC",
                params,
            ).fetchall()
            return [self._to_domain(row) for row in rows]

    def list_active_vs_computer(self) -> List[Game]:
        return self._select_where("status = ? AND vs_computer = 1", (GameStatus.ACTIVE,))

    def list_unsettled(self) -> List[Game]:
        return self._select_where("status = ? AND settled = 0", (GameStatus.FINISHED,))
