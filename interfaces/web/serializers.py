from __future__ import annotations

from datetime import datetime
from typing import Optional

from domain.models import Game, MoveRecord, User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User, private: bool = False) -> dict:
    data = {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "balance": user.balance,
        "rating": user.rating,
        "games_played": user.games_played,
        "games_won": user.games_won,
        "games_lost": user.games_lost,
        "games_drawn": user.games_drawn,
        "computer_games_won": user.computer_games_won,
    }
    if private:
        data.update(
            {
                "email": user.email,
                "total_earned": user.total_earned,
                "created_at": _iso(user.created_at),
                "last_login": _iso(user.last_login),
            }
        )
    return data


def move_to_dict(move: MoveRecord) -> dict:
    return {
        "player": move.player,
        "move": move.move,
        "san": move.san,
        "fen": move.fen,
        "is_computer": move.is_computer,
        "timestamp": _iso(move.timestamp),
    }


def game_to_dict(game: Game) -> dict:
    return {
        "id": game.id,
        "player_white": game.player_white,
        "player_black": game.player_black,
        "vs_computer": game.vs_computer,
        "fen": game.fen,
        "status": game.status,
        "turn": game.turn,
        "winner": game.winner,
        "result": game.result,
        "termination": game.termination,
        "time_control": game.time_control,
        "moves": [move_to_dict(m) for m in game.moves],
        "created_at": _iso(game.created_at),
        "last_move_at": _iso(game.last_move_at),
    }
