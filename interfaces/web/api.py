from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from application import accounts, lobby
from domain.errors import ChessServiceError, Unauthorized, ValidationError
from domain.models import User
from infrastructure.container import Services
from interfaces.web.serializers import game_to_dict, user_to_dict


log = logging.getLogger(__name__)


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


def create_web_app(services: Services) -> Flask:
    """
    Configure and return a Flask app wired to the application layer.

    This module contains only HTTP concerns: parsing requests, checking
    bearer tokens and turning domain objects and errors into JSON.
    """

    app = Flask(__name__)
    CORS(app)

    def current_user() -> User:
        return accounts.authenticate(
            _bearer_token(),
            services.user_repo,
            services.session_repo,
        )

    @app.errorhandler(ChessServiceError)
    def handle_service_error(exc: ChessServiceError):
        if exc.http_status >= 500:
            log.error("%s %s failed: %s", request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/api/auth/register")
    @app.post("/api/register")
    def register():
        body = _json_body()
        result = accounts.register(
            body.get("username", ""),
            body.get("email", ""),
            body.get("password", ""),
            services.user_repo,
            services.session_repo,
        )
        return (
            jsonify(
                {
                    "message": "User registered successfully",
                    "user": user_to_dict(result.user, private=True),
                    "token": result.token,
                }
            ),
            201,
        )

    @app.post("/api/auth/login")
    @app.post("/api/login")
    def login():
        body = _json_body()
        result = accounts.login(
            body.get("username") or body.get("email") or "",
            body.get("password", ""),
            services.user_repo,
            services.session_repo,
        )
        return jsonify(
            {
                "message": "Login successful",
                "user": user_to_dict(result.user, private=True),
                "token": result.token,
            }
        )

    @app.get("/api/profile")
    def profile():
        return jsonify(user_to_dict(current_user(), private=True))

    @app.post("/api/games")
    @app.post("/api/game")
    def create_game():
        user = current_user()
        body = _json_body()
        game = lobby.create_game(
            user.id,
            body.get("mode") or body.get("gameMode") or "open",
            services.sessions,
            services.user_repo,
            friend=body.get("friend") or body.get("friendEmail"),
            time_control=body.get("time_control") or body.get("timeControl"),
        )
        return jsonify({"message": "Game created successfully", "game": game_to_dict(game)}), 201

    @app.get("/api/games")
    def list_games():
        limit = request.args.get("limit", default=lobby.MAX_LISTED_GAMES, type=int)
        games = lobby.list_open_games(services.game_repo, limit)
        return jsonify([game_to_dict(g) for g in games])

    @app.get("/api/games/<game_id>")
    @app.get("/api/game/<game_id>")
    def get_game(game_id: str):
        return jsonify(game_to_dict(services.sessions.get(game_id)))

    @app.put("/api/games/<game_id>/join")
    @app.post("/api/game/<game_id>/join")
    def join_game(game_id: str):
        user = current_user()
        game = services.sessions.join(game_id, user.id)
        return jsonify({"message": "Joined game successfully", "game": game_to_dict(game)})

    @app.post("/api/games/<game_id>/move")
    @app.post("/api/game/<game_id>/move")
    def submit_move(game_id: str):
        user = current_user()
        body = _json_body()

        player_id = body.get("playerId")
        if player_id is not None and player_id != user.id:
            raise Unauthorized("You can only move for yourself.")

        move = body.get("move")
        if not isinstance(move, str) or not move.strip():
            raise ValidationError("Move is required.")

        result = services.sessions.submit_move(game_id, user.id, move)
        return jsonify(
            {
                "game": game_to_dict(result.game),
                "game_over": result.game_over,
                "computer_pending": result.computer_pending,
            }
        )

    @app.get("/api/leaderboard")
    def leaderboard():
        users = accounts.leaderboard(services.user_repo)
        return jsonify([user_to_dict(u) for u in users])

    return app
