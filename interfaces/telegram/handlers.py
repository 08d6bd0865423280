from __future__ import annotations

import logging

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application import accounts, lobby
from application.accounts import ExternalContext
from domain.errors import ChessServiceError
from domain.models import Game, GameMode
from infrastructure.container import Services
from interfaces.telegram.callback_data import KEYBOARD_MODES, encode_play_choice, parse_play_choice


log = logging.getLogger(__name__)

_MODE_LABELS = {
    GameMode.COMPUTER: "Play the computer",
    GameMode.OPEN: "Open game for anyone",
}


def _build_external_context(from_user) -> ExternalContext:
    """Extract a channel-agnostic context object from a Telegram user."""

    return ExternalContext(
        provider="telegram",
        provider_user_id=str(from_user.id),
        first_name=from_user.first_name or "",
        last_name=from_user.last_name or "",
    )


def format_balance(user) -> str:
    return (
        f"Balance: {user.balance}\n"
        f"Total earned: {user.total_earned}\n"
        f"Games played: {user.games_played}\n"
        f"Won: {user.games_won}  Lost: {user.games_lost}  Drawn: {user.games_drawn}\n"
        f"Wins vs computer: {user.computer_games_won}"
    )


def format_game_line(game: Game) -> str:
    opponent = game.player_black or "waiting for opponent"
    return f"{game.id[:8]}  {game.status}  {game.time_control}  vs {opponent}"


def create_telegram_bot(
    bot_token: str,
    services: Services,
    web_url: str,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services. The
    board itself lives on the web surface; the bot hands out links to it.
    """

    bot = telebot.TeleBot(bot_token)
    web_url = web_url.rstrip("/")

    def resolve_user(from_user):
        return accounts.get_or_create_chat_user(
            _build_external_context(from_user),
            services.identity_repo,
            services.user_repo,
        )

    def game_link(game: Game) -> str:
        return f"{web_url}/game/{game.id}"

    def send_game_created(chat_id, game: Game) -> None:
        markup = InlineKeyboardMarkup()
        markup.add(InlineKeyboardButton("Open the board", url=game_link(game)))
        bot.send_message(
            chat_id,
            f"Game {game.id[:8]} created ({game.status}).",
            reply_markup=markup,
        )

    @bot.message_handler(commands=["start"])
    def handle_start(message):
        try:
            user = resolve_user(message.from_user)
            token = accounts.issue_token(user.id, services.session_repo)
        except ChessServiceError as exc:
            bot.send_message(message.chat.id, exc.message)
            return

        markup = InlineKeyboardMarkup()
        markup.add(InlineKeyboardButton("Open chess", url=f"{web_url}/?token={token}"))
        bot.send_message(
            message.chat.id,
            f"Welcome to chess, {user.display_name}!\n"
            "Use /play to start a game and /balance to see your winnings.\n"
            "Type /help to see available commands.",
            reply_markup=markup,
        )

    @bot.message_handler(commands=["help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/start                 - open the chess board in your browser\n"
            "/play                  - choose a game mode\n"
            "/play <email or id>    - start a game against a friend\n"
            "/games                 - list open games\n"
            "/balance               - show your balance and stats\n",
        )

    @bot.message_handler(commands=["balance"])
    def handle_balance(message):
        try:
            user = resolve_user(message.from_user)
        except ChessServiceError as exc:
            bot.send_message(message.chat.id, exc.message)
            return

        bot.send_message(message.chat.id, format_balance(user))

    @bot.message_handler(commands=["games"])
    def handle_games(message):
        try:
            games = lobby.list_open_games(services.game_repo)
        except ChessServiceError as exc:
            bot.send_message(message.chat.id, exc.message)
            return

        if not games:
            bot.send_message(message.chat.id, "No open games right now.")
            return

        bot.send_message(message.chat.id, "\n".join(format_game_line(g) for g in games))

    @bot.message_handler(commands=["play"])
    def handle_play(message):
        parts = message.text.split()

        if len(parts) > 1:
            # Friend game: the opponent is given directly.
            try:
                user = resolve_user(message.from_user)
                game = lobby.create_for_friend(
                    user.id,
                    parts[1],
                    services.sessions,
                    services.user_repo,
                )
            except ChessServiceError as exc:
                bot.send_message(message.chat.id, exc.message)
                return

            send_game_created(message.chat.id, game)
            return

        markup = InlineKeyboardMarkup(row_width=1)
        for mode in KEYBOARD_MODES:
            markup.add(
                InlineKeyboardButton(
                    _MODE_LABELS[mode],
                    callback_data=encode_play_choice(mode),
                )
            )

        bot.send_message(message.chat.id, "How do you want to play?", reply_markup=markup)

    @bot.callback_query_handler(func=lambda call: call.data.startswith("play:"))
    def handle_play_choice(call):
        """
        Handle the mode picked from the /play keyboard.
        """

        try:
            mode = parse_play_choice(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        try:
            user = resolve_user(call.from_user)
            game = lobby.create_game(user.id, mode, services.sessions, services.user_repo)
        except ChessServiceError as exc:
            bot.send_message(call.message.chat.id, exc.message)
        else:
            send_game_created(call.message.chat.id, game)
        finally:
            bot.delete_message(call.message.chat.id, call.message.id)

    return bot
