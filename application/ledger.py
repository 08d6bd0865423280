from __future__ import annotations

import logging
from typing import Dict, List

from domain.errors import NotFound, ValidationError
from domain.models import COMPUTER_PLAYER_ID, Game, LedgerEntry
from domain.repositories import UserRepository


log = logging.getLogger(__name__)

WIN_REWARD = 100
COMPUTER_WIN_REWARD = 50


def credit(player_id: str, amount: int, user_repo: UserRepository) -> None:
    """
    Add `amount` to a player's balance.

    Positive amounts also count towards the lifetime earned total.
    """

    if not isinstance(amount, int):
        raise ValidationError("Amount must be an integer.")

    if not user_repo.update_balance(player_id, amount):
        raise NotFound(f"Player {player_id} not found.")


def _completion_deltas(won: bool, vs_computer: bool, drawn: bool) -> Dict[str, int]:
    deltas = {"games_played": 1}
    if won:
        deltas["games_won"] = 1
        if vs_computer:
            deltas["computer_games_won"] = 1
    elif drawn:
        deltas["games_drawn"] = 1
    else:
        deltas["games_lost"] = 1
    return deltas


def record_game_completion(
    player_id: str,
    won: bool,
    vs_computer: bool,
    user_repo: UserRepository,
    drawn: bool = False,
) -> None:
    """
    Bump a player's game counters once a game has finished.

    `games_played` always increments. A win against the computer counts
    both as a win and as a computer win.
    """

    deltas = _completion_deltas(won, vs_computer, drawn)
    if not user_repo.increment_counters(player_id, **deltas):
        raise NotFound(f"Player {player_id} not found.")


def settlement_entries(game: Game) -> List[LedgerEntry]:
    """
    Ledger effects of a finished game:
    - The human winner of a checkmate is credited the fixed reward.
    - Every human participant gets its counters updated, draws included.

    The computer has no ledger entry.
    """

    drawn = game.winner is None
    entries = []
    for player_id in game.players:
        if player_id == COMPUTER_PLAYER_ID:
            continue
        won = player_id == game.winner
        amount = 0
        if won:
            amount = COMPUTER_WIN_REWARD if game.vs_computer else WIN_REWARD
        entries.append(
            LedgerEntry(
                user_id=player_id,
                amount=amount,
                **_completion_deltas(won, game.vs_computer, drawn),
            )
        )
    return entries


def settle_game(game: Game, user_repo: UserRepository) -> bool:
    """
    Apply the ledger effects of a finished game, all or nothing.

    Returns False when the game had already been settled; settling twice
    never pays twice.
    """

    entries = settlement_entries(game)
    applied = user_repo.apply_settlement(game.id, entries)
    if not applied:
        log.info("Game %s was already settled", game.id)
        return False

    for entry in entries:
        if entry.amount:
            log.info("Credited %s with %s for winning game %s", entry.user_id, entry.amount, game.id)
    return True
