from __future__ import annotations

from domain.models import GameMode


# Modes offered from the /play keyboard. Friend games need an opponent
# and are started with `/play <email or id>` instead.
KEYBOARD_MODES = (GameMode.COMPUTER, GameMode.OPEN)


def encode_play_choice(mode: str) -> str:
    """
    Encode a "choose game mode" callback.

    Format: play:{mode}
    """

    return f"play:{mode}"


def parse_play_choice(data: str) -> str:
    parts = data.split(":")
    if len(parts) != 2 or parts[0] != "play" or parts[1] not in KEYBOARD_MODES:
        raise ValueError(f"Invalid play choice callback data: {data}")

    return parts[1]
