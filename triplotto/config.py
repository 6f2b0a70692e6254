"""Runtime settings for the lottery engine.

Values are read from environment variables (a ``.env`` file in the working
directory is loaded first) and fall back to the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import InvalidConfigError


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    """Return the integer value of environment variable ``name``."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidConfigError(
            f"Environment variable '{name}' must be an integer, got {value!r}"
        ) from exc


@dataclass(frozen=True)
class GameSettings:
    """Engine-wide defaults applied when a game omits a parameter.

    Attributes
    ----------
    ticket_price : int
        Default price of one ticket, in the smallest currency unit.
    max_tickets : int
        Default number of tickets a game may sell.
    duration_seconds : int
        Default length of the ticket-sales window.
    reveal_delay_seconds : Optional[int]
        Delay between the draw and its reveal. ``None`` disables sealing.
    escalation_window_seconds : int
        Grace period after the unlock time before an emergency reveal is allowed.
    callback_budget : int
        Budget forwarded to the randomness provider with every seed request.
    prize_policy : str
        Registry key of the default prize policy.
    max_draw_attempts : int
        Retry cap for winning-number derivation.
    """

    ticket_price: int = 1
    max_tickets: int = 100
    duration_seconds: int = 3600
    reveal_delay_seconds: Optional[int] = None
    escalation_window_seconds: int = 24 * 3600
    callback_budget: int = 200_000
    prize_policy: str = "fixed_tier"
    max_draw_attempts: int = 1000


def load_settings() -> GameSettings:
    """Build :class:`GameSettings` from the environment."""
    load_dotenv()

    reveal_delay = _get_int("LOTTERY_REVEAL_DELAY_SECONDS", None)
    if reveal_delay is not None and reveal_delay <= 0:
        reveal_delay = None

    defaults = GameSettings()
    return GameSettings(
        ticket_price=_get_int("LOTTERY_TICKET_PRICE", defaults.ticket_price),
        max_tickets=_get_int("LOTTERY_MAX_TICKETS", defaults.max_tickets),
        duration_seconds=_get_int(
            "LOTTERY_DURATION_SECONDS", defaults.duration_seconds
        ),
        reveal_delay_seconds=reveal_delay,
        escalation_window_seconds=_get_int(
            "LOTTERY_ESCALATION_WINDOW_SECONDS", defaults.escalation_window_seconds
        ),
        callback_budget=_get_int("LOTTERY_CALLBACK_BUDGET", defaults.callback_budget),
        prize_policy=os.getenv("LOTTERY_PRIZE_POLICY", defaults.prize_policy),
        max_draw_attempts=_get_int(
            "LOTTERY_MAX_DRAW_ATTEMPTS", defaults.max_draw_attempts
        ),
    )


__all__ = ["GameSettings", "load_settings"]
