"""Contracts of the collaborators the game engine talks to."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol, Union

SeedCallback = Callable[[str, Union[bytes, int, str]], object]
"""Signature of ``GameService.on_random_seed_received``."""

UnlockCallback = Callable[[str, Union[bytes, str]], object]
"""Signature of ``GameService.on_unlock_signal_received``."""


@dataclass(frozen=True)
class UnlockCondition:
    """Time-based condition a time-lock provider must observe before unlocking."""

    game_id: int
    unlock_time: datetime


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class RandomnessProvider(Protocol):
    def request_seed(self, callback_budget: int) -> str:
        """Start a seed request and return its id.

        The seed is delivered later through
        ``GameService.on_random_seed_received(request_id, seed)``.
        """
        ...


class TimeLockProvider(Protocol):
    def request_unlock(self, condition: UnlockCondition, opaque_payload: bytes) -> str:
        """Hold ``opaque_payload`` until ``condition`` is met and return a request id.

        Once the condition holds, the payload is delivered as the unlock proof
        through ``GameService.on_unlock_signal_received(request_id, proof)``.
        """
        ...


class PaymentSink(Protocol):
    def pay(self, recipient: str, amount: int, *, reason: str) -> None:
        """Transfer ``amount`` to ``recipient``."""
        ...


__all__ = [
    "Clock",
    "PaymentSink",
    "RandomnessProvider",
    "SeedCallback",
    "TimeLockProvider",
    "UnlockCallback",
    "UnlockCondition",
]
