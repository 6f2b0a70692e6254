"""In-process collaborator implementations for development, demos and tests."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from .interfaces import SeedCallback, UnlockCallback, UnlockCondition
from ..db.utils import ensure_utc
from ..errors import NotFoundError, TimingError

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = ensure_utc(start) or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = ensure_utc(moment)

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Move the clock forward by ``seconds`` plus any ``timedelta`` keyword arguments."""
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now


class LocalRandomnessProvider:
    """Randomness provider that issues request ids and fulfils them on demand.

    Call :meth:`bind` with ``GameService.on_random_seed_received`` and then
    :meth:`fulfill` to deliver a seed. Without an explicit seed a fresh 32-byte
    value from :mod:`secrets` is used.
    """

    def __init__(self, callback: Optional[SeedCallback] = None, *, prefix: str = "rnd") -> None:
        self._callback = callback
        self._prefix = prefix
        self._counter = 0
        self.pending: dict[str, int] = {}

    def bind(self, callback: SeedCallback) -> None:
        self._callback = callback

    def request_seed(self, callback_budget: int) -> str:
        self._counter += 1
        request_id = f"{self._prefix}-{self._counter}"
        self.pending[request_id] = callback_budget
        logger.debug(f"Randomness request {request_id} issued (budget={callback_budget})")
        return request_id

    def fulfill(
        self, request_id: str, seed: Optional[Union[bytes, int, str]] = None
    ) -> object:
        """Deliver ``seed`` for ``request_id`` and return the callback's result."""
        if self._callback is None:
            raise RuntimeError("LocalRandomnessProvider has no callback bound")
        self.pending.pop(request_id, None)
        if seed is None:
            seed = secrets.token_bytes(32)
        return self._callback(request_id, seed)


@dataclass
class _HeldPayload:
    condition: UnlockCondition
    payload: bytes
    released: bool = False


class LocalTimeLockProvider:
    """Time-lock provider that holds payloads until their unlock time passes.

    The condition check lives here, not in the game engine: :meth:`release`
    refuses to hand out a payload early.
    """

    def __init__(
        self,
        clock,
        callback: Optional[UnlockCallback] = None,
        *,
        prefix: str = "unlock",
    ) -> None:
        self._clock = clock
        self._callback = callback
        self._prefix = prefix
        self._counter = 0
        self._held: dict[str, _HeldPayload] = {}

    def bind(self, callback: UnlockCallback) -> None:
        self._callback = callback

    def request_unlock(self, condition: UnlockCondition, opaque_payload: bytes) -> str:
        self._counter += 1
        request_id = f"{self._prefix}-{self._counter}"
        self._held[request_id] = _HeldPayload(condition=condition, payload=bytes(opaque_payload))
        logger.debug(
            f"Unlock request {request_id} for game {condition.game_id} "
            f"due at {condition.unlock_time.isoformat()}"
        )
        return request_id

    def condition_met(self, request_id: str) -> bool:
        held = self._get(request_id)
        return self._clock.now() >= ensure_utc(held.condition.unlock_time)

    def release(self, request_id: str) -> object:
        """Deliver the held payload for ``request_id`` once its unlock time has passed.

        Raises
        ------
        TimingError
            If the unlock time has not been reached.
        """
        held = self._get(request_id)
        if not self.condition_met(request_id):
            raise TimingError(
                f"Unlock request {request_id} is not due until "
                f"{held.condition.unlock_time.isoformat()}"
            )
        if self._callback is None:
            raise RuntimeError("LocalTimeLockProvider has no callback bound")
        held.released = True
        return self._callback(request_id, held.payload)

    def release_due(self) -> list[str]:
        """Release every unreleased payload whose unlock time has passed."""
        released: list[str] = []
        for request_id, held in list(self._held.items()):
            if held.released or not self.condition_met(request_id):
                continue
            self.release(request_id)
            released.append(request_id)
        return released

    def _get(self, request_id: str) -> _HeldPayload:
        try:
            return self._held[request_id]
        except KeyError as exc:
            raise NotFoundError(f"Unknown unlock request '{request_id}'") from exc


class RecordingPaymentSink:
    """Payment sink that records transfers instead of moving money."""

    def __init__(self) -> None:
        self.payments: list[tuple[str, int, str]] = []

    def pay(self, recipient: str, amount: int, *, reason: str) -> None:
        logger.info(f"Paying {amount} to {recipient} ({reason})")
        self.payments.append((recipient, amount, reason))

    def total_paid_to(self, recipient: str) -> int:
        return sum(amount for who, amount, _ in self.payments if who == recipient)


__all__ = [
    "LocalRandomnessProvider",
    "LocalTimeLockProvider",
    "ManualClock",
    "RecordingPaymentSink",
    "SystemClock",
]
