"""Delayed reveal of draw results.

A sealed draw is stored as a Fernet token under a one-off key. The key is handed
to a time-lock provider, which releases it as the unlock proof once the
unlock time has passed. The vault never keeps the key itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import json
import logging
from typing import Iterable, Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from .numbers import DrawOutcome, validate_ticket_numbers
from ..db.utils import dt_iso, ensure_utc
from ..errors import DecryptionError, NotFoundError, PhaseError, TimingError, ValidationError
from ..models import Game, SealedDraw
from ..providers.interfaces import Clock, TimeLockProvider, UnlockCondition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnsealOutcome:
    """Result of an unseal attempt.

    Attributes
    ----------
    seal : SealedDraw
        The seal the attempt targeted.
    outcome : Optional[DrawOutcome]
        The revealed draw on success.
    error : Optional[DecryptionError]
        Why the attempt failed, when it did.
    """

    seal: SealedDraw
    outcome: Optional[DrawOutcome] = None
    error: Optional[DecryptionError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not None and self.error is None


def encrypt_payload(plaintext: bytes) -> tuple[bytes, bytes]:
    """Encrypt ``plaintext`` under a fresh Fernet key.

    Returns
    -------
    tuple[bytes, bytes]
        ``(token, key)``. The token is authenticated, so a wrong key or a
        modified token fails to decrypt.
    """
    key = Fernet.generate_key()
    return Fernet(key).encrypt(plaintext), key


def decrypt_payload(token: bytes, key: bytes) -> Optional[bytes]:
    """Return the plaintext, or ``None`` when ``key`` does not open ``token``."""
    try:
        return Fernet(key).decrypt(token)
    except (InvalidToken, ValueError):
        return None


def _proof_bytes(unlock_proof: Union[bytes, bytearray, str, None]) -> Optional[bytes]:
    if isinstance(unlock_proof, (bytes, bytearray)):
        return bytes(unlock_proof)
    if isinstance(unlock_proof, str):
        try:
            return unlock_proof.strip().encode("ascii")
        except UnicodeEncodeError:
            return None
    return None


class SealVault:
    """Holds draw results opaque until the time-lock provider releases their key."""

    def __init__(
        self,
        session: Session,
        time_lock: TimeLockProvider,
        *,
        clock: Clock,
    ) -> None:
        self._session = session
        self._time_lock = time_lock
        self._clock = clock

    def seal(self, game: Game, outcome: DrawOutcome, delay: timedelta) -> SealedDraw:
        """Encrypt ``outcome`` and schedule its unlock ``delay`` from now.

        Parameters
        ----------
        game : Game
            Game the draw belongs to. It must not already have a seal.
        outcome : DrawOutcome
            Draw computed from the randomness provider's seed.
        delay : timedelta
            Time between sealing and the earliest possible reveal.

        Returns
        -------
        SealedDraw
            The persisted seal; its ``id`` is the seal id.

        Raises
        ------
        PhaseError
            If the game already has a seal.
        """
        if SealedDraw.get_for_game(self._session, game.id) is not None:
            raise PhaseError(f"Game {game.id} already has a sealed draw")

        plaintext = json.dumps(
            {
                "game_id": outcome.game_id,
                "numbers": list(outcome.numbers),
                "request_id": outcome.request_id,
                "seed": outcome.seed_hex,
                "generated_at": dt_iso(outcome.generated_at),
            },
            sort_keys=True,
        ).encode("utf-8")
        ciphertext, key = encrypt_payload(plaintext)

        unlock_time = self._clock.now() + delay
        seal = SealedDraw(
            game=game,
            ciphertext=ciphertext,
            unlock_time=unlock_time,
            revealed=False,
            emergency=False,
            failed_attempts=0,
        )
        self._session.add(seal)
        self._session.flush()

        condition = UnlockCondition(game_id=game.id, unlock_time=unlock_time)
        seal.request_id = str(self._time_lock.request_unlock(condition, key))
        self._session.flush()

        logger.info(
            f"Sealed draw for game {game.id} (seal {seal.id}) until {unlock_time.isoformat()}"
        )
        return seal

    def unseal(
        self, request_id: str, unlock_proof: Union[bytes, bytearray, str, None]
    ) -> UnsealOutcome:
        """Open the seal waiting on ``request_id`` with ``unlock_proof``.

        Failure is reported in the returned :class:`UnsealOutcome` rather than
        raised, so the game stays sealed and recoverable. A seal that was
        already revealed returns its cached numbers without decrypting.

        Raises
        ------
        NotFoundError
            If no seal is waiting on ``request_id``.
        """
        seal = SealedDraw.get_by_request(self._session, str(request_id))
        if seal is None:
            raise NotFoundError(f"No sealed draw for unlock request '{request_id}'")

        if seal.revealed:
            return UnsealOutcome(seal=seal, outcome=self._cached_outcome(seal))

        key = _proof_bytes(unlock_proof)
        plaintext = None if key is None else decrypt_payload(seal.ciphertext, key)
        numbers: Optional[tuple[int, ...]] = None
        data: dict = {}
        if plaintext is not None:
            data = self._decode(plaintext)
            numbers = self._valid_numbers(data.get("numbers"))

        if numbers is None or data.get("game_id") != seal.game_id:
            seal.failed_attempts = (seal.failed_attempts or 0) + 1
            self._session.flush()
            return UnsealOutcome(
                seal=seal,
                error=DecryptionError(
                    f"Unlock proof for game {seal.game_id} did not open the sealed draw"
                ),
            )

        generated_at = ensure_utc(
            datetime.fromisoformat(data["generated_at"])
            if data.get("generated_at")
            else self._clock.now()
        )
        seal.revealed = True
        seal.revealed_at = self._clock.now()
        seal.revealed_numbers = list(numbers)
        seal.draw_request_id = data.get("request_id")
        seal.seed_hex = data.get("seed")
        seal.generated_at = generated_at
        self._session.flush()

        logger.info(f"Revealed sealed draw for game {seal.game_id}")
        return UnsealOutcome(seal=seal, outcome=self._cached_outcome(seal))

    def emergency_reveal(
        self,
        game: Game,
        numbers: Iterable[int],
        *,
        escalation_window: timedelta,
    ) -> SealedDraw:
        """Replace an unopenable seal with operator-supplied numbers.

        Only allowed once ``unlock_time + escalation_window`` has passed. This
        bypasses the randomness guarantee, so it is logged at CRITICAL and the
        seal is flagged as an emergency reveal.

        Raises
        ------
        NotFoundError
            If the game has no seal.
        PhaseError
            If the seal was already revealed.
        TimingError
            If the escalation window has not elapsed.
        ValidationError
            If ``numbers`` is not a valid triple.
        """
        seal = SealedDraw.get_for_game(self._session, game.id)
        if seal is None:
            raise NotFoundError(f"Game {game.id} has no sealed draw")
        if seal.revealed:
            raise PhaseError(f"Sealed draw for game {game.id} is already revealed")

        now = self._clock.now()
        allowed_after = ensure_utc(seal.unlock_time) + escalation_window
        if not now > allowed_after:
            raise TimingError(
                f"Emergency reveal for game {game.id} is not allowed before "
                f"{allowed_after.isoformat()}"
            )

        picks = validate_ticket_numbers(numbers)
        seal.revealed = True
        seal.revealed_at = now
        seal.revealed_numbers = list(picks)
        seal.emergency = True
        seal.generated_at = now
        self._session.flush()

        logger.critical(
            f"EMERGENCY REVEAL for game {game.id}: operator-supplied numbers {list(picks)} "
            f"replace the sealed draw (unlock was due {dt_iso(seal.unlock_time)})"
        )
        return seal

    def is_ready_to_reveal(self, seal: SealedDraw) -> bool:
        """Return ``True`` when ``seal`` is unrevealed and its unlock time has passed."""
        return (not seal.revealed) and self._clock.now() >= ensure_utc(seal.unlock_time)

    def _cached_outcome(self, seal: SealedDraw) -> DrawOutcome:
        return DrawOutcome(
            game_id=seal.game_id,
            numbers=tuple(seal.revealed_numbers or ()),
            request_id=seal.draw_request_id,
            seed_hex=seal.seed_hex,
            generated_at=ensure_utc(seal.generated_at) or self._clock.now(),
        )

    @staticmethod
    def _decode(plaintext: bytes) -> dict:
        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _valid_numbers(raw) -> Optional[tuple[int, ...]]:
        try:
            return validate_ticket_numbers(raw)
        except ValidationError:
            return None


__all__ = ["SealVault", "UnsealOutcome", "decrypt_payload", "encrypt_payload"]
