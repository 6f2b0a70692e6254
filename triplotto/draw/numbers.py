"""Deterministic winning-number derivation and ticket-number helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import hashlib
from typing import Iterable, Optional, Sequence, Union

from ..errors import DrawExhaustedError, ValidationError

PICK_COUNT = 3
LOWEST_NUMBER = 1
HIGHEST_NUMBER = 100
DEFAULT_MAX_ATTEMPTS = 1000
SEED_BYTES = 32

Seed = Union[bytes, bytearray, int, str]


@dataclass(frozen=True)
class DrawOutcome:
    """Value object describing a computed draw.

    Attributes
    ----------
    game_id : int
        Game the draw belongs to.
    numbers : tuple[int, ...]
        Sorted winning triple.
    request_id : Optional[str]
        Randomness request that delivered the seed.
    seed_hex : Optional[str]
        Hex encoding of the normalized seed.
    generated_at : datetime
        When the numbers were derived.
    """

    game_id: int
    numbers: tuple[int, ...]
    request_id: Optional[str]
    seed_hex: Optional[str]
    generated_at: datetime


def normalize_seed(seed: Seed) -> bytes:
    """Return ``seed`` as raw bytes.

    Parameters
    ----------
    seed : bytes | int | str
        Raw seed bytes, a non-negative integer (encoded big-endian, at least
        32 bytes wide) or a hex string with an optional ``0x`` prefix.
    """

    if isinstance(seed, bool):
        raise TypeError("seed must be bytes, an int or a hex string")
    if isinstance(seed, (bytes, bytearray)):
        if not seed:
            raise ValueError("seed must not be empty")
        return bytes(seed)
    if isinstance(seed, int):
        if seed < 0:
            raise ValueError("seed must be non-negative")
        length = max(SEED_BYTES, (seed.bit_length() + 7) // 8)
        return seed.to_bytes(length, "big")
    if isinstance(seed, str):
        text = seed.strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        if not text:
            raise ValueError("seed must not be empty")
        if len(text) % 2:
            text = "0" + text
        try:
            return bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError("seed string must be hexadecimal") from exc
    raise TypeError("seed must be bytes, an int or a hex string")


def _candidate(seed: bytes, index: int, collision: int, low: int, span: int) -> int:
    """Hash ``seed``, ``index`` and ``collision`` into a number in [low, low + span)."""
    digest = hashlib.sha256(
        seed + index.to_bytes(32, "big") + collision.to_bytes(32, "big")
    ).digest()
    return int.from_bytes(digest, "big") % span + low


def derive_winning_numbers(
    seed: Seed,
    *,
    count: int = PICK_COUNT,
    low: int = LOWEST_NUMBER,
    high: int = HIGHEST_NUMBER,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> tuple[int, ...]:
    """Derive ``count`` distinct winning numbers in ``[low, high]`` from ``seed``.

    Each position hashes the seed together with its index and a collision
    counter. A candidate that repeats an earlier pick bumps the counter and is
    recomputed. The function is pure: the same seed always yields the same
    sorted tuple.

    Parameters
    ----------
    seed : bytes | int | str
        Random seed supplied by the randomness provider.
    count : int, default: 3
        Number of values to draw.
    low, high : int, default: 1, 100
        Inclusive bounds of the number pool.
    max_attempts : int, default: 1000
        Total hash evaluations allowed across all positions.

    Returns
    -------
    tuple[int, ...]
        Winning numbers in ascending order.

    Raises
    ------
    DrawExhaustedError
        If ``max_attempts`` hash evaluations did not produce ``count``
        distinct values.
    """

    if high < low:
        raise ValueError("high must be greater than or equal to low")
    if count <= 0:
        raise ValueError("count must be positive")

    seed_bytes = normalize_seed(seed)
    span = high - low + 1
    chosen: list[int] = []
    attempts = 0

    for index in range(count):
        collision = 0
        while True:
            if attempts >= max_attempts:
                raise DrawExhaustedError(
                    f"Could not derive {count} distinct numbers after {attempts} attempts"
                )
            attempts += 1
            candidate = _candidate(seed_bytes, index, collision, low, span)
            if candidate not in chosen:
                chosen.append(candidate)
                break
            collision += 1

    return tuple(sorted(chosen))


def validate_ticket_numbers(
    numbers: Iterable[int],
    *,
    count: int = PICK_COUNT,
    low: int = LOWEST_NUMBER,
    high: int = HIGHEST_NUMBER,
) -> tuple[int, ...]:
    """Check a pick and return it sorted.

    Raises
    ------
    ValidationError
        If ``numbers`` is not exactly ``count`` distinct integers in
        ``[low, high]``.
    """

    if numbers is None or isinstance(numbers, (str, bytes)):
        raise ValidationError("numbers must be a sequence of integers")
    try:
        picks = list(numbers)
    except TypeError as exc:
        raise ValidationError("numbers must be a sequence of integers") from exc

    if len(picks) != count:
        raise ValidationError(f"exactly {count} numbers are required, got {len(picks)}")
    for value in picks:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"ticket numbers must be integers, got {value!r}")
        if not low <= value <= high:
            raise ValidationError(f"ticket number {value} is outside [{low}, {high}]")
    if len(set(picks)) != len(picks):
        raise ValidationError("ticket numbers must be distinct")
    return tuple(sorted(picks))


def count_matches(ticket_numbers: Sequence[int], winning_numbers: Sequence[int]) -> int:
    """Return how many of ``ticket_numbers`` appear in ``winning_numbers``.

    Each number counts at most once, even if an input repeats it.
    """
    return len(set(ticket_numbers) & set(winning_numbers))


__all__ = [
    "DrawOutcome",
    "HIGHEST_NUMBER",
    "LOWEST_NUMBER",
    "PICK_COUNT",
    "count_matches",
    "derive_winning_numbers",
    "normalize_seed",
    "validate_ticket_numbers",
]
