"""Exception classes raised by the lottery engine."""

from __future__ import annotations


class LotteryError(Exception):
    """Base exception for all lottery engine errors."""


class InvalidConfigError(LotteryError, ValueError):
    """Raised when a game or the engine is configured with invalid values."""


class ValidationError(LotteryError, ValueError):
    """Raised when ticket numbers or other caller input are malformed."""


class PhaseError(LotteryError):
    """Raised when an operation is not valid for the game's current phase."""


class CapacityError(LotteryError):
    """Raised when a game has sold all of its tickets."""


class PaymentError(LotteryError):
    """Raised when a payment does not match the ticket price."""


class TimingError(LotteryError):
    """Raised when a deadline or unlock window has not been reached (or has passed)."""


class OwnershipError(LotteryError):
    """Raised when the caller does not own the referenced ticket."""


class AlreadyClaimedError(LotteryError):
    """Raised when a prize is claimed a second time."""


class NotFoundError(LotteryError, LookupError):
    """Raised when a game, ticket or seal does not exist."""


class DrawExhaustedError(LotteryError):
    """Raised when winning-number derivation runs out of retry attempts."""


class DecryptionError(LotteryError):
    """Reported when a sealed draw cannot be opened with the supplied proof."""


__all__ = [
    "LotteryError",
    "InvalidConfigError",
    "ValidationError",
    "PhaseError",
    "CapacityError",
    "PaymentError",
    "TimingError",
    "OwnershipError",
    "AlreadyClaimedError",
    "NotFoundError",
    "DrawExhaustedError",
    "DecryptionError",
]
