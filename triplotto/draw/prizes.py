"""Prize policies for settling a game."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Mapping, Sequence

from .numbers import PICK_COUNT, count_matches
from ..errors import InvalidConfigError


@dataclass(frozen=True)
class TicketPrize:
    """Match count and prize computed for one ticket."""

    matches: int
    prize: int


def compute_prize(matches: int, tier_pool: int, winners_in_tier: int) -> int:
    """Return one winner's equal share of ``tier_pool``.

    Integer division truncates; the remainder stays in the pool. Returns ``0``
    when nobody is in the tier or the ticket matched nothing.
    """
    if winners_in_tier <= 0 or matches <= 0:
        return 0
    return tier_pool // winners_in_tier


@dataclass(frozen=True)
class PrizePolicy:
    """Base class for prize policies.

    Attributes
    ----------
    key : str
        Registry key stored on each game.
    description : str
        Human-readable summary of the policy.
    """

    key: str
    description: str = ""

    def allocate(self, match_counts: Sequence[int], pool: int) -> list[int]:
        """Return the prize for each entry of ``match_counts``, in order."""
        raise NotImplementedError


@dataclass(frozen=True)
class FixedTierPolicy(PrizePolicy):
    """Flat award per match count, independent of the pool size."""

    key: str = "fixed_tier"
    description: str = "Flat award per match count."
    awards: Mapping[int, int] = field(
        default_factory=lambda: {3: 1000, 2: 100, 1: 10, 0: 0}
    )

    def __post_init__(self) -> None:
        for matches, award in self.awards.items():
            if not 0 <= matches <= PICK_COUNT:
                raise InvalidConfigError(f"invalid tier {matches} in fixed awards")
            if award < 0:
                raise InvalidConfigError("fixed awards must be non-negative")

    def allocate(self, match_counts: Sequence[int], pool: int) -> list[int]:
        return [self.awards.get(matches, 0) if matches > 0 else 0 for matches in match_counts]


@dataclass(frozen=True)
class PoolPercentagePolicy(PrizePolicy):
    """Reserve a percentage of the pool per tier and split it equally among its winners."""

    key: str = "pool_percentage"
    description: str = "Percentage of the pool per tier, shared equally within the tier."
    shares: Mapping[int, int] = field(default_factory=lambda: {3: 70, 2: 20, 1: 10})

    def __post_init__(self) -> None:
        for matches, percent in self.shares.items():
            if not 1 <= matches <= PICK_COUNT:
                raise InvalidConfigError(f"invalid tier {matches} in pool shares")
            if percent < 0:
                raise InvalidConfigError("pool shares must be non-negative")
        if sum(self.shares.values()) > 100:
            raise InvalidConfigError("pool shares must not exceed 100 percent")

    def tier_pool(self, matches: int, pool: int) -> int:
        return pool * self.shares.get(matches, 0) // 100

    def allocate(self, match_counts: Sequence[int], pool: int) -> list[int]:
        winners = Counter(match_counts)
        return [
            compute_prize(matches, self.tier_pool(matches, pool), winners[matches])
            for matches in match_counts
        ]


class PolicyRegistry:
    """Mutable registry mapping policy keys to policies."""

    def __init__(self) -> None:
        self._policies: Dict[str, PrizePolicy] = {}

    def register(self, policy: PrizePolicy, *, replace: bool = False) -> None:
        """Register ``policy`` under its key.

        A duplicate key raises :class:`ValueError` unless ``replace`` is set.
        """
        if not replace and policy.key in self._policies:
            raise ValueError(f"Prize policy '{policy.key}' is already registered")
        self._policies[policy.key] = policy

    def get(self, key: str) -> PrizePolicy:
        """Return the policy registered under ``key``."""
        try:
            return self._policies[key]
        except KeyError as exc:
            raise KeyError(f"Unknown prize policy '{key}'") from exc

    def __contains__(self, key: object) -> bool:
        return key in self._policies

    def available_policies(self) -> Dict[str, PrizePolicy]:
        """Return a copy of the registered policies keyed by identifier."""
        return dict(self._policies)


def calculate_prizes(
    policy: PrizePolicy,
    ticket_numbers: Sequence[Sequence[int]],
    winning_numbers: Sequence[int],
    pool: int,
) -> list[TicketPrize]:
    """Evaluate every ticket of a game against the winning numbers.

    Parameters
    ----------
    policy : PrizePolicy
        Policy that turns match counts into prize amounts.
    ticket_numbers : Sequence[Sequence[int]]
        Picks of each ticket, in ticket-id order.
    winning_numbers : Sequence[int]
        The drawn triple.
    pool : int
        Total prize pool of the game.

    Returns
    -------
    list[TicketPrize]
        One entry per ticket, in the same order as ``ticket_numbers``.
    """

    match_counts = [count_matches(numbers, winning_numbers) for numbers in ticket_numbers]
    prizes = policy.allocate(match_counts, pool)
    return [
        TicketPrize(matches=matches, prize=prize)
        for matches, prize in zip(match_counts, prizes)
    ]


DEFAULT_PRIZE_POLICIES = PolicyRegistry()
DEFAULT_PRIZE_POLICIES.register(FixedTierPolicy())
DEFAULT_PRIZE_POLICIES.register(PoolPercentagePolicy())

__all__ = [
    "DEFAULT_PRIZE_POLICIES",
    "FixedTierPolicy",
    "PolicyRegistry",
    "PoolPercentagePolicy",
    "PrizePolicy",
    "TicketPrize",
    "calculate_prizes",
    "compute_prize",
]
