"""Draw derivation, delayed reveal and prize calculation."""

from .numbers import (
    DrawOutcome,
    count_matches,
    derive_winning_numbers,
    normalize_seed,
    validate_ticket_numbers,
)
from .prizes import (
    DEFAULT_PRIZE_POLICIES,
    FixedTierPolicy,
    PolicyRegistry,
    PoolPercentagePolicy,
    PrizePolicy,
    TicketPrize,
    calculate_prizes,
    compute_prize,
)
from .seal import SealVault, UnsealOutcome

__all__ = [
    "DEFAULT_PRIZE_POLICIES",
    "DrawOutcome",
    "FixedTierPolicy",
    "PolicyRegistry",
    "PoolPercentagePolicy",
    "PrizePolicy",
    "SealVault",
    "TicketPrize",
    "UnsealOutcome",
    "calculate_prizes",
    "compute_prize",
    "count_matches",
    "derive_winning_numbers",
    "normalize_seed",
    "validate_ticket_numbers",
]
