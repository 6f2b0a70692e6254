from .base import Base

# import models so metadata.create_all() sees every mapper
from .game import Game, GamePhase  # noqa: F401
from .ticket import Ticket, PlayerParticipation  # noqa: F401
from .draw import DrawResult, SealedDraw  # noqa: F401
from .result import GameResult  # noqa: F401
from .event import GameEvent  # noqa: F401

__all__ = [
    "Base",
    "Game",
    "GamePhase",
    "Ticket",
    "PlayerParticipation",
    "DrawResult",
    "SealedDraw",
    "GameResult",
    "GameEvent",
]
