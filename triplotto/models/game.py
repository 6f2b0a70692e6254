"""Database model for lottery games and their phase state machine."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    JSON,
    String,
    select,
    func,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import AMOUNT_TYPE, ID_TYPE
from ..db.utils import dt_iso
from ..errors import PhaseError

if TYPE_CHECKING:
    from .ticket import Ticket
    from .draw import DrawResult, SealedDraw
    from .result import GameResult
    from .event import GameEvent


class GamePhase(str, enum.Enum):
    """Lifecycle phase of a game."""

    WAITING = "waiting"
    ACTIVE = "active"
    DRAWING = "drawing"
    SEALED = "sealed"
    FINISHED = "finished"


# Edges of the phase state machine. ACTIVE -> WAITING is the only backwards edge.
ALLOWED_TRANSITIONS: dict[GamePhase, frozenset[GamePhase]] = {
    GamePhase.WAITING: frozenset({GamePhase.ACTIVE}),
    GamePhase.ACTIVE: frozenset({GamePhase.WAITING, GamePhase.DRAWING}),
    GamePhase.DRAWING: frozenset({GamePhase.SEALED, GamePhase.FINISHED}),
    GamePhase.SEALED: frozenset({GamePhase.FINISHED}),
    GamePhase.FINISHED: frozenset(),
}


class Game(Base):
    """One lottery round with its own ticket pool, deadline and draw."""

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Game identifier, assigned in creation order."""

    ticket_price: Mapped[int] = mapped_column(AMOUNT_TYPE, nullable=False)
    """Exact payment required for one ticket."""

    max_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    """Maximum number of tickets the game may sell."""

    tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Number of tickets sold so far; also the next ticket id."""

    prize_pool: Mapped[int] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    """Accumulated ticket payments."""

    total_paid_out: Mapped[int] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    """Sum of all prizes paid to claimants."""

    phase: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GamePhase.ACTIVE.value
    )
    """Current :class:`GamePhase` value."""

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    winning_numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    """Sorted winning triple; empty until the game is settled."""

    numbers_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """``True`` once the draw has been computed, even while it is still sealed."""

    pending_request_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    """Id of the single outstanding randomness request while DRAWING."""

    prize_policy: Mapped[str] = mapped_column(String(50), nullable=False)
    """Registry key of the prize policy used at settlement."""

    reveal_delay_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Seal delay for this game; ``None`` settles straight after the draw."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    tickets: Mapped[list["Ticket"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="Ticket.ticket_id",
    )
    results: Mapped[list["GameResult"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameResult.ticket_id",
    )
    draw_result: Mapped[Optional["DrawResult"]] = relationship(
        back_populates="game", cascade="all, delete-orphan", uselist=False
    )
    sealed_draw: Mapped[Optional["SealedDraw"]] = relationship(
        back_populates="game", cascade="all, delete-orphan", uselist=False
    )
    events: Mapped[list["GameEvent"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameEvent.id",
    )

    __table_args__ = (
        CheckConstraint("tickets_sold <= max_tickets", name="tickets_within_capacity"),
        CheckConstraint("max_tickets > 0", name="max_tickets_positive"),
        CheckConstraint(
            "phase IN ('waiting','active','drawing','sealed','finished')",
            name="phase_enum",
        ),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Game(id={self.id}, phase='{self.phase}', "
            f"tickets_sold={self.tickets_sold}/{self.max_tickets}, "
            f"prize_pool={self.prize_pool})>"
        )

    @property
    def current_phase(self) -> GamePhase:
        return GamePhase(self.phase)

    def transition_to(self, target: GamePhase) -> None:
        """Move the game to ``target``.

        Raises
        ------
        PhaseError
            If ``target`` is not reachable from the current phase.
        """
        current = self.current_phase
        if target not in ALLOWED_TRANSITIONS[current]:
            raise PhaseError(
                f"Game {self.id} cannot move from {current.value} to {target.value}"
            )
        self.phase = target.value

    def require_phase(self, *phases: GamePhase) -> None:
        """Raise :class:`PhaseError` unless the game is in one of ``phases``."""
        if self.current_phase not in phases:
            expected = ", ".join(p.value for p in phases)
            raise PhaseError(
                f"Game {self.id} is {self.phase}; operation requires {expected}"
            )

    @classmethod
    def get_by_pending_request(
        cls, session: Session, request_id: str
    ) -> Optional["Game"]:
        """Return the game waiting on randomness request ``request_id``."""
        return session.scalar(select(cls).where(cls.pending_request_id == request_id))

    @classmethod
    def latest_id(cls, session: Session) -> Optional[int]:
        """Return the id of the most recently created game."""
        return session.scalar(select(func.max(cls.id)))

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "ticket_price": self.ticket_price,
            "max_tickets": self.max_tickets,
            "tickets_sold": self.tickets_sold,
            "prize_pool": self.prize_pool,
            "total_paid_out": self.total_paid_out,
            "phase": self.phase,
            "start_time": dt_iso(self.start_time),
            "end_time": dt_iso(self.end_time),
            "winning_numbers": list(self.winning_numbers or []),
            "numbers_generated": self.numbers_generated,
            "prize_policy": self.prize_policy,
            "reveal_delay_seconds": self.reveal_delay_seconds,
            "finished_at": dt_iso(self.finished_at),
        }


__all__ = ["ALLOWED_TRANSITIONS", "Game", "GamePhase"]
