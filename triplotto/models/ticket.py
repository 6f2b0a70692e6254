"""Ticket ledger models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
    Index,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import AMOUNT_TYPE, ID_TYPE
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .game import Game
    from .result import GameResult


class Ticket(Base):
    """A player's three-number pick purchased against a game.

    ``ticket_id`` is dense within a game and follows purchase order, so it can
    be used directly as an index into :attr:`Game.tickets`. Apart from
    ``claimed`` a ticket never changes after it is written.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    game_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    """Sequence number within the game, starting at 0."""

    player: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    """Identity of the purchasing player."""

    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """Sorted, distinct picks in [1, 100]."""

    payment: Mapped[int] = mapped_column(AMOUNT_TYPE, nullable=False)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship(back_populates="tickets")
    result: Mapped[Optional["GameResult"]] = relationship(
        back_populates="ticket", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("game_id", "ticket_id", name="uq_ticket_per_game"),
        Index("ix_tickets_game_player", "game_id", "player"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Ticket(game_id={self.game_id}, ticket_id={self.ticket_id}, "
            f"player='{self.player}', numbers={self.numbers}, claimed={self.claimed})>"
        )

    @classmethod
    def get_in_game(
        cls, session: Session, game_id: int, ticket_id: int
    ) -> Optional["Ticket"]:
        """Return ticket ``ticket_id`` of game ``game_id`` if it exists."""
        return session.scalar(
            select(cls).where(cls.game_id == game_id, cls.ticket_id == ticket_id)
        )

    def to_json(self) -> dict:
        return {
            "game_id": self.game_id,
            "ticket_id": self.ticket_id,
            "player": self.player,
            "numbers": list(self.numbers),
            "payment": self.payment,
            "claimed": self.claimed,
            "purchased_at": dt_iso(self.purchased_at),
        }


class PlayerParticipation(Base):
    """Index of the games a player has bought tickets in, in first-purchase order."""

    __tablename__ = "player_participations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    game_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("player", "game_id", name="uq_participation_player_game"),
    )

    @classmethod
    def record(
        cls,
        session: Session,
        player: str,
        game_id: int,
        joined_at: Optional[datetime] = None,
    ) -> "PlayerParticipation":
        """Return the participation row for ``(player, game_id)``, creating it if needed."""
        existing = session.scalar(
            select(cls).where(cls.player == player, cls.game_id == game_id)
        )
        if existing is not None:
            return existing
        row = cls(player=player, game_id=game_id)
        if joined_at is not None:
            row.joined_at = joined_at
        session.add(row)
        return row

    @classmethod
    def game_ids_for(cls, session: Session, player: str) -> list[int]:
        """Return the ids of games ``player`` joined, oldest first."""
        stmt = select(cls.game_id).where(cls.player == player).order_by(cls.id.asc())
        return list(session.scalars(stmt).all())


__all__ = ["PlayerParticipation", "Ticket"]
