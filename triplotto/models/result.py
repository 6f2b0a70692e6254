"""Per-ticket settlement results."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .id_type import AMOUNT_TYPE, ID_TYPE
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .game import Game
    from .ticket import Ticket


class GameResult(Base):
    """Outcome of one ticket, written once when the game is settled."""

    __tablename__ = "game_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    game_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ticket_pk: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    """Primary key of the evaluated :class:`Ticket`."""

    ticket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    """Per-game ticket sequence number, duplicated for ordered listing."""

    player: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    matches: Mapped[int] = mapped_column(Integer, nullable=False)
    prize: Mapped[int] = mapped_column(AMOUNT_TYPE, nullable=False, default=0)
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship(back_populates="results")
    ticket: Mapped["Ticket"] = relationship(back_populates="result")

    __table_args__ = (
        UniqueConstraint("game_id", "ticket_id", name="uq_result_per_ticket"),
        CheckConstraint("matches BETWEEN 0 AND 3", name="matches_range"),
        CheckConstraint("prize >= 0", name="prize_non_negative"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<GameResult(game_id={self.game_id}, ticket_id={self.ticket_id}, "
            f"player='{self.player}', matches={self.matches}, prize={self.prize}, "
            f"claimed={self.claimed})>"
        )

    def to_json(self) -> dict:
        return {
            "game_id": self.game_id,
            "ticket_id": self.ticket_id,
            "player": self.player,
            "matches": self.matches,
            "prize": self.prize,
            "claimed": self.claimed,
            "claimed_at": dt_iso(self.claimed_at),
        }


__all__ = ["GameResult"]
