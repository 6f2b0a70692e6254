from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .game import Game


class GameEvent(Base):
    """Append-only notification written on every state change of a game."""

    __tablename__ = "game_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship(back_populates="events")

    __table_args__ = (Index("ix_game_events_game_type", "game_id", "event_type"),)

    def __repr__(self) -> str:
        return (
            f"<GameEvent(id={self.id}, game_id={self.game_id}, "
            f"event_type='{self.event_type}')>"
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "event_type": self.event_type,
            "payload": dict(self.payload or {}),
            "occurred_at": dt_iso(self.occurred_at),
        }
