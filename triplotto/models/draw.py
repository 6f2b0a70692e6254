"""Database models for draw results and sealed (delayed-reveal) draws."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    LargeBinary,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .game import Game


class DrawResult(Base):
    """Winning numbers of a settled game together with their provenance."""

    __tablename__ = "draw_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    game_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """Sorted winning triple."""

    request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Randomness request that produced the seed; ``None`` for emergency reveals."""

    seed_hex: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    """Hex encoding of the seed, kept so the draw can be re-derived for audits."""

    source: Mapped[str] = mapped_column(String(20), nullable=False, default="randomness")
    """``"randomness"`` for regular draws, ``"emergency"`` for operator-supplied numbers."""

    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship(back_populates="draw_result")

    __table_args__ = (
        CheckConstraint("source IN ('randomness','emergency')", name="source_enum"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<DrawResult(game_id={self.game_id}, numbers={self.numbers}, "
            f"source='{self.source}')>"
        )

    def to_json(self) -> dict:
        return {
            "game_id": self.game_id,
            "numbers": list(self.numbers),
            "request_id": self.request_id,
            "seed": self.seed_hex,
            "source": self.source,
            "generated_at": dt_iso(self.generated_at),
        }


class SealedDraw(Base):
    """Encrypted draw waiting for its unlock signal.

    Only the Fernet token is stored while the seal is closed. The
    plaintext numbers and seed provenance are copied in once the seal is
    revealed, so a revealed seal can answer repeated unlock signals without
    decrypting again.
    """

    __tablename__ = "sealed_draws"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Seal id."""

    game_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    request_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    """Id of the outstanding unlock request issued to the time-lock provider."""

    ciphertext: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    """Fernet token of the JSON-encoded draw."""

    unlock_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    revealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    revealed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revealed_numbers: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    draw_request_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    seed_hex: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    generated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """``True`` when the numbers were supplied by an operator instead of unsealed."""

    failed_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship(back_populates="sealed_draw")

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<SealedDraw(id={self.id}, game_id={self.game_id}, "
            f"unlock_time={dt_iso(self.unlock_time)}, revealed={self.revealed})>"
        )

    @classmethod
    def get_by_request(cls, session: Session, request_id: str) -> Optional["SealedDraw"]:
        return session.scalar(select(cls).where(cls.request_id == request_id))

    @classmethod
    def get_for_game(cls, session: Session, game_id: int) -> Optional["SealedDraw"]:
        return session.scalar(select(cls).where(cls.game_id == game_id))

    def to_json(self) -> dict:
        return {
            "seal_id": self.id,
            "game_id": self.game_id,
            "request_id": self.request_id,
            "unlock_time": dt_iso(self.unlock_time),
            "revealed": self.revealed,
            "revealed_at": dt_iso(self.revealed_at),
            "revealed_numbers": (
                list(self.revealed_numbers) if self.revealed_numbers else None
            ),
            "emergency": self.emergency,
            "failed_attempts": self.failed_attempts,
        }


__all__ = ["DrawResult", "SealedDraw"]
