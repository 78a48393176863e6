"""Lottery draw ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fairdraw.models.base import Base, enum_values


class DrawStatus(str, enum.Enum):
    COMPLETED = "completed"


class LotteryDraw(Base):
    """The single draw of an election; its existence means the lottery has been drawn."""

    __tablename__ = "lottery_draws"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    election_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    total_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False)
    random_seed: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[DrawStatus] = mapped_column(
        Enum(DrawStatus, name="draw_status", values_callable=enum_values),
        nullable=False,
        default=DrawStatus.COMPLETED,
    )
    draw_metadata: Mapped[dict | None] = mapped_column("metadata", JSON)
    drawn_by: Mapped[str | None] = mapped_column(String(64))
    auto_drawn: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    drawn_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    election = relationship("Election", back_populates="draw")
    winners = relationship("LotteryWinner", back_populates="draw", order_by="LotteryWinner.rank")


__all__ = ["DrawStatus", "LotteryDraw"]
