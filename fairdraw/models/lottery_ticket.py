"""Lottery ticket ORM model."""
from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fairdraw.models.base import Base, TimestampMixin


class LotteryTicket(TimestampMixin, Base):
    """A voter's single entry into an election lottery."""

    __tablename__ = "lottery_tickets"
    __table_args__ = (
        UniqueConstraint("election_id", "user_id", name="uq_lottery_tickets_election_user"),
        UniqueConstraint("election_id", "ticket_number", name="uq_lottery_tickets_election_number"),
        Index("ix_lottery_tickets_election_id", "election_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    election_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    ball_number: Mapped[int] = mapped_column(Integer, nullable=False)
    voting_id: Mapped[str | None] = mapped_column(String(64))

    election = relationship("Election", back_populates="tickets")


__all__ = ["LotteryTicket"]
