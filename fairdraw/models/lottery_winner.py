"""Lottery winner ORM model."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fairdraw.models.base import Base, TimestampMixin, enum_values
from fairdraw.models.election import RewardType


class DisbursementStatus(str, enum.Enum):
    PENDING_CLAIM = "pending_claim"
    PENDING_APPROVAL = "pending_approval"
    PENDING_SENIOR_APPROVAL = "pending_senior_approval"
    DISBURSED = "disbursed"
    REJECTED = "rejected"


class LotteryWinner(TimestampMixin, Base):
    """Ranked winner of an election lottery."""

    __tablename__ = "lottery_winners"
    __table_args__ = (
        UniqueConstraint("election_id", "rank", name="uq_lottery_winners_election_rank"),
        UniqueConstraint("election_id", "ticket_id", name="uq_lottery_winners_election_ticket"),
        Index("ix_lottery_winners_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    election_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("elections.id", ondelete="CASCADE"), nullable=False
    )
    draw_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lottery_draws.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lottery_tickets.id", ondelete="CASCADE"), nullable=False
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    prize_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    prize_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False, default=Decimal("0"))
    prize_description: Mapped[str | None] = mapped_column(String(512))
    prize_type: Mapped[RewardType] = mapped_column(
        Enum(RewardType, name="reward_type", values_callable=enum_values), nullable=False
    )
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    disbursement_status: Mapped[DisbursementStatus] = mapped_column(
        Enum(DisbursementStatus, name="disbursement_status", values_callable=enum_values),
        nullable=False,
        default=DisbursementStatus.PENDING_CLAIM,
    )
    disbursed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[str | None] = mapped_column(String(64))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    admin_notes: Mapped[str | None] = mapped_column(String(1024))
    rejection_reason: Mapped[str | None] = mapped_column(String(1024))

    election = relationship("Election", back_populates="winners")
    draw = relationship("LotteryDraw", back_populates="winners")
    ticket = relationship("LotteryTicket")


__all__ = ["DisbursementStatus", "LotteryWinner"]
