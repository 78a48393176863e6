"""Election ORM model."""
from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Date, Enum, Integer, JSON, Numeric, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fairdraw.models.base import Base, TimestampMixin, enum_values


class ElectionStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    COMPLETED = "completed"


class RewardType(str, enum.Enum):
    MONETARY = "monetary"
    NON_MONETARY = "non_monetary"


class Election(TimestampMixin, Base):
    """Election with its lottery configuration.

    Elections are owned by the ballot subsystem; this service only reads them
    and attaches tickets, draws and winners.
    """

    __tablename__ = "elections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ElectionStatus] = mapped_column(
        Enum(ElectionStatus, name="election_status", values_callable=enum_values),
        nullable=False,
        default=ElectionStatus.PUBLISHED,
    )
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_time: Mapped[time | None] = mapped_column(Time)

    lottery_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lottery_winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lottery_reward_type: Mapped[RewardType] = mapped_column(
        Enum(RewardType, name="reward_type", values_callable=enum_values),
        nullable=False,
        default=RewardType.MONETARY,
    )
    lottery_total_prize_pool: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    lottery_prize_distribution: Mapped[list | None] = mapped_column(JSON)
    lottery_prize_description: Mapped[str | None] = mapped_column(String(512))

    tickets = relationship("LotteryTicket", back_populates="election", cascade="all, delete-orphan")
    draw = relationship("LotteryDraw", back_populates="election", uselist=False)
    winners = relationship("LotteryWinner", back_populates="election", order_by="LotteryWinner.rank")

    def ends_at(self, default_end_time: time) -> datetime:
        """Return the UTC instant at which voting closes."""
        closing = self.end_time or default_end_time
        return datetime.combine(self.end_date, closing, tzinfo=timezone.utc)


__all__ = ["Election", "ElectionStatus", "RewardType"]
