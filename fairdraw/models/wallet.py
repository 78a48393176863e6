"""Wallet ORM models."""
from __future__ import annotations

import enum
import uuid
from decimal import Decimal

from sqlalchemy import Enum, Index, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fairdraw.models.base import Base, TimestampMixin, enum_values


class WalletTransactionType(str, enum.Enum):
    PRIZE_WON = "prize_won"
    PRIZE_REVERSED = "prize_reversed"


class WalletTransactionStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class UserWallet(TimestampMixin, Base):
    """Per-user balance counter."""

    __tablename__ = "user_wallets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")


class WalletTransaction(TimestampMixin, Base):
    """Ledger line recorded for every wallet movement."""

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        Index("ix_wallet_transactions_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_type: Mapped[WalletTransactionType] = mapped_column(
        Enum(WalletTransactionType, name="wallet_transaction_type", values_callable=enum_values),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    election_id: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[WalletTransactionStatus] = mapped_column(
        Enum(WalletTransactionStatus, name="wallet_transaction_status", values_callable=enum_values),
        nullable=False,
        default=WalletTransactionStatus.SUCCESS,
    )
    description: Mapped[str | None] = mapped_column(String(512))
    details: Mapped[dict | None] = mapped_column(JSON)


__all__ = ["UserWallet", "WalletTransaction", "WalletTransactionStatus", "WalletTransactionType"]
