"""Wallet balance and transaction ledger operations."""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from fairdraw.core.config import Settings, get_settings
from fairdraw.models import UserWallet, WalletTransaction, WalletTransactionStatus, WalletTransactionType
from fairdraw.services.errors import LotteryValidationError

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class WalletService:
    """Credits and debits user wallets inside the caller's transaction.

    Balances change only through ``UPDATE ... SET balance = balance + :amount``
    so concurrent movements on the same wallet never lose an update.
    """

    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    def _ensure_wallet(self, user_id: str) -> None:
        dialect = self._session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is not None:
            statement = (
                insert(UserWallet)
                .values(user_id=user_id, balance=Decimal("0"), currency=self._settings.wallet_currency)
                .on_conflict_do_nothing(index_elements=["user_id"])
            )
            self._session.execute(statement)
            return
        existing = self._session.scalar(select(UserWallet.id).where(UserWallet.user_id == user_id))
        if existing is None:
            self._session.add(UserWallet(user_id=user_id, currency=self._settings.wallet_currency))
            self._session.flush()

    def _adjust(self, user_id: str, delta: Decimal) -> None:
        self._ensure_wallet(user_id)
        self._session.execute(
            update(UserWallet)
            .where(UserWallet.user_id == user_id)
            .values(balance=UserWallet.balance + delta)
            .execution_options(synchronize_session=False)
        )

    def credit_balance(self, user_id: str, amount: Decimal) -> None:
        if amount <= 0:
            raise LotteryValidationError("Credit amount must be positive")
        self._adjust(user_id, amount)

    def debit_balance(self, user_id: str, amount: Decimal) -> None:
        if amount <= 0:
            raise LotteryValidationError("Debit amount must be positive")
        self._adjust(user_id, -amount)

    def record_transaction(
        self,
        user_id: str,
        transaction_type: WalletTransactionType,
        amount: Decimal,
        *,
        election_id: int | None = None,
        description: str | None = None,
        details: dict[str, Any] | None = None,
        status: WalletTransactionStatus = WalletTransactionStatus.SUCCESS,
    ) -> WalletTransaction:
        transaction = WalletTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            election_id=election_id,
            status=status,
            description=description,
            details=details,
        )
        self._session.add(transaction)
        self._session.flush()
        return transaction

    def balance_of(self, user_id: str) -> Decimal:
        balance = self._session.scalar(select(UserWallet.balance).where(UserWallet.user_id == user_id))
        return Decimal(balance) if balance is not None else Decimal("0")

    def transactions_for(self, user_id: str) -> list[WalletTransaction]:
        statement = (
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.asc())
        )
        return list(self._session.scalars(statement))


__all__ = ["WalletService"]
