from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fairdraw.models import UserWallet, WalletTransactionType
from fairdraw.services.errors import LotteryValidationError
from fairdraw.services.wallet import WalletService


def test_credit_creates_wallet_once(db_session: Session) -> None:
    wallet = WalletService(db_session)

    wallet.credit_balance("voter-a", Decimal("12.50"))
    wallet.credit_balance("voter-a", Decimal("7.50"))
    db_session.commit()

    assert wallet.balance_of("voter-a") == Decimal("20.00")
    assert db_session.scalar(select(func.count()).select_from(UserWallet)) == 1


def test_debit_reduces_balance(db_session: Session) -> None:
    wallet = WalletService(db_session)
    wallet.credit_balance("voter-a", Decimal("100"))
    wallet.debit_balance("voter-a", Decimal("40"))

    assert wallet.balance_of("voter-a") == Decimal("60")


def test_unknown_wallet_has_zero_balance(db_session: Session) -> None:
    assert WalletService(db_session).balance_of("nobody") == Decimal("0")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_movements_must_be_positive(db_session: Session, amount: Decimal) -> None:
    wallet = WalletService(db_session)
    with pytest.raises(LotteryValidationError):
        wallet.credit_balance("voter-a", amount)
    with pytest.raises(LotteryValidationError):
        wallet.debit_balance("voter-a", amount)


def test_transactions_are_listed_per_user(db_session: Session) -> None:
    wallet = WalletService(db_session)
    wallet.record_transaction(
        "voter-a",
        WalletTransactionType.PRIZE_WON,
        Decimal("50"),
        election_id=7,
        description="Lottery Prize Rank #1",
    )
    wallet.record_transaction("voter-b", WalletTransactionType.PRIZE_WON, Decimal("10"))
    db_session.commit()

    transactions = wallet.transactions_for("voter-a")
    assert len(transactions) == 1
    assert transactions[0].election_id == 7
    assert transactions[0].amount == Decimal("50")
