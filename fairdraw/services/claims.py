"""Prize claim and disbursement approval lifecycle."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from fairdraw.core.config import Settings, get_settings
from fairdraw.models import DisbursementStatus, LotteryWinner, RewardType, WalletTransactionType
from fairdraw.services.audit_chain import HashChainLedger, RequestContext
from fairdraw.services.errors import (
    InvalidDisbursementStateError,
    LotteryError,
    LotteryValidationError,
    PrizeAlreadyClaimedError,
    UnauthorizedError,
    WinnerNotFoundError,
)
from fairdraw.services.roles import is_admin, is_manager
from fairdraw.services.wallet import WalletService

LOGGER = logging.getLogger(__name__)

PENDING_STATUSES = (DisbursementStatus.PENDING_APPROVAL, DisbursementStatus.PENDING_SENIOR_APPROVAL)


@dataclass(slots=True, frozen=True)
class ClaimOutcome:
    winner: LotteryWinner
    requires_approval: bool
    auto_disbursed: bool
    new_balance: Decimal | None = None


@dataclass(slots=True, frozen=True)
class Approver:
    user_id: str
    roles: frozenset[str]

    @property
    def role(self) -> str:
        return "manager" if is_manager(self.roles) else "admin"


@dataclass(slots=True)
class BulkApprovalResult:
    approved: list[str] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class WinningSummary:
    total_wins: int
    total_won: Decimal
    claimed: int
    disbursed: int
    pending: int
    unclaimed: int
    rejected: int

    @classmethod
    def from_winners(cls, winners: Sequence[LotteryWinner]) -> "WinningSummary":
        return cls(
            total_wins=len(winners),
            total_won=sum(
                (w.prize_amount for w in winners if w.disbursement_status != DisbursementStatus.REJECTED),
                Decimal("0"),
            ),
            claimed=sum(1 for w in winners if w.claimed),
            disbursed=sum(1 for w in winners if w.disbursement_status == DisbursementStatus.DISBURSED),
            pending=sum(1 for w in winners if w.disbursement_status in PENDING_STATUSES),
            unclaimed=sum(1 for w in winners if not w.claimed),
            rejected=sum(1 for w in winners if w.disbursement_status == DisbursementStatus.REJECTED),
        )


class PrizeClaimService:
    """Moves winner records through claim, approval and rejection.

    Monetary prizes are credited to the wallet at draw time, so approval only
    releases the record while rejection reverses the credit.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        ledger: HashChainLedger | None = None,
        wallet: WalletService | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._ledger = ledger or HashChainLedger(session)
        self._wallet = wallet or WalletService(session, settings=self._settings)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _load(self, winner_id: str) -> LotteryWinner:
        statement = (
            select(LotteryWinner)
            .where(LotteryWinner.id == winner_id)
            .with_for_update()
        )
        winner = self._session.scalars(statement).first()
        if winner is None:
            raise WinnerNotFoundError("Winner record not found")
        return winner

    def _status_after_claim(self, winner: LotteryWinner) -> DisbursementStatus:
        if winner.prize_type != RewardType.MONETARY:
            return DisbursementStatus.PENDING_APPROVAL
        amount = Decimal(winner.prize_amount)
        if amount >= self._settings.large_amount_threshold:
            return DisbursementStatus.PENDING_SENIOR_APPROVAL
        if amount >= self._settings.auto_disburse_threshold:
            return DisbursementStatus.PENDING_APPROVAL
        return DisbursementStatus.DISBURSED

    def claim_prize(
        self,
        winner_id: str,
        user_id: str,
        *,
        context: RequestContext | None = None,
    ) -> ClaimOutcome:
        try:
            winner = self._load(winner_id)
            if winner.user_id != str(user_id):
                raise UnauthorizedError("You are not authorized to claim this prize")
            if winner.claimed:
                raise PrizeAlreadyClaimedError("Prize already claimed")
            if winner.disbursement_status == DisbursementStatus.REJECTED:
                raise InvalidDisbursementStateError("Prize has been rejected")

            now = self._clock()
            if winner.disbursement_status == DisbursementStatus.DISBURSED:
                status = DisbursementStatus.DISBURSED
                auto_disbursed = False
            else:
                status = self._status_after_claim(winner)
                auto_disbursed = status == DisbursementStatus.DISBURSED
            winner.claimed = True
            winner.claimed_at = now
            winner.disbursement_status = status
            if auto_disbursed:
                winner.disbursed_at = now

            self._ledger.append(
                "prize_claimed",
                {
                    "winner_id": winner.id,
                    "rank": winner.rank,
                    "prize_amount": winner.prize_amount,
                    "prize_type": winner.prize_type,
                    "disbursement_status": status,
                    "auto_disbursed": auto_disbursed,
                },
                actor_id=str(user_id),
                actor_role="voter",
                election_id=winner.election_id,
                context=context,
            )
            self._session.commit()
        except LotteryError:
            self._session.rollback()
            raise

        LOGGER.info(
            "prize claimed",
            extra={"winner_id": winner_id, "status": status.value, "auto_disbursed": auto_disbursed},
        )
        balance = self._wallet.balance_of(winner.user_id) if winner.prize_type == RewardType.MONETARY else None
        return ClaimOutcome(
            winner=winner,
            requires_approval=status in PENDING_STATUSES,
            auto_disbursed=auto_disbursed,
            new_balance=balance,
        )

    def _approve(self, winner: LotteryWinner, approver: Approver, notes: str | None) -> None:
        if not is_admin(approver.roles):
            raise UnauthorizedError("Admin access required")
        if winner.disbursement_status not in PENDING_STATUSES:
            raise InvalidDisbursementStateError(
                f"Cannot approve disbursement with status: {winner.disbursement_status.value}"
            )
        if winner.disbursement_status == DisbursementStatus.PENDING_SENIOR_APPROVAL and not is_manager(
            approver.roles
        ):
            raise UnauthorizedError("This disbursement requires Manager approval due to large amount")

        now = self._clock()
        winner.disbursement_status = DisbursementStatus.DISBURSED
        winner.disbursed_at = now
        winner.approved_by = approver.user_id
        winner.approved_at = now
        winner.admin_notes = notes

    def approve_disbursement(
        self,
        winner_id: str,
        approver: Approver,
        *,
        notes: str | None = None,
        context: RequestContext | None = None,
    ) -> LotteryWinner:
        try:
            winner = self._load(winner_id)
            self._approve(winner, approver, notes)
            self._ledger.append(
                "prize_disbursed",
                {
                    "winner_id": winner.id,
                    "winner_user_id": winner.user_id,
                    "prize_amount": winner.prize_amount,
                    "notes": notes,
                },
                actor_id=approver.user_id,
                actor_role=approver.role,
                election_id=winner.election_id,
                context=context,
            )
            self._session.commit()
        except LotteryError:
            self._session.rollback()
            raise
        LOGGER.info("disbursement approved", extra={"winner_id": winner_id, "approved_by": approver.user_id})
        return winner

    def bulk_approve(
        self,
        winner_ids: Iterable[str],
        approver: Approver,
        *,
        context: RequestContext | None = None,
    ) -> BulkApprovalResult:
        """Approve each winner independently; ineligible ones are reported, not raised."""
        ids = list(winner_ids)
        if not ids:
            raise LotteryValidationError("Winner IDs are required")
        if not is_admin(approver.roles):
            raise UnauthorizedError("Admin access required")

        result = BulkApprovalResult()
        for winner_id in ids:
            try:
                winner = self._load(winner_id)
            except WinnerNotFoundError:
                result.failed.append({"winner_id": winner_id, "reason": "Not found"})
                continue
            try:
                self._approve(winner, approver, None)
            except (UnauthorizedError, InvalidDisbursementStateError) as exc:
                result.skipped.append({"winner_id": winner_id, "reason": str(exc)})
                continue
            self._ledger.append(
                "prize_disbursed",
                {
                    "winner_id": winner.id,
                    "winner_user_id": winner.user_id,
                    "prize_amount": winner.prize_amount,
                    "bulk": True,
                },
                actor_id=approver.user_id,
                actor_role=approver.role,
                election_id=winner.election_id,
                context=context,
            )
            result.approved.append(winner_id)
        self._session.commit()
        return result

    def reject_disbursement(
        self,
        winner_id: str,
        approver: Approver,
        reason: str,
        *,
        context: RequestContext | None = None,
    ) -> LotteryWinner:
        try:
            if not reason or not reason.strip():
                raise LotteryValidationError("Rejection reason is required")
            if not is_admin(approver.roles):
                raise UnauthorizedError("Admin access required")
            winner = self._load(winner_id)
            if winner.disbursement_status not in PENDING_STATUSES:
                raise InvalidDisbursementStateError(
                    f"Cannot reject disbursement with status: {winner.disbursement_status.value}"
                )

            now = self._clock()
            winner.disbursement_status = DisbursementStatus.REJECTED
            winner.rejection_reason = reason.strip()
            winner.approved_by = approver.user_id
            winner.approved_at = now

            reversed_amount = Decimal("0")
            if winner.prize_type == RewardType.MONETARY and winner.prize_amount > 0:
                reversed_amount = Decimal(winner.prize_amount)
                self._wallet.debit_balance(winner.user_id, reversed_amount)
                self._wallet.record_transaction(
                    winner.user_id,
                    WalletTransactionType.PRIZE_REVERSED,
                    reversed_amount,
                    election_id=winner.election_id,
                    description=f"Lottery Prize Rank #{winner.rank} rejected",
                    details={"winner_id": winner.id, "rejected_by": approver.user_id, "reason": winner.rejection_reason},
                )

            self._ledger.append(
                "prize_rejected",
                {
                    "winner_id": winner.id,
                    "winner_user_id": winner.user_id,
                    "prize_amount": winner.prize_amount,
                    "reversed_amount": reversed_amount,
                    "reason": winner.rejection_reason,
                },
                actor_id=approver.user_id,
                actor_role=approver.role,
                election_id=winner.election_id,
                context=context,
            )
            self._session.commit()
        except LotteryError:
            self._session.rollback()
            raise
        LOGGER.info("disbursement rejected", extra={"winner_id": winner_id, "rejected_by": approver.user_id})
        return winner

    def pending_approvals(
        self,
        *,
        status: DisbursementStatus | None = None,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
    ) -> list[LotteryWinner]:
        statement = select(LotteryWinner).options(
            joinedload(LotteryWinner.election), joinedload(LotteryWinner.ticket)
        )
        if status is not None:
            statement = statement.where(LotteryWinner.disbursement_status == status)
        else:
            statement = statement.where(LotteryWinner.disbursement_status.in_(PENDING_STATUSES))
        if min_amount is not None:
            statement = statement.where(LotteryWinner.prize_amount >= min_amount)
        if max_amount is not None:
            statement = statement.where(LotteryWinner.prize_amount <= max_amount)
        statement = statement.order_by(LotteryWinner.prize_amount.desc(), LotteryWinner.claimed_at.asc())
        return list(self._session.scalars(statement))

    def winning_history(self, user_id: str) -> tuple[list[LotteryWinner], WinningSummary]:
        statement = (
            select(LotteryWinner)
            .options(joinedload(LotteryWinner.election), joinedload(LotteryWinner.ticket))
            .where(LotteryWinner.user_id == str(user_id))
            .order_by(LotteryWinner.created_at.desc())
        )
        winners = list(self._session.scalars(statement))
        return winners, WinningSummary.from_winners(winners)


__all__ = [
    "Approver",
    "BulkApprovalResult",
    "ClaimOutcome",
    "PENDING_STATUSES",
    "PrizeClaimService",
    "WinningSummary",
]
