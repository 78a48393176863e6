"""Administrative prize disbursement endpoints."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from fairdraw.api.auth import AuthenticatedUser, require_roles
from fairdraw.api.deps import get_db_session, request_context, to_http_exception
from fairdraw.core.config import get_settings
from fairdraw.models import DisbursementStatus
from fairdraw.schemas import (
    ApprovalRequest,
    BulkApprovalRequest,
    BulkApprovalResponse,
    DisbursementThresholds,
    PendingApprovals,
    RejectionRequest,
    WinnerRead,
)
from fairdraw.services.claims import Approver, PrizeClaimService
from fairdraw.services.errors import LotteryError
from fairdraw.services.roles import ADMIN_ROLES, DegradePolicy

router = APIRouter(prefix="/disbursements")

administrator = require_roles(*sorted(ADMIN_ROLES), policy=DegradePolicy.DENY)


def _approver(user: AuthenticatedUser) -> Approver:
    return Approver(user_id=user.user_id, roles=user.roles)


@router.get("/pending", response_model=PendingApprovals)
def list_pending_approvals(
    status_filter: DisbursementStatus | None = Query(default=None, alias="status"),
    min_amount: Decimal | None = Query(default=None, ge=0),
    max_amount: Decimal | None = Query(default=None, ge=0),
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(administrator),
) -> PendingApprovals:
    settings = get_settings()
    winners = PrizeClaimService(session, settings=settings).pending_approvals(
        status=status_filter,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    return PendingApprovals(
        pending_approvals=[WinnerRead.model_validate(winner) for winner in winners],
        total_pending=len(winners),
        total_amount=sum((Decimal(winner.prize_amount) for winner in winners), Decimal("0")),
        thresholds=DisbursementThresholds(
            auto_disburse=settings.auto_disburse_threshold,
            large_amount=settings.large_amount_threshold,
        ),
    )


@router.post("/{winner_id}/approve", response_model=WinnerRead)
def approve_disbursement(
    winner_id: str,
    request: Request,
    payload: ApprovalRequest | None = None,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(administrator),
) -> WinnerRead:
    service = PrizeClaimService(session, settings=get_settings())
    try:
        winner = service.approve_disbursement(
            winner_id,
            _approver(user),
            notes=payload.notes if payload else None,
            context=request_context(request),
        )
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return WinnerRead.model_validate(winner)


@router.post("/{winner_id}/reject", response_model=WinnerRead)
def reject_disbursement(
    winner_id: str,
    payload: RejectionRequest,
    request: Request,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(administrator),
) -> WinnerRead:
    service = PrizeClaimService(session, settings=get_settings())
    try:
        winner = service.reject_disbursement(
            winner_id,
            _approver(user),
            payload.reason,
            context=request_context(request),
        )
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return WinnerRead.model_validate(winner)


@router.post("/bulk-approve", response_model=BulkApprovalResponse)
def bulk_approve_disbursements(
    payload: BulkApprovalRequest,
    request: Request,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(administrator),
) -> BulkApprovalResponse:
    service = PrizeClaimService(session, settings=get_settings())
    try:
        result = service.bulk_approve(payload.winner_ids, _approver(user), context=request_context(request))
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return BulkApprovalResponse.model_validate(result)


__all__ = [
    "approve_disbursement",
    "bulk_approve_disbursements",
    "list_pending_approvals",
    "reject_disbursement",
    "router",
]
