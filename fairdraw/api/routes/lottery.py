"""Lottery tickets, draws, announcements and prize claims."""
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from fairdraw.api.auth import AuthenticatedUser, require_roles
from fairdraw.api.deps import get_db_session, get_notifier, request_context, to_http_exception
from fairdraw.core.config import get_settings
from fairdraw.schemas import (
    ClaimResponse,
    DrawRequest,
    DrawResponse,
    DrawVerificationResponse,
    LotteryInfo,
    TicketIssueRequest,
    TicketIssueResponse,
    TicketRead,
    WinnerRead,
    WinnersAnnouncement,
    WinningHistory,
    WinningSummaryRead,
)
from fairdraw.services.announcements import LotteryAnnouncements
from fairdraw.services.audit_chain import HashChainLedger
from fairdraw.services.claims import PrizeClaimService
from fairdraw.services.draws import DrawCoordinator, DrawTrigger, DrawVerifier
from fairdraw.services.errors import LotteryError
from fairdraw.services.notifications import WinnerNotifier
from fairdraw.services.roles import ADMIN_ROLES, DegradePolicy
from fairdraw.services.tickets import TicketRegistry

router = APIRouter(prefix="/lottery")

voter = require_roles(policy=DegradePolicy.ASSUME_VOTER)
administrator = require_roles(*sorted(ADMIN_ROLES), policy=DegradePolicy.DENY)


@router.get("/elections/{election_id}", response_model=LotteryInfo)
def get_lottery_info(
    election_id: int,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(voter),
) -> LotteryInfo:
    try:
        info = LotteryAnnouncements(session).lottery_info(election_id, viewer_id=user.user_id)
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return LotteryInfo.model_validate(info)


@router.get("/elections/{election_id}/winners", response_model=WinnersAnnouncement)
def get_winners_announcement(
    election_id: int,
    session: Session = Depends(get_db_session),
) -> WinnersAnnouncement:
    try:
        announcement = LotteryAnnouncements(session).winners_announcement(election_id)
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return WinnersAnnouncement.model_validate(announcement)


@router.get("/elections/{election_id}/ticket", response_model=TicketRead)
def get_my_ticket(
    election_id: int,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(voter),
) -> TicketRead:
    ticket = TicketRegistry(session).ticket_for(election_id, user.user_id)
    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No lottery ticket found")
    return TicketRead.model_validate(ticket)


@router.post("/elections/{election_id}/tickets", response_model=TicketIssueResponse)
def issue_ticket(
    election_id: int,
    payload: TicketIssueRequest,
    request: Request,
    response: Response,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(voter),
) -> TicketIssueResponse:
    registry = TicketRegistry(session, ledger=HashChainLedger(session))
    try:
        ticket, created = registry.issue_ticket(
            election_id,
            user.user_id,
            voting_id=payload.voting_id,
            actor_role="voter",
            context=request_context(request),
        )
        session.commit()
    except LotteryError as exc:
        session.rollback()
        raise to_http_exception(exc) from exc
    if created:
        response.status_code = status.HTTP_201_CREATED
    return TicketIssueResponse(ticket=TicketRead.model_validate(ticket), created=created)


@router.post("/elections/{election_id}/draw", response_model=DrawResponse)
def draw_lottery(
    election_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    payload: DrawRequest | None = None,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(administrator),
    notifier: WinnerNotifier = Depends(get_notifier),
) -> DrawResponse:
    coordinator = DrawCoordinator(
        session,
        settings=get_settings(),
        notifier=notifier,
        dispatch=background_tasks.add_task,
    )
    trigger = DrawTrigger.manual(user.user_id, user.roles, context=request_context(request))
    try:
        result = coordinator.execute_draw(
            election_id,
            trigger,
            winner_count=payload.winner_count if payload else None,
        )
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return DrawResponse.model_validate(result)


@router.get("/elections/{election_id}/verify", response_model=DrawVerificationResponse)
def verify_lottery_draw(
    election_id: int,
    session: Session = Depends(get_db_session),
) -> DrawVerificationResponse:
    try:
        audit = DrawVerifier(session).verify(election_id)
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return DrawVerificationResponse(**audit.to_dict())


@router.post("/winners/{winner_id}/claim", response_model=ClaimResponse)
def claim_prize(
    winner_id: str,
    request: Request,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(voter),
) -> ClaimResponse:
    service = PrizeClaimService(session, settings=get_settings())
    try:
        outcome = service.claim_prize(winner_id, user.user_id, context=request_context(request))
    except LotteryError as exc:
        raise to_http_exception(exc) from exc

    message = (
        "Prize claimed successfully. Awaiting admin approval for disbursement."
        if outcome.requires_approval
        else "Prize claimed and disbursed to your wallet!"
    )
    return ClaimResponse(
        winner_id=outcome.winner.id,
        prize_amount=outcome.winner.prize_amount,
        disbursement_status=outcome.winner.disbursement_status,
        requires_approval=outcome.requires_approval,
        auto_disbursed=outcome.auto_disbursed,
        new_balance=outcome.new_balance,
        message=message,
    )


@router.get("/winners/me", response_model=WinningHistory)
def get_my_winnings(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(voter),
) -> WinningHistory:
    winners, summary = PrizeClaimService(session).winning_history(user.user_id)
    return WinningHistory(
        winnings=[WinnerRead.model_validate(winner) for winner in winners],
        summary=WinningSummaryRead.model_validate(summary),
    )


__all__ = [
    "claim_prize",
    "draw_lottery",
    "get_lottery_info",
    "get_my_ticket",
    "get_my_winnings",
    "get_winners_announcement",
    "issue_ticket",
    "router",
    "verify_lottery_draw",
]
