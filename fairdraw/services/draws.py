"""Lottery draw orchestration.

A draw moves an election from *not drawn* to *completed* in one database
transaction. Every precondition is checked before the first write, and any
failure after that rolls the whole draw back so it can be retried.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from fairdraw.core.config import Settings, get_settings
from fairdraw.models import (
    DisbursementStatus,
    DrawStatus,
    Election,
    LotteryDraw,
    LotteryTicket,
    LotteryWinner,
    RewardType,
    WalletTransactionType,
)
from fairdraw.obs import draw_span, record_draw
from fairdraw.services.audit_chain import HashChainLedger, RequestContext
from fairdraw.services.errors import (
    AlreadyDrawnError,
    ElectionNotEndedError,
    ElectionNotFoundError,
    LotteryError,
    LotteryNotEnabledError,
    LotteryValidationError,
    NotFoundError,
    TransientInfraError,
    UnauthorizedError,
)
from fairdraw.services.notifications import WinnerNotice, WinnerNotifier, notify_winners, prize_text
from fairdraw.services.prizes import (
    MonetaryReward,
    PrizeAllocation,
    Reward,
    allocate_prizes,
    distribution_warnings,
    reward_for,
    round_percentage,
)
from fairdraw.services.roles import is_admin
from fairdraw.services.tickets import TicketRegistry
from fairdraw.services.wallet import WalletService
from fairdraw.services.winners import DrawVerification, WinnerSelector, verify_draw

LOGGER = logging.getLogger(__name__)

SHUFFLE_ALGORITHM = "fisher-yates/hmac-drbg-sha256"


class TriggerKind(str, enum.Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


@dataclass(slots=True, frozen=True)
class DrawTrigger:
    """Who asked for the draw: an administrator or the scheduler."""

    kind: TriggerKind
    actor_id: str | None = None
    actor_roles: frozenset[str] = frozenset()
    context: RequestContext | None = None

    @classmethod
    def manual(
        cls,
        admin_id: str,
        roles: Iterable[str],
        *,
        context: RequestContext | None = None,
    ) -> "DrawTrigger":
        return cls(kind=TriggerKind.MANUAL, actor_id=admin_id, actor_roles=frozenset(roles), context=context)

    @classmethod
    def automatic(cls) -> "DrawTrigger":
        return cls(kind=TriggerKind.AUTOMATIC)

    @property
    def actor_role(self) -> str:
        if self.kind is TriggerKind.AUTOMATIC:
            return "system"
        return "manager" if "manager" in self.actor_roles else "admin"


@dataclass(slots=True, frozen=True)
class DrawnWinner:
    winner_id: str
    user_id: str
    ticket_id: str
    ticket_number: int
    ball_number: int
    rank: int
    prize_amount: Decimal
    prize_percentage: Decimal
    prize_type: RewardType
    prize_description: str | None
    disbursement_status: DisbursementStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "winner_id": self.winner_id,
            "user_id": self.user_id,
            "ticket_id": self.ticket_id,
            "ticket_number": self.ticket_number,
            "ball_number": self.ball_number,
            "rank": self.rank,
            "prize_amount": str(self.prize_amount),
            "prize_percentage": str(self.prize_percentage),
            "prize_type": self.prize_type.value,
            "prize_description": self.prize_description,
            "disbursement_status": self.disbursement_status.value,
        }


@dataclass(slots=True, frozen=True)
class DrawResult:
    """Outcome of a committed draw, detached from the session."""

    draw_id: str
    election_id: int
    election_title: str
    total_participants: int
    random_seed: str
    seeded: bool
    auto_drawn: bool
    drawn_at: datetime
    winners: list[DrawnWinner]
    warnings: list[str] = field(default_factory=list)

    def notices(self, *, currency: str = "USD") -> list[WinnerNotice]:
        return [
            WinnerNotice(
                user_id=winner.user_id,
                rank=winner.rank,
                prize_text=prize_text(
                    winner.prize_type, winner.prize_amount, winner.prize_description, currency=currency
                ),
                election_title=self.election_title,
            )
            for winner in self.winners
        ]


Dispatch = Callable[..., Any]


def _run_now(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


class DrawCoordinator:
    """Runs the single draw of an election.

    ``dispatch`` schedules post-commit work; the API passes
    ``BackgroundTasks.add_task`` so notifications leave the request path,
    the worker leaves the default which runs them inline after commit.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        selector: WinnerSelector | None = None,
        ledger: HashChainLedger | None = None,
        wallet: WalletService | None = None,
        notifier: WinnerNotifier | None = None,
        dispatch: Dispatch | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._selector = selector or WinnerSelector(
            seeded=self._settings.lottery_seeded_shuffle,
            seed_bytes=self._settings.lottery_seed_bytes,
        )
        self._ledger = ledger or HashChainLedger(session)
        self._wallet = wallet or WalletService(session, settings=self._settings)
        self._tickets = TicketRegistry(session)
        self._notifier = notifier
        self._dispatch = dispatch or _run_now
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def execute_draw(
        self,
        election_id: int,
        trigger: DrawTrigger,
        *,
        winner_count: int | None = None,
    ) -> DrawResult:
        with draw_span(election_id, trigger.kind.value) as span:
            try:
                result = self._execute(election_id, trigger, winner_count)
            except OperationalError as exc:
                self._session.rollback()
                record_draw(trigger.kind.value, "transient_error")
                LOGGER.warning("draw rolled back after database error", extra={"election_id": election_id})
                raise TransientInfraError("Database unavailable during draw; retry the draw") from exc
            except LotteryError as exc:
                self._session.rollback()
                record_draw(trigger.kind.value, type(exc).__name__)
                raise
            except Exception:
                self._session.rollback()
                record_draw(trigger.kind.value, "error")
                LOGGER.exception("draw failed and was rolled back", extra={"election_id": election_id})
                raise
            span.set_attribute("lottery.winner_count", len(result.winners))

        record_draw(trigger.kind.value, "completed")
        LOGGER.info(
            "lottery drawn",
            extra={
                "election_id": election_id,
                "draw_id": result.draw_id,
                "trigger": trigger.kind.value,
                "winners": len(result.winners),
                "participants": result.total_participants,
            },
        )
        if self._notifier is not None and result.winners:
            self._dispatch(
                notify_winners,
                result.notices(currency=self._settings.wallet_currency),
                self._notifier,
            )
        return result

    def _end_time(self) -> time:
        return time.fromisoformat(self._settings.lottery_default_end_time)

    def _check_preconditions(
        self,
        election_id: int,
        trigger: DrawTrigger,
        winner_count: int | None,
    ) -> tuple[Election, Reward, int]:
        election = self._session.get(Election, election_id)
        if election is None:
            raise ElectionNotFoundError(f"Election {election_id} not found")

        if trigger.kind is TriggerKind.MANUAL and not is_admin(trigger.actor_roles):
            raise UnauthorizedError("Admin access required")

        must_have_ended = (
            trigger.kind is TriggerKind.AUTOMATIC or self._settings.lottery_manual_draw_requires_end
        )
        if must_have_ended and self._clock() < election.ends_at(self._end_time()):
            raise ElectionNotEndedError("Election has not ended yet")

        if not election.lottery_enabled:
            raise LotteryNotEnabledError("Lottery not enabled for this election")

        existing = self._session.scalar(select(LotteryDraw.id).where(LotteryDraw.election_id == election_id))
        if existing is not None:
            raise AlreadyDrawnError("Lottery already drawn for this election")

        count = election.lottery_winner_count if winner_count is None else winner_count
        if count < 1:
            raise LotteryValidationError("Winner count must be at least 1")
        return election, reward_for(election), count

    def _execute(self, election_id: int, trigger: DrawTrigger, winner_count: int | None) -> DrawResult:
        election, reward, count = self._check_preconditions(election_id, trigger, winner_count)

        tickets = self._tickets.tickets_for(election_id)
        outcome = self._selector.select_winners(tickets, count)
        allocations = allocate_prizes(outcome.winners, reward)
        warnings = distribution_warnings(reward, len(outcome.winners))
        for warning in warnings:
            LOGGER.warning(warning, extra={"election_id": election_id})

        draw = LotteryDraw(
            election_id=election_id,
            total_participants=outcome.total_participants,
            winner_count=len(outcome.winners),
            random_seed=outcome.seed,
            status=DrawStatus.COMPLETED,
            draw_metadata=self._snapshot(reward, trigger, outcome.seeded, tickets, warnings),
            drawn_by=trigger.actor_id,
            auto_drawn=trigger.kind is TriggerKind.AUTOMATIC,
            drawn_at=self._clock(),
        )
        self._session.add(draw)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise AlreadyDrawnError("Lottery already drawn for this election") from exc

        drawn: list[DrawnWinner] = []
        for allocation in allocations:
            winner = self._persist_winner(draw, allocation)
            self._credit(election, winner)
            drawn.append(self._summarise(winner, allocation.ticket))

        self._ledger.append(
            "lottery_drawn",
            {
                "draw_id": draw.id,
                "random_seed": outcome.seed,
                "seeded": outcome.seeded,
                "total_participants": outcome.total_participants,
                "winner_count": len(drawn),
                "auto_drawn": draw.auto_drawn,
                "winners": [winner.to_dict() for winner in drawn],
            },
            actor_id=trigger.actor_id or "system",
            actor_role=trigger.actor_role,
            election_id=election_id,
            context=trigger.context,
        )

        result = DrawResult(
            draw_id=draw.id,
            election_id=election_id,
            election_title=election.title,
            total_participants=outcome.total_participants,
            random_seed=outcome.seed,
            seeded=outcome.seeded,
            auto_drawn=draw.auto_drawn,
            drawn_at=draw.drawn_at,
            winners=drawn,
            warnings=warnings,
        )
        self._session.commit()
        return result

    @staticmethod
    def _snapshot(
        reward: Reward,
        trigger: DrawTrigger,
        seeded: bool,
        tickets: Sequence[LotteryTicket],
        warnings: list[str],
    ) -> dict[str, Any]:
        snapshot: dict[str, Any] = {
            "reward_type": reward.reward_type.value,
            "prize_description": reward.description,
            "auto_drawn": trigger.kind is TriggerKind.AUTOMATIC,
            "drawn_by": trigger.actor_id,
            "seeded": seeded,
            "algorithm": SHUFFLE_ALGORITHM if seeded else "fisher-yates/os-csprng",
            "canonical_order": "ticket_number",
            "max_ticket_number": max(ticket.ticket_number for ticket in tickets),
            "warnings": list(warnings),
        }
        if isinstance(reward, MonetaryReward):
            snapshot["total_prize_pool"] = str(reward.total_pool)
            snapshot["prize_distribution"] = [share.to_dict() for share in reward.distribution]
        return snapshot

    def _persist_winner(self, draw: LotteryDraw, allocation: PrizeAllocation[LotteryTicket]) -> LotteryWinner:
        ticket = allocation.ticket
        monetary = allocation.prize_type == RewardType.MONETARY
        winner = LotteryWinner(
            election_id=draw.election_id,
            draw_id=draw.id,
            user_id=ticket.user_id,
            ticket_id=ticket.id,
            rank=allocation.rank,
            prize_amount=allocation.prize_amount,
            prize_percentage=round_percentage(allocation.prize_percentage),
            prize_description=allocation.prize_description,
            prize_type=allocation.prize_type,
            claimed=False,
            disbursement_status=(
                DisbursementStatus.PENDING_APPROVAL if monetary else DisbursementStatus.PENDING_CLAIM
            ),
        )
        self._session.add(winner)
        self._session.flush()
        return winner

    def _credit(self, election: Election, winner: LotteryWinner) -> None:
        if winner.prize_type != RewardType.MONETARY or winner.prize_amount <= 0:
            return
        self._wallet.credit_balance(winner.user_id, winner.prize_amount)
        self._wallet.record_transaction(
            winner.user_id,
            WalletTransactionType.PRIZE_WON,
            winner.prize_amount,
            election_id=election.id,
            description=f"Lottery Prize Rank #{winner.rank} - {election.title}",
            details={"winner_id": winner.id, "draw_id": winner.draw_id},
        )

    @staticmethod
    def _summarise(winner: LotteryWinner, ticket: LotteryTicket) -> DrawnWinner:
        return DrawnWinner(
            winner_id=winner.id,
            user_id=winner.user_id,
            ticket_id=ticket.id,
            ticket_number=ticket.ticket_number,
            ball_number=ticket.ball_number,
            rank=winner.rank,
            prize_amount=winner.prize_amount,
            prize_percentage=winner.prize_percentage,
            prize_type=winner.prize_type,
            prize_description=winner.prize_description,
            disbursement_status=winner.disbursement_status,
        )


@dataclass(slots=True, frozen=True)
class DrawAudit:
    election_id: int
    random_seed: str
    total_participants: int
    verification: DrawVerification

    def to_dict(self) -> dict[str, Any]:
        return {
            "election_id": self.election_id,
            "random_seed": self.random_seed,
            "total_participants": self.total_participants,
            "reproducible": self.verification.reproducible,
            "matches": self.verification.matches,
            "expected_ticket_ids": list(self.verification.expected),
            "recomputed_ticket_ids": list(self.verification.recomputed),
        }


class DrawVerifier:
    """Recomputes a stored draw from its published seed."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def verify(self, election_id: int) -> DrawAudit:
        draw = self._session.scalars(select(LotteryDraw).where(LotteryDraw.election_id == election_id)).first()
        if draw is None:
            raise NotFoundError("Lottery has not been drawn for this election")

        expected = [winner.ticket_id for winner in draw.winners]
        metadata = draw.draw_metadata or {}
        if not metadata.get("seeded", False):
            verification = DrawVerification(reproducible=False, matches=False, expected=expected)
            return DrawAudit(election_id, draw.random_seed, draw.total_participants, verification)

        tickets = TicketRegistry(self._session).tickets_for(election_id)
        cutoff = metadata.get("max_ticket_number")
        if cutoff is not None:
            tickets = [ticket for ticket in tickets if ticket.ticket_number <= int(cutoff)]
        if len(tickets) != draw.total_participants:
            verification = DrawVerification(reproducible=True, matches=False, expected=expected)
            return DrawAudit(election_id, draw.random_seed, draw.total_participants, verification)

        verification = verify_draw(
            draw.random_seed,
            tickets,
            draw.winner_count,
            expected,
            key=lambda ticket: ticket.id,
        )
        return DrawAudit(election_id, draw.random_seed, draw.total_participants, verification)


__all__ = [
    "DrawAudit",
    "DrawCoordinator",
    "DrawResult",
    "DrawTrigger",
    "DrawVerifier",
    "DrawnWinner",
    "SHUFFLE_ALGORITHM",
    "TriggerKind",
]
