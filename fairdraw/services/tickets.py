"""Lottery ticket registry."""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fairdraw.models import Election, LotteryTicket
from fairdraw.services.audit_chain import HashChainLedger, RequestContext
from fairdraw.services.errors import (
    ElectionNotFoundError,
    LotteryNotEnabledError,
    TransientInfraError,
)
from fairdraw.services.rng import ball_number

LOGGER = logging.getLogger(__name__)

_ISSUE_ATTEMPTS = 3


class TicketRegistry:
    """Issues and reads the one ticket each voter holds per election."""

    def __init__(self, session: Session, *, ledger: HashChainLedger | None = None) -> None:
        self._session = session
        self._ledger = ledger

    def tickets_for(self, election_id: int) -> list[LotteryTicket]:
        """All tickets of an election in canonical (ticket number) order."""
        statement = (
            select(LotteryTicket)
            .where(LotteryTicket.election_id == election_id)
            .order_by(LotteryTicket.ticket_number.asc())
        )
        return list(self._session.scalars(statement))

    def ticket_for(self, election_id: int, user_id: str) -> LotteryTicket | None:
        statement = select(LotteryTicket).where(
            LotteryTicket.election_id == election_id,
            LotteryTicket.user_id == user_id,
        )
        return self._session.scalars(statement).first()

    def count(self, election_id: int) -> int:
        statement = select(func.count()).select_from(LotteryTicket).where(LotteryTicket.election_id == election_id)
        return int(self._session.scalar(statement) or 0)

    def _next_ticket_number(self, election_id: int) -> int:
        statement = select(func.max(LotteryTicket.ticket_number)).where(LotteryTicket.election_id == election_id)
        current = self._session.scalar(statement)
        return (current or 0) + 1

    def issue_ticket(
        self,
        election_id: int,
        user_id: str,
        *,
        voting_id: str | None = None,
        actor_role: str | None = None,
        context: RequestContext | None = None,
    ) -> tuple[LotteryTicket, bool]:
        """Return the voter's ticket, creating it on first call.

        The boolean is ``True`` when a new ticket was created. Two voters
        racing for the same ticket number are resolved by the unique index;
        the loser retries with a fresh number inside a savepoint.
        """
        election = self._session.get(Election, election_id)
        if election is None:
            raise ElectionNotFoundError(f"Election {election_id} not found")
        if not election.lottery_enabled:
            raise LotteryNotEnabledError("Lottery is not enabled for this election")

        existing = self.ticket_for(election_id, user_id)
        if existing is not None:
            return existing, False

        for attempt in range(1, _ISSUE_ATTEMPTS + 1):
            ticket = LotteryTicket(
                election_id=election_id,
                user_id=user_id,
                ticket_number=self._next_ticket_number(election_id),
                ball_number=ball_number(user_id),
                voting_id=voting_id,
            )
            try:
                with self._session.begin_nested():
                    self._session.add(ticket)
            except IntegrityError:
                existing = self.ticket_for(election_id, user_id)
                if existing is not None:
                    return existing, False
                LOGGER.info(
                    "ticket number collision, retrying",
                    extra={"election_id": election_id, "attempt": attempt},
                )
                continue

            if self._ledger is not None:
                self._ledger.append(
                    "lottery_ticket_issued",
                    {
                        "ticket_id": ticket.id,
                        "ticket_number": ticket.ticket_number,
                        "ball_number": ticket.ball_number,
                        "voting_id": voting_id,
                    },
                    actor_id=user_id,
                    actor_role=actor_role,
                    election_id=election_id,
                    context=context,
                )
            return ticket, True

        raise TransientInfraError("Could not allocate a ticket number; retry the request")


__all__ = ["TicketRegistry"]
