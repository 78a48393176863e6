from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from fairdraw.models import AuditEvent
from fairdraw.services.audit_chain import HashChainLedger
from fairdraw.services.errors import ElectionNotFoundError, LotteryNotEnabledError
from fairdraw.services.rng import ball_number
from fairdraw.services.tickets import TicketRegistry


def test_tickets_are_numbered_sequentially(db_session: Session, make_election) -> None:
    election = make_election()
    registry = TicketRegistry(db_session)

    first, created_first = registry.issue_ticket(election.id, "voter-a", voting_id="vote-1")
    second, created_second = registry.issue_ticket(election.id, "voter-b")
    db_session.commit()

    assert created_first and created_second
    assert (first.ticket_number, second.ticket_number) == (1, 2)
    assert first.ball_number == ball_number("voter-a")
    assert first.voting_id == "vote-1"
    assert registry.count(election.id) == 2
    assert [ticket.user_id for ticket in registry.tickets_for(election.id)] == ["voter-a", "voter-b"]


def test_issue_is_idempotent_per_voter(db_session: Session, make_election) -> None:
    election = make_election()
    registry = TicketRegistry(db_session)

    ticket, _ = registry.issue_ticket(election.id, "voter-a")
    again, created = registry.issue_ticket(election.id, "voter-a")

    assert created is False
    assert again.id == ticket.id
    assert registry.count(election.id) == 1


def test_numbering_is_per_election(db_session: Session, make_election) -> None:
    first = make_election(title="First")
    second = make_election(title="Second")
    registry = TicketRegistry(db_session)

    registry.issue_ticket(first.id, "voter-a")
    ticket, _ = registry.issue_ticket(second.id, "voter-b")

    assert ticket.ticket_number == 1


def test_issue_requires_enabled_lottery(db_session: Session, make_election) -> None:
    registry = TicketRegistry(db_session)
    with pytest.raises(ElectionNotFoundError):
        registry.issue_ticket(404, "voter-a")

    election = make_election(lottery_enabled=False)
    with pytest.raises(LotteryNotEnabledError):
        registry.issue_ticket(election.id, "voter-a")


def test_issue_appends_audit_event_once(db_session: Session, make_election) -> None:
    election = make_election()
    registry = TicketRegistry(db_session, ledger=HashChainLedger(db_session))

    registry.issue_ticket(election.id, "voter-a", actor_role="voter")
    registry.issue_ticket(election.id, "voter-a", actor_role="voter")
    db_session.commit()

    events = db_session.scalars(select(AuditEvent)).all()
    assert [event.event_type for event in events] == ["lottery_ticket_issued"]
    assert events[0].actor_id == "voter-a"
    assert events[0].event_data["ticket_number"] == 1
