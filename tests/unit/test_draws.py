from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fairdraw.core.config import Settings
from fairdraw.models import (
    AuditEvent,
    DisbursementStatus,
    LotteryDraw,
    LotteryWinner,
    RewardType,
    WalletTransaction,
)
from fairdraw.services.audit_chain import HashChainLedger
from fairdraw.services.draws import DrawCoordinator, DrawTrigger, DrawVerifier
from fairdraw.services.errors import (
    AlreadyDrawnError,
    ElectionNotEndedError,
    ElectionNotFoundError,
    LotteryNotEnabledError,
    NoParticipantsError,
    NotFoundError,
    TransientInfraError,
    UnauthorizedError,
)
from fairdraw.services.tickets import TicketRegistry
from fairdraw.services.wallet import WalletService
from tests.conftest import RecordingNotifier

ADMIN = DrawTrigger.manual("admin-1", {"admin"})


def _count(session: Session, model: type) -> int:
    return int(session.scalar(select(func.count()).select_from(model)) or 0)


def test_draw_picks_distinct_ranked_winners(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(id=42)
    tickets = issue_tickets(election.id, 10)
    notifier = RecordingNotifier()

    result = DrawCoordinator(db_session, notifier=notifier).execute_draw(42, ADMIN)

    assert result.total_participants == 10
    assert [winner.rank for winner in result.winners] == [1, 2, 3]
    assert len({winner.ticket_id for winner in result.winners}) == 3
    assert {winner.ticket_id for winner in result.winners} <= {ticket.id for ticket in tickets}
    assert [winner.prize_amount for winner in result.winners] == [
        Decimal("500.00"),
        Decimal("300.00"),
        Decimal("200.00"),
    ]
    assert all(winner.disbursement_status == DisbursementStatus.PENDING_APPROVAL for winner in result.winners)

    draw = db_session.scalars(select(LotteryDraw).where(LotteryDraw.election_id == 42)).one()
    assert draw.winner_count == 3
    assert draw.random_seed == result.random_seed
    assert draw.draw_metadata["canonical_order"] == "ticket_number"
    assert draw.draw_metadata["max_ticket_number"] == 10
    assert draw.draw_metadata["drawn_by"] == "admin-1"
    assert _count(db_session, LotteryWinner) == 3

    drawn_events = db_session.scalars(select(AuditEvent).where(AuditEvent.event_type == "lottery_drawn")).all()
    assert len(drawn_events) == 1
    assert drawn_events[0].actor_role == "admin"
    assert len(drawn_events[0].event_data["winners"]) == 3

    assert [notice["rank"] for notice in notifier.sent] == [1, 2, 3]
    assert notifier.sent[0]["prize_text"] == "500.00 USD"


def test_draw_credits_monetary_prizes_to_wallets(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 5)

    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    wallet = WalletService(db_session)
    for winner in result.winners:
        assert wallet.balance_of(winner.user_id) == winner.prize_amount
    assert _count(db_session, WalletTransaction) == 3


def test_non_monetary_draw_leaves_wallets_alone(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(
        lottery_reward_type=RewardType.NON_MONETARY,
        lottery_prize_description="Conference pass",
        lottery_total_prize_pool=Decimal("0"),
        lottery_prize_distribution=None,
        lottery_winner_count=2,
    )
    issue_tickets(election.id, 4)

    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    assert all(winner.prize_description == "Conference pass" for winner in result.winners)
    assert all(winner.disbursement_status == DisbursementStatus.PENDING_CLAIM for winner in result.winners)
    assert _count(db_session, WalletTransaction) == 0


def test_winner_count_is_clamped_to_participants(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(lottery_winner_count=5)
    issue_tickets(election.id, 2)

    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    assert len(result.winners) == 2
    assert result.total_participants == 2
    assert result.warnings == ["Distribution percentages sum to 80, not 100"]


def test_odd_pool_is_paid_out_to_the_cent(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(
        lottery_winner_count=10,
        lottery_total_prize_pool=Decimal("1.05"),
        lottery_prize_distribution=[{"rank": rank, "percentage": 10} for rank in range(1, 11)],
    )
    issue_tickets(election.id, 12)

    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    assert result.warnings == []
    assert sum(winner.prize_amount for winner in result.winners) == Decimal("1.05")
    wallet = WalletService(db_session)
    assert sum(wallet.balance_of(winner.user_id) for winner in result.winners) == Decimal("1.05")
    stored = db_session.scalars(select(LotteryWinner).where(LotteryWinner.election_id == election.id)).all()
    assert sum(winner.prize_amount for winner in stored) == Decimal("1.05")


def test_explicit_winner_count_overrides_election(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 6)

    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN, winner_count=1)

    assert len(result.winners) == 1


def test_empty_pool_fails_without_writes(db_session: Session, make_election) -> None:
    election = make_election()

    with pytest.raises(NoParticipantsError):
        DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    assert _count(db_session, LotteryDraw) == 0
    assert _count(db_session, AuditEvent) == 0


def test_second_draw_is_refused(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 4)
    coordinator = DrawCoordinator(db_session)
    first = coordinator.execute_draw(election.id, ADMIN)

    with pytest.raises(AlreadyDrawnError):
        coordinator.execute_draw(election.id, ADMIN)

    winners = db_session.scalars(select(LotteryWinner)).all()
    assert {winner.id for winner in winners} == {winner.winner_id for winner in first.winners}


def test_failure_midway_rolls_back_everything(
    db_session: Session,
    make_election,
    issue_tickets,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    election = make_election(lottery_winner_count=5, lottery_prize_distribution=None)
    issue_tickets(election.id, 8)
    events_before = _count(db_session, AuditEvent)
    coordinator = DrawCoordinator(db_session)
    original = DrawCoordinator._persist_winner

    def flaky_persist(self, draw, allocation):  # type: ignore[no-untyped-def]
        if allocation.rank == 3:
            raise RuntimeError("database connection lost")
        return original(self, draw, allocation)

    monkeypatch.setattr(DrawCoordinator, "_persist_winner", flaky_persist)

    with pytest.raises(RuntimeError):
        coordinator.execute_draw(election.id, ADMIN)

    assert _count(db_session, LotteryDraw) == 0
    assert _count(db_session, LotteryWinner) == 0
    assert _count(db_session, WalletTransaction) == 0
    assert _count(db_session, AuditEvent) == events_before

    monkeypatch.setattr(DrawCoordinator, "_persist_winner", original)
    retried = coordinator.execute_draw(election.id, ADMIN)
    assert len(retried.winners) == 5


def test_manual_draw_requires_admin(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 3)

    with pytest.raises(UnauthorizedError):
        DrawCoordinator(db_session).execute_draw(election.id, DrawTrigger.manual("voter-001", {"voter"}))

    assert _count(db_session, LotteryDraw) == 0


def test_manager_draw_is_recorded_as_manager(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 3)

    DrawCoordinator(db_session).execute_draw(election.id, DrawTrigger.manual("manager-1", {"manager"}))

    event = db_session.scalars(select(AuditEvent).where(AuditEvent.event_type == "lottery_drawn")).one()
    assert event.actor_role == "manager"


def test_missing_or_disabled_election(db_session: Session, make_election) -> None:
    with pytest.raises(ElectionNotFoundError):
        DrawCoordinator(db_session).execute_draw(9999, ADMIN)

    election = make_election(lottery_enabled=False)
    with pytest.raises(LotteryNotEnabledError):
        DrawCoordinator(db_session).execute_draw(election.id, ADMIN)


def test_automatic_draw_waits_for_election_end(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(end_date=date.today() + timedelta(days=3))
    issue_tickets(election.id, 3)

    with pytest.raises(ElectionNotEndedError):
        DrawCoordinator(db_session).execute_draw(election.id, DrawTrigger.automatic())

    manual = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)
    assert manual.auto_drawn is False


def test_manual_draw_can_be_made_to_wait(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election(end_date=date.today() + timedelta(days=3))
    issue_tickets(election.id, 3)
    settings = Settings(lottery_manual_draw_requires_end=True)

    with pytest.raises(ElectionNotEndedError):
        DrawCoordinator(db_session, settings=settings).execute_draw(election.id, ADMIN)


def test_automatic_draw_after_end(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 3)
    later = datetime.now(timezone.utc) + timedelta(minutes=5)

    result = DrawCoordinator(db_session, clock=lambda: later).execute_draw(election.id, DrawTrigger.automatic())

    assert result.auto_drawn is True
    event = db_session.scalars(select(AuditEvent).where(AuditEvent.event_type == "lottery_drawn")).one()
    assert event.actor_id == "system"
    assert event.actor_role == "system"


def test_notification_failures_do_not_undo_draw(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    tickets = issue_tickets(election.id, 3)
    notifier = RecordingNotifier(fail_for={ticket.user_id for ticket in tickets[:2]})

    result = DrawCoordinator(db_session, notifier=notifier).execute_draw(election.id, ADMIN)

    assert len(result.winners) == 3
    assert len(notifier.sent) == 1
    assert _count(db_session, LotteryWinner) == 3


def test_notifications_are_dispatched_after_commit(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 3)
    scheduled: list[tuple] = []

    def dispatch(func, *args):  # type: ignore[no-untyped-def]
        scheduled.append((func, args))
        assert _count(db_session, LotteryWinner) == 3

    DrawCoordinator(db_session, notifier=RecordingNotifier(), dispatch=dispatch).execute_draw(election.id, ADMIN)

    assert len(scheduled) == 1
    assert len(scheduled[0][1][0]) == 3


def test_verifier_replays_stored_draw(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 12)
    result = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    TicketRegistry(db_session).issue_ticket(election.id, "late-voter")
    db_session.commit()

    audit = DrawVerifier(db_session).verify(election.id)

    assert audit.random_seed == result.random_seed
    assert audit.verification.reproducible
    assert audit.verification.matches
    assert audit.verification.recomputed == [winner.ticket_id for winner in result.winners]


def test_verifier_reports_unseeded_draw(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 4)
    DrawCoordinator(db_session, settings=Settings(lottery_seeded_shuffle=False)).execute_draw(election.id, ADMIN)

    audit = DrawVerifier(db_session).verify(election.id)

    assert not audit.verification.reproducible
    assert not audit.verification.matches


def test_verifier_requires_draw(db_session: Session, make_election) -> None:
    election = make_election()
    with pytest.raises(NotFoundError):
        DrawVerifier(db_session).verify(election.id)


def test_concurrent_audit_write_rolls_draw_back_as_transient(
    db_session: Session,
    make_election,
    issue_tickets,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    election = make_election()
    issue_tickets(election.id, 4)
    ledger = HashChainLedger(db_session)
    first = ledger.append("vote_cast", {"ballot": 1}, actor_id="voter-001", election_id=election.id)
    ledger.append("vote_cast", {"ballot": 2}, actor_id="voter-002", election_id=election.id)
    db_session.commit()
    monkeypatch.setattr(HashChainLedger, "_head", lambda self: first)

    with pytest.raises(TransientInfraError):
        DrawCoordinator(db_session).execute_draw(election.id, ADMIN)

    assert _count(db_session, LotteryDraw) == 0
    assert _count(db_session, LotteryWinner) == 0
    assert _count(db_session, WalletTransaction) == 0
    assert _count(db_session, AuditEvent) == 2

    monkeypatch.undo()
    retried = DrawCoordinator(db_session).execute_draw(election.id, ADMIN)
    assert len(retried.winners) == 3
    assert HashChainLedger(db_session).verify_integrity().valid
