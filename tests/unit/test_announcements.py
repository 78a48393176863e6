from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from fairdraw.services.announcements import LotteryAnnouncements, mask_user_id
from fairdraw.services.draws import DrawCoordinator, DrawTrigger
from fairdraw.services.errors import ElectionNotFoundError, LotteryNotEnabledError


def test_mask_user_id_keeps_last_two_characters() -> None:
    assert mask_user_id("voter-042") == "User ***42"


def test_lottery_info_before_and_after_draw(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 5)
    announcements = LotteryAnnouncements(db_session)

    before = announcements.lottery_info(election.id, viewer_id="voter-001")
    assert before["has_been_drawn"] is False
    assert before["participant_count"] == 5
    assert before["winner_count"] == 3
    assert before["current_user_winner"] is None

    result = DrawCoordinator(db_session).execute_draw(election.id, DrawTrigger.manual("admin-1", {"admin"}))
    top = result.winners[0]

    after = announcements.lottery_info(election.id, viewer_id=top.user_id)
    assert after["has_been_drawn"] is True
    assert after["total_prize_pool"] == Decimal("1000")
    assert [view["rank"] for view in after["winners"]] == [1, 2, 3]
    assert after["current_user_winner"]["winner_id"] == top.winner_id
    assert after["current_user_winner"]["can_claim"] is True


def test_disabled_lottery_info_is_minimal(db_session: Session, make_election) -> None:
    election = make_election(lottery_enabled=False)
    assert LotteryAnnouncements(db_session).lottery_info(election.id) == {
        "election_id": election.id,
        "lottery_enabled": False,
    }


def test_public_announcement_masks_winners(db_session: Session, make_election, issue_tickets) -> None:
    election = make_election()
    issue_tickets(election.id, 4)
    announcements = LotteryAnnouncements(db_session)

    pending = announcements.winners_announcement(election.id)
    assert pending["announced"] is False
    assert pending["winners"] == []

    result = DrawCoordinator(db_session).execute_draw(election.id, DrawTrigger.manual("admin-1", {"admin"}))
    announced = announcements.winners_announcement(election.id)

    assert announced["announced"] is True
    assert announced["random_seed"] == result.random_seed
    assert announced["total_participants"] == 4
    for view in announced["winners"]:
        assert "user_id" not in view
        assert view["display_name"].startswith("User ***")


def test_announcement_errors(db_session: Session, make_election) -> None:
    announcements = LotteryAnnouncements(db_session)
    with pytest.raises(ElectionNotFoundError):
        announcements.winners_announcement(12345)

    election = make_election(lottery_enabled=False)
    with pytest.raises(LotteryNotEnabledError):
        announcements.winners_announcement(election.id)
