"""Read models for lottery pages and public winner announcements."""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from fairdraw.models import DisbursementStatus, Election, LotteryDraw, LotteryWinner
from fairdraw.services.errors import ElectionNotFoundError, LotteryNotEnabledError
from fairdraw.services.tickets import TicketRegistry


def mask_user_id(user_id: str) -> str:
    """Public display name for a winner, e.g. ``User ***42``."""
    tail = str(user_id)[-2:]
    return f"User ***{tail}"


def _winner_view(winner: LotteryWinner, *, public: bool) -> dict[str, Any]:
    ticket = winner.ticket
    view: dict[str, Any] = {
        "rank": winner.rank,
        "prize_amount": Decimal(winner.prize_amount),
        "prize_percentage": Decimal(winner.prize_percentage),
        "prize_description": winner.prize_description,
        "prize_type": winner.prize_type,
        "ball_number": ticket.ball_number if ticket else None,
        "ticket_number": ticket.ticket_number if ticket else None,
        "claimed": winner.claimed,
        "disbursement_status": winner.disbursement_status,
        "display_name": mask_user_id(winner.user_id),
    }
    if not public:
        view.update(
            {
                "winner_id": winner.id,
                "user_id": winner.user_id,
                "claimed_at": winner.claimed_at,
                "disbursed_at": winner.disbursed_at,
            }
        )
    return view


class LotteryAnnouncements:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _election(self, election_id: int) -> Election:
        election = self._session.get(Election, election_id)
        if election is None:
            raise ElectionNotFoundError(f"Election {election_id} not found")
        return election

    def _draw(self, election_id: int) -> LotteryDraw | None:
        statement = (
            select(LotteryDraw)
            .options(joinedload(LotteryDraw.winners).joinedload(LotteryWinner.ticket))
            .where(LotteryDraw.election_id == election_id)
        )
        return self._session.scalars(statement).unique().first()

    def lottery_info(self, election_id: int, viewer_id: str | None = None) -> dict[str, Any]:
        election = self._election(election_id)
        if not election.lottery_enabled:
            return {"election_id": election.id, "lottery_enabled": False}

        draw = self._draw(election_id)
        winners = [_winner_view(winner, public=False) for winner in draw.winners] if draw else []
        current = None
        if viewer_id is not None:
            for view in winners:
                if view["user_id"] == str(viewer_id):
                    current = dict(view)
                    current["can_claim"] = (
                        not view["claimed"] and view["disbursement_status"] != DisbursementStatus.REJECTED
                    )
                    break

        return {
            "election_id": election.id,
            "election_title": election.title,
            "lottery_enabled": True,
            "has_been_drawn": draw is not None,
            "draw_time": draw.drawn_at if draw else None,
            "reward_type": election.lottery_reward_type,
            "total_prize_pool": Decimal(election.lottery_total_prize_pool or 0),
            "prize_description": election.lottery_prize_description,
            "winner_count": len(winners) if winners else election.lottery_winner_count,
            "prize_distribution": election.lottery_prize_distribution or [],
            "participant_count": TicketRegistry(self._session).count(election_id),
            "winners": winners,
            "current_user_winner": current,
        }

    def winners_announcement(self, election_id: int) -> dict[str, Any]:
        election = self._election(election_id)
        if not election.lottery_enabled:
            raise LotteryNotEnabledError("Lottery not enabled for this election")

        draw = self._draw(election_id)
        if draw is None:
            return {
                "announced": False,
                "election_id": election.id,
                "election_title": election.title,
                "message": "Lottery has not been drawn yet",
                "winners": [],
            }
        return {
            "announced": True,
            "election_id": election.id,
            "election_title": election.title,
            "draw_time": draw.drawn_at,
            "total_participants": draw.total_participants,
            "total_prize_pool": Decimal(election.lottery_total_prize_pool or 0),
            "reward_type": election.lottery_reward_type,
            "prize_description": election.lottery_prize_description,
            "random_seed": draw.random_seed,
            "winners": [_winner_view(winner, public=True) for winner in draw.winners],
        }


__all__ = ["LotteryAnnouncements", "mask_user_id"]
