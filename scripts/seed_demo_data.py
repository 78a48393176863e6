"""Seed script for a demo lottery election with issued tickets."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from fairdraw.db.session import SessionLocal, engine
from fairdraw.models import Base, Election, ElectionStatus, RewardType
from fairdraw.services.audit_chain import HashChainLedger
from fairdraw.services.tickets import TicketRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_TITLE = "Demo Board Election"
DEMO_VOTERS = [f"voter-{index:03d}" for index in range(1, 11)]


def seed(session: Session) -> Election:
    """Seed an ended lottery election and one ticket per demo voter."""

    election = session.scalars(select(Election).where(Election.title == DEMO_TITLE)).one_or_none()
    if election is None:
        election = Election(
            title=DEMO_TITLE,
            status=ElectionStatus.PUBLISHED,
            end_date=date.today() - timedelta(days=1),
            lottery_enabled=True,
            lottery_winner_count=3,
            lottery_reward_type=RewardType.MONETARY,
            lottery_total_prize_pool=Decimal("1000.00"),
            lottery_prize_distribution=[
                {"rank": 1, "percentage": 50},
                {"rank": 2, "percentage": 30},
                {"rank": 3, "percentage": 20},
            ],
        )
        session.add(election)
        session.flush()
        logger.info("Created election %s", election.id)
    else:
        logger.info("Election %s already exists", election.id)

    registry = TicketRegistry(session, ledger=HashChainLedger(session))
    for user_id in DEMO_VOTERS:
        ticket, created = registry.issue_ticket(election.id, user_id, actor_role="voter")
        if created:
            logger.info("Issued ticket %s to %s", ticket.ticket_number, user_id)
        else:
            logger.info("User %s already holds ticket %s", user_id, ticket.ticket_number)
    return election


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
        session.commit()


if __name__ == "__main__":
    main()
