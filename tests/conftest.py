from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterator
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_suite.db")
os.environ.setdefault("ENABLE_TRACING", "false")

import pytest
from fastapi.testclient import TestClient
from jose import jwt  # type: ignore[import-untyped]
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fairdraw.api.deps import get_db_session, get_notifier, get_role_provider
from fairdraw.core.config import get_settings
from fairdraw.main import app
from fairdraw.models import Base, Election, ElectionStatus, LotteryTicket, RewardType
from fairdraw.services.notifications import NotificationError
from fairdraw.services.roles import StaticRoleProvider
from fairdraw.services.tickets import TicketRegistry


class RecordingNotifier:
    """Collects winner notifications; user ids in ``fail_for`` raise instead."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[dict[str, object]] = []
        self.fail_for = fail_for or set()

    def notify_winner(self, user_id: str, rank: int, prize_text: str, election_title: str) -> None:
        if user_id in self.fail_for:
            raise NotificationError(f"mailbox unavailable for {user_id}")
        self.sent.append(
            {"user_id": user_id, "rank": rank, "prize_text": prize_text, "election_title": election_title}
        )


DATABASE_URL = "sqlite+pysqlite://"


engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT and rollback behave.
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(connection) -> None:  # type: ignore[no-untyped-def]
    connection.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def make_election(db_session: Session) -> Callable[..., Election]:
    def _make(**overrides: object) -> Election:
        values: dict[str, object] = {
            "title": "Annual General Meeting",
            "status": ElectionStatus.PUBLISHED,
            "end_date": date.today() - timedelta(days=1),
            "lottery_enabled": True,
            "lottery_winner_count": 3,
            "lottery_reward_type": RewardType.MONETARY,
            "lottery_total_prize_pool": Decimal("1000.00"),
            "lottery_prize_distribution": [
                {"rank": 1, "percentage": 50},
                {"rank": 2, "percentage": 30},
                {"rank": 3, "percentage": 20},
            ],
        }
        values.update(overrides)
        election = Election(**values)
        db_session.add(election)
        db_session.commit()
        return election

    return _make


@pytest.fixture()
def issue_tickets(db_session: Session) -> Callable[[int, int], list[LotteryTicket]]:
    def _issue(election_id: int, count: int) -> list[LotteryTicket]:
        registry = TicketRegistry(db_session)
        tickets = [registry.issue_ticket(election_id, f"voter-{index:03d}")[0] for index in range(1, count + 1)]
        db_session.commit()
        return tickets

    return _issue


@pytest.fixture()
def role_provider() -> StaticRoleProvider:
    provider = StaticRoleProvider()
    provider.assign("admin-1", "Admin")
    provider.assign("manager-1", "Manager")
    return provider


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def client(
    db_session: Session,
    role_provider: StaticRoleProvider,
    notifier: RecordingNotifier,
) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_role_provider] = lambda: role_provider
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_role_provider, None)
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture()
def auth_headers() -> Callable[[str], dict[str, str]]:
    settings = get_settings()

    def _headers(user_id: str) -> dict[str, str]:
        token = jwt.encode({"sub": user_id}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _headers
