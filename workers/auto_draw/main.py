"""Worker drawing every ended election lottery that has not been drawn yet."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from fairdraw.core.config import Settings, get_settings
from fairdraw.db.session import SessionLocal
from fairdraw.models import Election, LotteryDraw
from fairdraw.services.draws import DrawCoordinator, DrawTrigger
from fairdraw.services.errors import (
    AlreadyDrawnError,
    ElectionNotEndedError,
    LotteryError,
    NoParticipantsError,
)
from fairdraw.services.notifications import WinnerNotifier, build_notifier
from fairdraw.workers.observability import configure_worker, worker_span
from workers.daily_scheduler import run_daily_scheduler

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


@dataclass(slots=True)
class AutoDrawReport:
    drawn: list[int] = field(default_factory=list)
    skipped: dict[int, str] = field(default_factory=dict)
    failed: dict[int, str] = field(default_factory=dict)


def due_elections(session: Session, now: datetime) -> list[int]:
    """Ids of lottery elections whose end date has passed and that have no draw."""

    statement = (
        select(Election.id)
        .outerjoin(LotteryDraw, LotteryDraw.election_id == Election.id)
        .where(Election.lottery_enabled.is_(True))
        .where(LotteryDraw.id.is_(None))
        .where(Election.end_date <= now.date())
        .order_by(Election.id.asc())
    )
    return list(session.scalars(statement))


def _load_candidates(session_factory: SessionFactory, moment: datetime) -> list[int]:
    with session_factory() as session:
        return due_elections(session, moment)


def _draw_one(
    session_factory: SessionFactory,
    election_id: int,
    moment: datetime,
    settings: Settings,
    notifier: WinnerNotifier | None,
    report: AutoDrawReport,
) -> None:
    with session_factory() as session:
        coordinator = DrawCoordinator(session, settings=settings, notifier=notifier, clock=lambda: moment)
        try:
            result = coordinator.execute_draw(election_id, DrawTrigger.automatic())
        except (ElectionNotEndedError, NoParticipantsError, AlreadyDrawnError) as exc:
            report.skipped[election_id] = str(exc)
            LOGGER.info("auto draw skipped", extra={"election_id": election_id, "reason": str(exc)})
            return
        except LotteryError as exc:
            report.failed[election_id] = str(exc)
            LOGGER.error("auto draw failed", extra={"election_id": election_id, "error": str(exc)})
            return
        except Exception as exc:  # noqa: BLE001 - one election must not stop the cycle
            report.failed[election_id] = str(exc)
            LOGGER.exception("auto draw crashed", extra={"election_id": election_id})
            return
        report.drawn.append(result.election_id)


async def run_once(
    session_factory: SessionFactory,
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
    notifier: WinnerNotifier | None = None,
) -> AutoDrawReport:
    """Execute one auto-draw cycle; each election is drawn in its own transaction.

    Database work runs in a worker thread so the event loop stays free.
    """

    settings = settings or get_settings()
    moment = now or datetime.now(timezone.utc)
    report = AutoDrawReport()

    with worker_span("auto_draw.cycle") as span:
        candidates = await asyncio.to_thread(_load_candidates, session_factory, moment)
        span.set_attribute("auto_draw.candidates", len(candidates))

        for election_id in candidates:
            await asyncio.to_thread(_draw_one, session_factory, election_id, moment, settings, notifier, report)

    LOGGER.info(
        "auto draw cycle complete",
        extra={"drawn": len(report.drawn), "skipped": len(report.skipped), "failed": len(report.failed)},
    )
    return report


async def run() -> None:
    """Run auto-draw cycles once a day at the configured hour."""

    settings = get_settings()
    configure_worker("auto-draw-worker")
    notifier = build_notifier(settings)
    LOGGER.info("starting auto draw worker", extra={"hour_utc": settings.auto_draw_hour_utc})

    async def cycle() -> None:
        await run_once(SessionLocal, settings=settings, notifier=notifier)

    await run_daily_scheduler(cycle, hour=settings.auto_draw_hour_utc)


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("auto draw worker stopped")


if __name__ == "__main__":
    main()
