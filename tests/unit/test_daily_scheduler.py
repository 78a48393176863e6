from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from workers.daily_scheduler import next_daily_run, run_daily_scheduler


def test_next_daily_run_same_day_when_hour_is_ahead() -> None:
    current = datetime(2026, 3, 18, 1, 30, tzinfo=timezone.utc)
    assert next_daily_run(current, 2) == datetime(2026, 3, 18, 2, 0, tzinfo=timezone.utc)


def test_next_daily_run_rolls_over_month_end() -> None:
    current = datetime(2026, 1, 31, 2, 0, tzinfo=timezone.utc)
    assert next_daily_run(current, 2) == datetime(2026, 2, 1, 2, 0, tzinfo=timezone.utc)


def test_scheduler_executes_callback_once() -> None:
    start = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)
    delays: list[float] = []
    executed = 0

    async def run() -> None:
        nonlocal executed

        async def fake_sleep(seconds: float) -> None:
            delays.append(seconds)

        async def callback() -> None:
            nonlocal executed
            executed += 1

        await run_daily_scheduler(
            callback,
            hour=2,
            now_fn=lambda: start,
            sleep_fn=fake_sleep,
            iterations=1,
        )

    asyncio.run(run())

    assert executed == 1
    assert delays == [(datetime(2026, 3, 19, 2, 0, tzinfo=timezone.utc) - start).total_seconds()]
