"""Daily scheduler driving the automatic lottery draw."""
from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, timezone
from typing import Awaitable, Callable


def next_daily_run(reference: datetime, hour: int, minute: int = 0) -> datetime:
    """Return the next UTC instant at ``hour:minute`` strictly after ``reference``."""

    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    reference = reference.astimezone(timezone.utc)
    target = datetime.combine(reference.date(), time(hour, minute), tzinfo=timezone.utc)
    if target <= reference:
        target += timedelta(days=1)
    return target


async def run_daily_scheduler(
    callback: Callable[[], Awaitable[None]],
    *,
    hour: int,
    now_fn: Callable[[], datetime] | None = None,
    sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    iterations: int | None = None,
) -> None:
    """Invoke ``callback`` once per day at ``hour`` UTC."""

    now_provider = now_fn or (lambda: datetime.now(timezone.utc))
    executed = 0

    while iterations is None or executed < iterations:
        now = now_provider()
        target = next_daily_run(now, hour)
        delay = max((target - now).total_seconds(), 0.0)
        await sleep_fn(delay)
        await callback()
        executed += 1
