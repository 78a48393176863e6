"""Best-effort winner notifications."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Protocol

import httpx

from fairdraw.core.config import Settings, get_settings
from fairdraw.models import RewardType
from fairdraw.obs import WINNER_NOTIFICATION_FAILURES, inject_traceparent

LOGGER = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    """Raised by a notifier when delivery fails."""


@dataclass(slots=True, frozen=True)
class WinnerNotice:
    user_id: str
    rank: int
    prize_text: str
    election_title: str


def rank_suffix(rank: int) -> str:
    if 10 <= rank % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(rank % 10, "th")
    return f"{rank}{suffix}"


def prize_text(
    prize_type: RewardType,
    amount: Decimal,
    description: str | None,
    *,
    currency: str = "USD",
) -> str:
    if prize_type == RewardType.MONETARY:
        return f"{amount:.2f} {currency}"
    return description or "Prize"


class WinnerNotifier(Protocol):
    """Protocol describing a winner notification channel."""

    def notify_winner(self, user_id: str, rank: int, prize_text: str, election_title: str) -> None:
        """Deliver one notification or raise :class:`NotificationError`."""


class HTTPWinnerNotifier:
    """Posts notices to the notification service."""

    def __init__(self, *, endpoint: str, timeout_seconds: float, client: httpx.Client | None = None) -> None:
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._client = client or httpx.Client()

    def notify_winner(self, user_id: str, rank: int, prize_text: str, election_title: str) -> None:
        body = {
            "user_id": user_id,
            "template": "lottery_winner",
            "subject": f"Congratulations! You Won - {election_title}",
            "message": f"You are the {rank_suffix(rank)} place winner in {election_title}. Your prize: {prize_text}",
            "rank": rank,
        }
        try:
            response = self._client.post(
                self._endpoint,
                json=body,
                headers=inject_traceparent({}),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Notification delivery failed for {user_id}") from exc


class LoggingWinnerNotifier:
    """Writes notices to the log; used when no notification service is configured."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER

    def notify_winner(self, user_id: str, rank: int, prize_text: str, election_title: str) -> None:
        self._logger.info(
            "lottery winner",
            extra={"user_id": user_id, "rank": rank, "prize": prize_text, "election_title": election_title},
        )


def notify_winners(notices: Iterable[WinnerNotice], notifier: WinnerNotifier) -> int:
    """Send every notice, returning how many were delivered.

    Failures are logged and counted but never raised; a draw that has
    committed stays committed regardless of notification outcome.
    """
    delivered = 0
    for notice in notices:
        try:
            notifier.notify_winner(notice.user_id, notice.rank, notice.prize_text, notice.election_title)
        except Exception:  # noqa: BLE001 - delivery is best effort
            WINNER_NOTIFICATION_FAILURES.inc()
            LOGGER.exception("winner notification failed", extra=asdict(notice))
            continue
        delivered += 1
    return delivered


def build_notifier(settings: Settings | None = None) -> WinnerNotifier:
    settings = settings or get_settings()
    if settings.notification_service_url:
        return HTTPWinnerNotifier(
            endpoint=settings.notification_service_url,
            timeout_seconds=settings.notification_timeout_seconds,
        )
    return LoggingWinnerNotifier()


__all__ = [
    "HTTPWinnerNotifier",
    "LoggingWinnerNotifier",
    "NotificationError",
    "WinnerNotice",
    "WinnerNotifier",
    "build_notifier",
    "notify_winners",
    "prize_text",
    "rank_suffix",
]
