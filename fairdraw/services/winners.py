"""Unbiased winner selection over an election's ticket pool."""
from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fairdraw.services.errors import LotteryValidationError, NoParticipantsError
from fairdraw.services.rng import HmacDrbgByteSource, SecureRandomSource, random_seed_hex

T = TypeVar("T")

_DRBG_PERSONALIZATION = b"fairdraw/fisher-yates/v1"


@dataclass(slots=True, frozen=True)
class SelectionOutcome(Generic[T]):
    """Winners in rank order together with the published seed."""

    winners: list[T]
    seed: str
    total_participants: int
    seeded: bool


@dataclass(slots=True, frozen=True)
class DrawVerification:
    """Result of replaying a seeded draw."""

    reproducible: bool
    matches: bool
    expected: list[Any] = field(default_factory=list)
    recomputed: list[Any] = field(default_factory=list)


def fisher_yates(items: Sequence[T], source: SecureRandomSource) -> list[T]:
    """Return a shuffled copy of ``items``; the input is left untouched."""
    shuffled = list(items)
    for index in range(len(shuffled) - 1, 0, -1):
        swap = source.uniform_int(0, index)
        shuffled[index], shuffled[swap] = shuffled[swap], shuffled[index]
    return shuffled


def seeded_source(seed: str) -> SecureRandomSource:
    """Random source whose whole output is derived from ``seed``."""
    return SecureRandomSource(HmacDrbgByteSource.from_hex(seed, _DRBG_PERSONALIZATION))


class WinnerSelector:
    """Pick winners without replacement via a Fisher-Yates shuffle.

    In seeded mode the shuffle is driven by an HMAC-DRBG keyed on the
    published seed, so ``verify_draw`` can recompute the exact outcome from
    the seed and the ticket pool in its canonical order. Otherwise fresh
    operating system randomness is used and the seed is informational only.
    An explicit ``random_source`` overrides both.
    """

    def __init__(
        self,
        random_source: SecureRandomSource | None = None,
        *,
        seeded: bool = True,
        seed_bytes: int = 32,
    ) -> None:
        self._random_source = random_source
        self._seeded = seeded and random_source is None
        self._seed_bytes = seed_bytes

    @property
    def seeded(self) -> bool:
        return self._seeded

    def select_winners(
        self,
        tickets: Sequence[T],
        winner_count: int,
        *,
        seed: str | None = None,
    ) -> SelectionOutcome[T]:
        if not tickets:
            raise NoParticipantsError("No lottery tickets found for this election")
        if winner_count < 1:
            raise LotteryValidationError("Winner count must be at least 1")

        count = min(winner_count, len(tickets))
        draw_seed = seed or random_seed_hex(self._seed_bytes)
        if self._random_source is not None:
            source = self._random_source
        elif self._seeded:
            source = seeded_source(draw_seed)
        else:
            source = SecureRandomSource()

        shuffled = fisher_yates(tickets, source)
        return SelectionOutcome(
            winners=shuffled[:count],
            seed=draw_seed,
            total_participants=len(tickets),
            seeded=self._seeded,
        )


def verify_draw(
    seed: str,
    tickets: Sequence[T],
    winner_count: int,
    expected: Sequence[Any],
    *,
    key: Callable[[T], Any] = lambda ticket: ticket,
) -> DrawVerification:
    """Replay a seeded draw and compare its ranked winners with ``expected``.

    ``tickets`` must be supplied in the same canonical order used at draw time
    and ``expected`` holds ``key(ticket)`` for each winner, rank 1 first.
    """
    outcome = WinnerSelector(seeded=True).select_winners(tickets, winner_count, seed=seed)
    recomputed = [key(ticket) for ticket in outcome.winners]
    return DrawVerification(
        reproducible=True,
        matches=recomputed == list(expected),
        expected=list(expected),
        recomputed=recomputed,
    )


__all__ = [
    "DrawVerification",
    "SelectionOutcome",
    "WinnerSelector",
    "fisher_yates",
    "seeded_source",
    "verify_draw",
]
