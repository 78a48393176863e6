"""Prize distribution over ranked lottery winners."""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Generic, TypeVar, Union

from fairdraw.models import Election, RewardType
from fairdraw.services.errors import LotteryValidationError

T = TypeVar("T")

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
PERCENT_PRECISION = Decimal("0.0001")


@dataclass(frozen=True, slots=True)
class PrizeShare:
    rank: int
    percentage: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"rank": self.rank, "percentage": str(self.percentage)}


@dataclass(frozen=True, slots=True)
class MonetaryReward:
    total_pool: Decimal
    distribution: tuple[PrizeShare, ...] = ()
    description: str | None = None

    @property
    def reward_type(self) -> RewardType:
        return RewardType.MONETARY

    def share_for(self, rank: int) -> PrizeShare | None:
        for share in self.distribution:
            if share.rank == rank:
                return share
        return None


@dataclass(frozen=True, slots=True)
class NonMonetaryReward:
    description: str | None = None

    @property
    def reward_type(self) -> RewardType:
        return RewardType.NON_MONETARY


Reward = Union[MonetaryReward, NonMonetaryReward]


@dataclass(frozen=True, slots=True)
class PrizeAllocation(Generic[T]):
    """Prize assigned to one ranked winner.

    ``prize_amount`` is already rounded to cents; ``prize_percentage``
    keeps full precision.
    """

    ticket: T
    rank: int
    prize_amount: Decimal
    prize_percentage: Decimal
    prize_type: RewardType
    prize_description: str | None


def _to_decimal(value: Any, *, field_name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise LotteryValidationError(f"Invalid {field_name}: {value!r}") from exc
    if not result.is_finite():
        raise LotteryValidationError(f"Invalid {field_name}: {value!r}")
    return result


def parse_distribution(raw: Iterable[Mapping[str, Any]] | None) -> tuple[PrizeShare, ...]:
    """Validate a stored distribution table and return it sorted by rank."""
    if raw is None:
        return ()
    shares: dict[int, PrizeShare] = {}
    for entry in raw:
        if not isinstance(entry, Mapping) or "rank" not in entry or "percentage" not in entry:
            raise LotteryValidationError("Distribution entries need a rank and a percentage")
        try:
            rank = int(entry["rank"])
        except (TypeError, ValueError) as exc:
            raise LotteryValidationError(f"Invalid rank: {entry['rank']!r}") from exc
        if rank < 1:
            raise LotteryValidationError("Distribution ranks start at 1")
        if rank in shares:
            raise LotteryValidationError(f"Duplicate distribution rank {rank}")
        percentage = _to_decimal(entry["percentage"], field_name="percentage")
        if percentage < 0 or percentage > HUNDRED:
            raise LotteryValidationError("Distribution percentages must be between 0 and 100")
        shares[rank] = PrizeShare(rank=rank, percentage=percentage)
    return tuple(shares[rank] for rank in sorted(shares))


def reward_for(election: Election) -> Reward:
    """Build the tagged reward configuration of an election."""
    if election.lottery_reward_type == RewardType.MONETARY:
        pool = _to_decimal(election.lottery_total_prize_pool or 0, field_name="prize pool")
        if pool < 0:
            raise LotteryValidationError("Prize pool cannot be negative")
        return MonetaryReward(
            total_pool=pool,
            distribution=parse_distribution(election.lottery_prize_distribution),
            description=election.lottery_prize_description,
        )
    return NonMonetaryReward(description=election.lottery_prize_description)


def allocate_prizes(winners: Sequence[T], reward: Reward) -> list[PrizeAllocation[T]]:
    """Assign prizes to ``winners`` where index 0 holds rank 1.

    Ranks missing from the distribution table fall back to an equal split of
    the whole pool across all winners. When the allocation covers the pool
    exactly (a complete table summing to 100, or a pure equal split) the cent
    amounts are balanced by largest remainder so they add up to the pool.
    """
    winner_count = len(winners)
    exact: list[tuple[Decimal, Decimal]] = []
    for rank in range(1, winner_count + 1):
        if isinstance(reward, MonetaryReward):
            share = reward.share_for(rank)
            if share is not None:
                exact.append((share.percentage, reward.total_pool * share.percentage / HUNDRED))
            else:
                exact.append((HUNDRED / winner_count, reward.total_pool / winner_count))
        else:
            exact.append((Decimal("0"), Decimal("0")))

    if isinstance(reward, MonetaryReward) and _conserves_pool(reward, winner_count):
        amounts = _balance_to_cents([amount for _, amount in exact], round_money(reward.total_pool))
    else:
        amounts = [round_money(amount) for _, amount in exact]

    return [
        PrizeAllocation(
            ticket=ticket,
            rank=index + 1,
            prize_amount=amounts[index],
            prize_percentage=exact[index][0],
            prize_type=reward.reward_type,
            prize_description=reward.description,
        )
        for index, ticket in enumerate(winners)
    ]


def _conserves_pool(reward: MonetaryReward, winner_count: int) -> bool:
    covered = [reward.share_for(rank) for rank in range(1, winner_count + 1)]
    if all(share is None for share in covered):
        return True
    if any(share is None for share in covered):
        return False
    return sum((share.percentage for share in covered if share is not None), Decimal("0")) == HUNDRED


def _balance_to_cents(amounts: list[Decimal], target: Decimal) -> list[Decimal]:
    floors = [amount.quantize(CENT, rounding=ROUND_DOWN) for amount in amounts]
    if not floors:
        return floors
    residue = int((target - sum(floors, Decimal("0"))) / CENT)
    # Largest fractional remainder first, lower rank wins ties.
    order = sorted(range(len(amounts)), key=lambda index: (floors[index] - amounts[index], index))
    for step in range(max(residue, 0)):
        index = order[step % len(order)]
        floors[index] += CENT
    return floors


def distribution_warnings(reward: Reward, winner_count: int) -> list[str]:
    """Report tables that will not conserve the pool exactly."""
    if not isinstance(reward, MonetaryReward) or winner_count < 1:
        return []
    warnings: list[str] = []
    covered = {share.rank for share in reward.distribution}
    missing = [rank for rank in range(1, winner_count + 1) if rank not in covered]
    if missing:
        warnings.append(f"Distribution has no entry for ranks {missing}; equal split applied")
    total = sum((share.percentage for share in reward.distribution if share.rank <= winner_count), Decimal("0"))
    if not missing and total != HUNDRED:
        warnings.append(f"Distribution percentages sum to {total}, not 100")
    return warnings


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def round_percentage(percentage: Decimal) -> Decimal:
    return percentage.quantize(PERCENT_PRECISION, rounding=ROUND_HALF_UP)


__all__ = [
    "MonetaryReward",
    "NonMonetaryReward",
    "PrizeAllocation",
    "PrizeShare",
    "Reward",
    "allocate_prizes",
    "distribution_warnings",
    "parse_distribution",
    "reward_for",
    "round_money",
    "round_percentage",
]
