"""Error taxonomy shared by the lottery services."""
from __future__ import annotations


class LotteryError(RuntimeError):
    """Base class for lottery service errors."""


class NotFoundError(LotteryError):
    """Raised when a referenced record does not exist."""


class ElectionNotFoundError(NotFoundError):
    """Raised when the election cannot be located."""


class WinnerNotFoundError(NotFoundError):
    """Raised when the winner record cannot be located."""


class LotteryValidationError(LotteryError):
    """Raised for malformed input such as a bad distribution table."""


class PreconditionError(LotteryError):
    """Raised when the current state does not allow the requested operation."""


class AlreadyDrawnError(PreconditionError):
    """Raised when a draw record already exists for the election."""


class LotteryNotEnabledError(PreconditionError):
    """Raised when the election does not run a lottery."""


class ElectionNotEndedError(PreconditionError):
    """Raised when an automatic draw is attempted before voting closes."""


class NoParticipantsError(PreconditionError):
    """Raised when an election has no lottery tickets."""


class PrizeAlreadyClaimedError(PreconditionError):
    """Raised when a winner claims the same prize twice."""


class InvalidDisbursementStateError(PreconditionError):
    """Raised when a disbursement transition is not allowed from the current status."""


class UnauthorizedError(LotteryError):
    """Raised when the caller lacks the role required for the operation."""


class RoleServiceUnavailableError(UnauthorizedError):
    """Raised when roles cannot be resolved and the policy denies by default."""


class TransientInfraError(LotteryError):
    """Raised when the store fails mid-transaction; the whole operation may be retried."""


__all__ = [
    "AlreadyDrawnError",
    "ElectionNotEndedError",
    "ElectionNotFoundError",
    "InvalidDisbursementStateError",
    "LotteryError",
    "LotteryNotEnabledError",
    "LotteryValidationError",
    "NoParticipantsError",
    "NotFoundError",
    "PreconditionError",
    "PrizeAlreadyClaimedError",
    "RoleServiceUnavailableError",
    "TransientInfraError",
    "UnauthorizedError",
    "WinnerNotFoundError",
]
