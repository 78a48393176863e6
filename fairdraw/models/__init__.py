"""ORM models package."""
from .audit_event import AuditEvent
from .base import Base, TimestampMixin
from .election import Election, ElectionStatus, RewardType
from .lottery_draw import DrawStatus, LotteryDraw
from .lottery_ticket import LotteryTicket
from .lottery_winner import DisbursementStatus, LotteryWinner
from .wallet import UserWallet, WalletTransaction, WalletTransactionStatus, WalletTransactionType

__all__ = [
    "AuditEvent",
    "Base",
    "DisbursementStatus",
    "DrawStatus",
    "Election",
    "ElectionStatus",
    "LotteryDraw",
    "LotteryTicket",
    "LotteryWinner",
    "RewardType",
    "TimestampMixin",
    "UserWallet",
    "WalletTransaction",
    "WalletTransactionStatus",
    "WalletTransactionType",
]
