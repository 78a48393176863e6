"""Schemas for lottery, claim and disbursement endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fairdraw.models import DisbursementStatus, RewardType


class TicketIssueRequest(BaseModel):
    voting_id: str | None = Field(default=None, max_length=64)


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    election_id: int
    user_id: str
    ticket_number: int
    ball_number: int
    voting_id: str | None = None
    created_at: datetime | None = None


class TicketIssueResponse(BaseModel):
    ticket: TicketRead
    created: bool


class DrawRequest(BaseModel):
    winner_count: int | None = Field(default=None, ge=1)


class DrawnWinnerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    winner_id: str
    user_id: str
    ticket_id: str
    ticket_number: int
    ball_number: int
    rank: int
    prize_amount: Decimal
    prize_percentage: Decimal
    prize_type: RewardType
    prize_description: str | None = None
    disbursement_status: DisbursementStatus


class DrawResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    draw_id: str
    election_id: int
    total_participants: int
    random_seed: str
    seeded: bool
    auto_drawn: bool
    drawn_at: datetime
    winners: list[DrawnWinnerRead]
    warnings: list[str] = Field(default_factory=list)
    message: str = "Lottery drawn successfully. Winners can now claim their prizes."


class DrawVerificationResponse(BaseModel):
    election_id: int
    random_seed: str
    total_participants: int
    reproducible: bool
    matches: bool
    expected_ticket_ids: list[str]
    recomputed_ticket_ids: list[str]


class WinnerView(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    rank: int
    prize_amount: Decimal
    prize_percentage: Decimal
    prize_description: str | None = None
    prize_type: RewardType
    ball_number: int | None = None
    ticket_number: int | None = None
    claimed: bool
    disbursement_status: DisbursementStatus
    display_name: str
    winner_id: str | None = None
    user_id: str | None = None
    claimed_at: datetime | None = None
    disbursed_at: datetime | None = None
    can_claim: bool | None = None


class LotteryInfo(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    election_id: int
    lottery_enabled: bool
    election_title: str | None = None
    has_been_drawn: bool = False
    draw_time: datetime | None = None
    reward_type: RewardType | None = None
    total_prize_pool: Decimal | None = None
    prize_description: str | None = None
    winner_count: int | None = None
    prize_distribution: list[dict[str, Any]] = Field(default_factory=list)
    participant_count: int = 0
    winners: list[WinnerView] = Field(default_factory=list)
    current_user_winner: WinnerView | None = None


class WinnersAnnouncement(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    announced: bool
    election_id: int
    election_title: str
    message: str | None = None
    draw_time: datetime | None = None
    total_participants: int | None = None
    total_prize_pool: Decimal | None = None
    reward_type: RewardType | None = None
    prize_description: str | None = None
    random_seed: str | None = None
    winners: list[WinnerView] = Field(default_factory=list)


class WinnerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    election_id: int
    user_id: str
    ticket_id: str
    rank: int
    prize_amount: Decimal
    prize_percentage: Decimal
    prize_type: RewardType
    prize_description: str | None = None
    claimed: bool
    claimed_at: datetime | None = None
    disbursement_status: DisbursementStatus
    disbursed_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = None


class ClaimResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    winner_id: str
    prize_amount: Decimal
    disbursement_status: DisbursementStatus
    requires_approval: bool
    auto_disbursed: bool
    new_balance: Decimal | None = None
    message: str


class WinningSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_wins: int
    total_won: Decimal
    claimed: int
    disbursed: int
    pending: int
    unclaimed: int
    rejected: int


class WinningHistory(BaseModel):
    winnings: list[WinnerRead]
    summary: WinningSummaryRead


class ApprovalRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=1024)


class RejectionRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1024)


class BulkApprovalRequest(BaseModel):
    winner_ids: list[str] = Field(..., min_length=1)


class BulkApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approved: list[str]
    skipped: list[dict[str, Any]]
    failed: list[dict[str, Any]]


class DisbursementThresholds(BaseModel):
    auto_disburse: Decimal
    large_amount: Decimal


class PendingApprovals(BaseModel):
    pending_approvals: list[WinnerRead]
    total_pending: int
    total_amount: Decimal
    thresholds: DisbursementThresholds


__all__ = [
    "ApprovalRequest",
    "BulkApprovalRequest",
    "BulkApprovalResponse",
    "ClaimResponse",
    "DisbursementThresholds",
    "DrawRequest",
    "DrawResponse",
    "DrawVerificationResponse",
    "DrawnWinnerRead",
    "LotteryInfo",
    "PendingApprovals",
    "RejectionRequest",
    "TicketIssueRequest",
    "TicketIssueResponse",
    "TicketRead",
    "WinnerRead",
    "WinnerView",
    "WinnersAnnouncement",
    "WinningHistory",
    "WinningSummaryRead",
]
