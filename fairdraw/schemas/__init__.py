"""Pydantic schemas package."""

from .audit import AuditEventRead, AuditTrailPage, BrokenLinkRead, IntegrityReportRead
from .lottery import (
    ApprovalRequest,
    BulkApprovalRequest,
    BulkApprovalResponse,
    ClaimResponse,
    DisbursementThresholds,
    DrawnWinnerRead,
    DrawRequest,
    DrawResponse,
    DrawVerificationResponse,
    LotteryInfo,
    PendingApprovals,
    RejectionRequest,
    TicketIssueRequest,
    TicketIssueResponse,
    TicketRead,
    WinnerRead,
    WinnersAnnouncement,
    WinnerView,
    WinningHistory,
    WinningSummaryRead,
)

__all__ = [
    "ApprovalRequest",
    "AuditEventRead",
    "AuditTrailPage",
    "BrokenLinkRead",
    "BulkApprovalRequest",
    "BulkApprovalResponse",
    "ClaimResponse",
    "DisbursementThresholds",
    "DrawRequest",
    "DrawResponse",
    "DrawVerificationResponse",
    "DrawnWinnerRead",
    "IntegrityReportRead",
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
