"""Schemas for the hash-chained audit trail endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sequence: int
    event_type: str
    actor_id: str | None = None
    actor_role: str | None = None
    election_id: int | None = None
    event_data: Any = None
    ip_address: str | None = None
    user_agent: str | None = None
    hash: str
    previous_hash: str | None = None
    occurred_at: datetime


class AuditTrailPage(BaseModel):
    events: list[AuditEventRead]
    total: int
    page: int
    limit: int
    total_pages: int


class BrokenLinkRead(BaseModel):
    index: int
    event_id: str
    reason: str
    expected: str | None = None
    actual: str | None = None


class IntegrityReportRead(BaseModel):
    valid: bool
    total_events: int
    broken_chains: list[BrokenLinkRead]
    compromised_indices: list[int]
    message: str


__all__ = ["AuditEventRead", "AuditTrailPage", "BrokenLinkRead", "IntegrityReportRead"]
