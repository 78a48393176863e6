"""Audit trail query, verification and export endpoints."""
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from fairdraw.api.auth import AuthenticatedUser, require_roles
from fairdraw.api.deps import get_db_session, to_http_exception
from fairdraw.core.config import get_settings
from fairdraw.schemas import AuditEventRead, AuditTrailPage, IntegrityReportRead
from fairdraw.services.audit_chain import HashChainLedger
from fairdraw.services.errors import LotteryError, LotteryValidationError
from fairdraw.services.roles import ADMIN_ROLES, DegradePolicy

router = APIRouter(prefix="/audit")

administrator = require_roles(*sorted(ADMIN_ROLES), policy=DegradePolicy.DENY)


@router.get("/events", response_model=AuditTrailPage)
def list_audit_events(
    election_id: int | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(administrator),
) -> AuditTrailPage:
    settings = get_settings()
    page_size = min(limit or settings.audit_page_size, settings.audit_max_page_size)
    try:
        result = HashChainLedger(session).audit_trail(
            election_id=election_id,
            actor_id=actor_id,
            page=page,
            limit=page_size,
        )
    except LotteryError as exc:
        raise to_http_exception(exc) from exc
    return AuditTrailPage(
        events=[AuditEventRead.model_validate(event) for event in result.events],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/verify", response_model=IntegrityReportRead)
def verify_audit_chain(
    election_id: int | None = Query(default=None),
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(administrator),
) -> IntegrityReportRead:
    report = HashChainLedger(session).verify_integrity(election_id)
    return IntegrityReportRead.model_validate(report.to_dict())


@router.get("/elections/{election_id}/export")
def export_audit_trail(
    election_id: int,
    export_format: Literal["json", "csv"] = Query(default="json", alias="format"),
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(administrator),
) -> Response:
    try:
        export = HashChainLedger(session).export(election_id, export_format)
    except LotteryValidationError as exc:
        raise to_http_exception(exc) from exc
    filename = f"audit-election-{election_id}.{export.format}"
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


__all__ = ["export_audit_trail", "list_audit_events", "router", "verify_audit_chain"]
