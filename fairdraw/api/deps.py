"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator
from functools import lru_cache

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from fairdraw.core.config import get_settings
from fairdraw.db.session import SessionLocal
from fairdraw.services.audit_chain import RequestContext
from fairdraw.services.errors import (
    AlreadyDrawnError,
    LotteryError,
    LotteryValidationError,
    NotFoundError,
    PreconditionError,
    RoleServiceUnavailableError,
    TransientInfraError,
    UnauthorizedError,
)
from fairdraw.services.notifications import WinnerNotifier, build_notifier
from fairdraw.services.roles import HTTPRoleProvider, RoleProvider


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@lru_cache
def get_role_provider() -> RoleProvider:
    settings = get_settings()
    return HTTPRoleProvider(settings.role_service_url, timeout_seconds=settings.role_service_timeout_seconds)


@lru_cache
def get_notifier() -> WinnerNotifier:
    return build_notifier(get_settings())


def request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


_STATUS_BY_ERROR: tuple[tuple[type[LotteryError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (LotteryValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (AlreadyDrawnError, status.HTTP_409_CONFLICT),
    (PreconditionError, status.HTTP_400_BAD_REQUEST),
    (RoleServiceUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (TransientInfraError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: LotteryError) -> HTTPException:
    """Translate a service error into the matching HTTP response."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


__all__ = [
    "get_db_session",
    "get_notifier",
    "get_role_provider",
    "request_context",
    "to_http_exception",
]
