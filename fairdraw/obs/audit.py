"""Request audit middleware.

Every HTTP request produces one JSON line on the ``audit`` logger. This is the
operational access log; the tamper-evident business log lives in
:mod:`fairdraw.services.audit_chain`.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

_SENSITIVE_KEYS = {
    "email",
    "phone",
    "phone_number",
    "account_number",
    "bank_account_number",
    "authorization",
    "token",
    "access_token",
    "voting_id",
}


def mask_value(value: Any) -> Any:
    if isinstance(value, dict):
        return mask_mapping(value)
    if isinstance(value, list):
        return [mask_value(item) for item in value]
    if isinstance(value, str) and "@" in value:
        name, _, domain = value.partition("@")
        hidden = name[0] + "***" if name else "***"
        return f"{hidden}@{domain}" if domain else "***@***"
    return value


def mask_mapping(mapping: dict[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in mapping.items():
        if str(key).lower() in _SENSITIVE_KEYS:
            if isinstance(value, str) and len(value) > 4:
                sanitized[key] = f"***{value[-4:]}"
            else:
                sanitized[key] = "***"
        else:
            sanitized[key] = mask_value(value)
    return sanitized


@dataclass(slots=True)
class RequestAuditRecord:
    """Structured log entry emitted by the middleware."""

    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    actor: str | None
    ip_address: str | None
    user_agent: str | None
    query: dict[str, Any]
    body: Any

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str)


class RequestAuditMiddleware(BaseHTTPMiddleware):
    """Starlette middleware writing one audit line per request."""

    def __init__(self, app: ASGIApp, *, logger: logging.Logger | None = None) -> None:
        super().__init__(app)
        self._logger = logger or logging.getLogger("audit")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        body_bytes = await request.body()
        self._set_body(request, body_bytes)

        masked_body = None
        if body_bytes:
            try:
                masked_body = mask_value(json.loads(body_bytes))
            except json.JSONDecodeError:
                masked_body = "<binary>"

        response = await call_next(request)

        record = RequestAuditRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            actor=getattr(request.state, "actor_id", None),
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            query=mask_mapping(dict(request.query_params.multi_items())),
            body=masked_body,
        )
        self._logger.info(record.to_json())

        response.headers["X-Request-ID"] = request_id
        return response

    @staticmethod
    def _set_body(request: Request, body: bytes) -> None:
        async def receive() -> dict[str, Any]:
            nonlocal consumed
            if consumed:
                return {"type": "http.request", "body": b"", "more_body": False}
            consumed = True
            return {"type": "http.request", "body": body, "more_body": False}

        consumed = False
        request._receive = receive  # type: ignore[attr-defined]


__all__ = ["RequestAuditMiddleware", "RequestAuditRecord", "mask_mapping", "mask_value"]
