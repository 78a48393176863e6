"""Append-only, hash-chained audit log.

Each event stores ``hash = SHA256(canonical(type, data, timestamp) + previous_hash)``
where ``previous_hash`` is the hash of the event before it in the global chain
(``None`` for the genesis event). Editing any stored event afterwards breaks
verification from that event onwards.
"""
from __future__ import annotations

import csv
import enum
import hashlib
import io
import json
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fairdraw.models import AuditEvent
from fairdraw.obs import AUDIT_CHAIN_APPEND_COUNTER, AUDIT_CHAIN_BREAKS_GAUGE
from fairdraw.services.errors import LotteryValidationError, TransientInfraError

LOGGER = logging.getLogger(__name__)

ExportFormat = Literal["json", "csv"]

CSV_HEADERS = ["Event ID", "Sequence", "Type", "Actor", "Role", "Election", "Timestamp", "Hash", "Previous Hash"]

# Arbitrary constant shared by every writer of the chain.
CHAIN_LOCK_KEY = 0x6661697264726177


@dataclass(slots=True, frozen=True)
class RequestContext:
    """Client details recorded with an audit event."""

    ip_address: str | None = None
    user_agent: str | None = None


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def normalise_payload(payload: Any) -> Any:
    """Reduce ``payload`` to plain JSON types so stored and hashed data agree."""
    return json.loads(json.dumps(payload, default=_json_default))


def canonical_timestamp(value: datetime) -> str:
    """ISO-8601 UTC text with microseconds; naive values are read as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def canonicalize(event_type: str, data: Any, timestamp: str) -> str:
    return json.dumps(
        {"type": event_type, "data": data, "timestamp": timestamp},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_event_hash(event_type: str, data: Any, timestamp: str, previous_hash: str | None) -> str:
    material = canonicalize(event_type, data, timestamp) + (previous_hash or "")
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class BrokenLink:
    index: int
    event_id: str
    reason: Literal["previous_hash_mismatch", "hash_mismatch"]
    expected: str | None
    actual: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "event_id": self.event_id,
            "reason": self.reason,
            "expected": self.expected,
            "actual": self.actual,
        }


@dataclass(slots=True)
class IntegrityReport:
    """Outcome of replaying the chain.

    ``compromised_indices`` lists every event from the first break onwards,
    since none of them can be trusted once an earlier link is broken.
    """

    valid: bool
    total_events: int
    broken_chains: list[BrokenLink] = field(default_factory=list)
    compromised_indices: list[int] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.total_events == 0:
            return "No audit events found"
        if self.valid:
            return "Audit trail integrity verified"
        return "Audit trail has been tampered with"

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "total_events": self.total_events,
            "broken_chains": [link.to_dict() for link in self.broken_chains],
            "compromised_indices": list(self.compromised_indices),
            "message": self.message,
        }


def verify_events(events: Sequence[AuditEvent]) -> IntegrityReport:
    """Check linkage and recompute every hash of an ordered chain."""
    broken: list[BrokenLink] = []
    previous_hash: str | None = None
    for index, event in enumerate(events):
        if event.previous_hash != previous_hash:
            broken.append(
                BrokenLink(
                    index=index,
                    event_id=event.id,
                    reason="previous_hash_mismatch",
                    expected=previous_hash,
                    actual=event.previous_hash,
                )
            )
        expected_hash = compute_event_hash(
            event.event_type,
            event.event_data,
            canonical_timestamp(event.occurred_at),
            event.previous_hash,
        )
        if expected_hash != event.hash:
            broken.append(
                BrokenLink(
                    index=index,
                    event_id=event.id,
                    reason="hash_mismatch",
                    expected=expected_hash,
                    actual=event.hash,
                )
            )
        previous_hash = event.hash

    compromised: list[int] = []
    if broken:
        first = min(link.index for link in broken)
        compromised = list(range(first, len(events)))
    return IntegrityReport(
        valid=not broken,
        total_events=len(events),
        broken_chains=broken,
        compromised_indices=compromised,
    )


@dataclass(slots=True)
class AuditPage:
    events: list[AuditEvent]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(slots=True)
class AuditExport:
    format: ExportFormat
    content: str
    media_type: str


def event_to_dict(event: AuditEvent) -> dict[str, Any]:
    return {
        "event_id": event.id,
        "sequence": event.sequence,
        "event_type": event.event_type,
        "actor_id": event.actor_id,
        "actor_role": event.actor_role,
        "election_id": event.election_id,
        "event_data": event.event_data,
        "ip_address": event.ip_address,
        "user_agent": event.user_agent,
        "timestamp": canonical_timestamp(event.occurred_at),
        "hash": event.hash,
        "previous_hash": event.previous_hash,
    }


class HashChainLedger:
    """Single entry point for writing to and reading from the global audit chain.

    On PostgreSQL ``append`` takes a transaction-scoped advisory lock before
    reading the chain head, so concurrent writers queue behind each other and
    each sees the head committed by the one before it. Other backends fall
    back to ``SELECT ... FOR UPDATE`` on the head row. If a writer still loses
    the unique ``sequence`` race, the append raises :class:`TransientInfraError`
    and the caller's transaction has to be rolled back and retried. It never
    commits; the caller's transaction decides whether the event persists.
    """

    def __init__(self, session: Session, *, clock: Callable[[], datetime] | None = None) -> None:
        self._session = session
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _lock_chain(self) -> None:
        if self._session.get_bind().dialect.name == "postgresql":
            self._session.execute(select(func.pg_advisory_xact_lock(CHAIN_LOCK_KEY)))

    def _head(self) -> AuditEvent | None:
        statement = (
            select(AuditEvent).order_by(AuditEvent.sequence.desc()).limit(1).with_for_update()
        )
        return self._session.scalars(statement).first()

    def append(
        self,
        event_type: str,
        payload: Any,
        *,
        actor_id: str | None = None,
        actor_role: str | None = None,
        election_id: int | None = None,
        context: RequestContext | None = None,
    ) -> AuditEvent:
        # Flush the caller's rows before taking the chain lock.
        self._session.flush()
        self._lock_chain()
        head = self._head()
        previous_hash = head.hash if head is not None else None
        sequence = head.sequence + 1 if head is not None else 1

        occurred_at = self._clock()
        data = normalise_payload(payload)
        event_hash = compute_event_hash(event_type, data, canonical_timestamp(occurred_at), previous_hash)

        event = AuditEvent(
            sequence=sequence,
            event_type=event_type,
            actor_id=actor_id,
            actor_role=actor_role,
            election_id=election_id,
            event_data=data,
            ip_address=context.ip_address if context else None,
            user_agent=context.user_agent if context else None,
            hash=event_hash,
            previous_hash=previous_hash,
            occurred_at=occurred_at,
        )
        self._session.add(event)
        try:
            self._session.flush()
        except IntegrityError as exc:
            LOGGER.warning(
                "audit chain append lost a concurrent write",
                extra={"event_type": event_type, "sequence": sequence},
            )
            raise TransientInfraError("Audit chain head moved during append; retry the operation") from exc
        AUDIT_CHAIN_APPEND_COUNTER.labels(event_type=event_type).inc()
        return event

    def chain(self) -> list[AuditEvent]:
        return list(self._session.scalars(select(AuditEvent).order_by(AuditEvent.sequence.asc())))

    def audit_trail(
        self,
        *,
        election_id: int | None = None,
        actor_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> AuditPage:
        if page < 1 or limit < 1:
            raise LotteryValidationError("page and limit must be positive")
        statement = select(AuditEvent)
        count_statement = select(func.count()).select_from(AuditEvent)
        if election_id is not None:
            statement = statement.where(AuditEvent.election_id == election_id)
            count_statement = count_statement.where(AuditEvent.election_id == election_id)
        if actor_id is not None:
            statement = statement.where(AuditEvent.actor_id == actor_id)
            count_statement = count_statement.where(AuditEvent.actor_id == actor_id)

        statement = statement.order_by(AuditEvent.sequence.desc()).offset((page - 1) * limit).limit(limit)
        events = list(self._session.scalars(statement))
        total = int(self._session.scalar(count_statement) or 0)
        return AuditPage(events=events, total=total, page=page, limit=limit)

    def verify_integrity(self, election_id: int | None = None) -> IntegrityReport:
        """Verify the global chain, optionally reporting only one election's events.

        Linkage is always checked against the real predecessor in the global
        chain, so filtering never produces false breaks.
        """
        events = self.chain()
        report = verify_events(events)
        AUDIT_CHAIN_BREAKS_GAUGE.set(len(report.broken_chains))
        if not report.valid:
            LOGGER.warning(
                "audit chain integrity check failed",
                extra={
                    "broken_links": len(report.broken_chains),
                    "first_compromised_index": report.compromised_indices[0],
                },
            )
        if election_id is None:
            return report

        in_scope = [index for index, event in enumerate(events) if event.election_id == election_id]
        scoped = set(in_scope)
        positions = {index: position for position, index in enumerate(in_scope)}
        broken = [
            BrokenLink(
                index=positions[link.index],
                event_id=link.event_id,
                reason=link.reason,
                expected=link.expected,
                actual=link.actual,
            )
            for link in report.broken_chains
            if link.index in scoped
        ]
        compromised = [positions[index] for index in report.compromised_indices if index in scoped]
        return IntegrityReport(
            valid=not compromised,
            total_events=len(in_scope),
            broken_chains=broken,
            compromised_indices=compromised,
        )

    def export(self, election_id: int, fmt: ExportFormat = "json") -> AuditExport:
        statement = (
            select(AuditEvent)
            .where(AuditEvent.election_id == election_id)
            .order_by(AuditEvent.sequence.asc())
        )
        events = list(self._session.scalars(statement))
        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer)
            writer.writerow(CSV_HEADERS)
            for event in events:
                writer.writerow(
                    [
                        event.id,
                        event.sequence,
                        event.event_type,
                        event.actor_id or "",
                        event.actor_role or "",
                        event.election_id,
                        canonical_timestamp(event.occurred_at),
                        event.hash,
                        event.previous_hash or "",
                    ]
                )
            return AuditExport(format="csv", content=buffer.getvalue(), media_type="text/csv")
        if fmt == "json":
            content = json.dumps({"election_id": election_id, "events": [event_to_dict(e) for e in events]})
            return AuditExport(format="json", content=content, media_type="application/json")
        raise LotteryValidationError(f"Unsupported export format: {fmt}")


__all__ = [
    "AuditExport",
    "AuditPage",
    "BrokenLink",
    "CSV_HEADERS",
    "HashChainLedger",
    "IntegrityReport",
    "RequestContext",
    "canonical_timestamp",
    "canonicalize",
    "compute_event_hash",
    "event_to_dict",
    "normalise_payload",
    "verify_events",
]
