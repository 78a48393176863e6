"""Role lookup against the external role service."""
from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from fairdraw.services.errors import RoleServiceUnavailableError, UnauthorizedError

LOGGER = logging.getLogger(__name__)

VOTER_ROLE = "voter"
MANAGER_ROLE = "manager"
ADMIN_ROLES = frozenset({"admin", MANAGER_ROLE})

_QUALIFIER = re.compile(r"\s*\([^)]*\)")


def normalise_role(role: object) -> str:
    """``"Voter (Free)"`` becomes ``"voter"``."""
    return _QUALIFIER.sub("", str(role)).strip().lower()


def normalise_roles(roles: Iterable[object]) -> frozenset[str]:
    return frozenset(filter(None, (normalise_role(role) for role in roles)))


class DegradePolicy(str, enum.Enum):
    """What to do when the role service cannot answer."""

    DENY = "deny"
    ASSUME_VOTER = "assume_voter"


@dataclass(slots=True, frozen=True)
class RoleLookup:
    """Either the caller's normalised roles or an explicit unavailability marker."""

    roles: frozenset[str] = field(default_factory=frozenset)
    unavailable: bool = False
    reason: str | None = None

    @classmethod
    def found(cls, roles: Iterable[object]) -> "RoleLookup":
        return cls(roles=normalise_roles(roles))

    @classmethod
    def service_unavailable(cls, reason: str) -> "RoleLookup":
        return cls(unavailable=True, reason=reason)


class RoleProvider(Protocol):
    """Protocol describing a role capability provider."""

    def lookup(self, user_id: str) -> RoleLookup:
        """Return the roles held by ``user_id``."""


class HTTPRoleProvider:
    """Fetches roles from ``GET {base_url}/api/users/{user_id}/roles``."""

    def __init__(self, base_url: str, *, timeout_seconds: float, client: httpx.Client | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client or httpx.Client()
        self._owns_client = client is None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def lookup(self, user_id: str) -> RoleLookup:
        try:
            response = self._client.get(f"{self._base_url}/api/users/{user_id}/roles", timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("role service lookup failed", extra={"user_id": user_id, "error": str(exc)})
            return RoleLookup.service_unavailable(str(exc))

        roles = payload.get("roles") if isinstance(payload, Mapping) else None
        if not isinstance(roles, list):
            return RoleLookup.service_unavailable("role service returned no role list")
        return RoleLookup.found(roles)


class StaticRoleProvider:
    """In-memory provider for development and tests."""

    def __init__(self, roles: Mapping[str, Iterable[str]] | None = None, *, default: Iterable[str] = ("Voter",)) -> None:
        self._roles = {user_id: tuple(values) for user_id, values in (roles or {}).items()}
        self._default = tuple(default)
        self.available = True

    def assign(self, user_id: str, *roles: str) -> None:
        self._roles[user_id] = roles

    def lookup(self, user_id: str) -> RoleLookup:
        if not self.available:
            return RoleLookup.service_unavailable("static provider disabled")
        return RoleLookup.found(self._roles.get(user_id, self._default))


def authorize(
    lookup: RoleLookup,
    allowed: Iterable[str],
    *,
    policy: DegradePolicy,
) -> frozenset[str]:
    """Return the effective roles if any of them is in ``allowed``.

    An unavailable lookup is resolved by ``policy``: ``DENY`` raises
    :class:`RoleServiceUnavailableError`, ``ASSUME_VOTER`` continues with the
    voter role only.
    """
    if lookup.unavailable:
        if policy is DegradePolicy.DENY:
            raise RoleServiceUnavailableError("Role service unavailable")
        roles = frozenset({VOTER_ROLE})
    else:
        roles = lookup.roles

    required = normalise_roles(allowed)
    if required and not roles & required:
        raise UnauthorizedError("Insufficient permissions")
    return roles


def is_admin(roles: Iterable[str]) -> bool:
    return bool(ADMIN_ROLES & normalise_roles(roles))


def is_manager(roles: Iterable[str]) -> bool:
    return MANAGER_ROLE in normalise_roles(roles)


__all__ = [
    "ADMIN_ROLES",
    "DegradePolicy",
    "HTTPRoleProvider",
    "MANAGER_ROLE",
    "RoleLookup",
    "RoleProvider",
    "StaticRoleProvider",
    "VOTER_ROLE",
    "authorize",
    "is_admin",
    "is_manager",
    "normalise_role",
    "normalise_roles",
]
