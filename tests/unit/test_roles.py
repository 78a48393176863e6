from __future__ import annotations

import httpx
import pytest

from fairdraw.services.errors import RoleServiceUnavailableError, UnauthorizedError
from fairdraw.services.roles import (
    DegradePolicy,
    HTTPRoleProvider,
    RoleLookup,
    StaticRoleProvider,
    authorize,
    is_admin,
    is_manager,
    normalise_role,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Voter (Free)", "voter"), ("  ADMIN ", "admin"), ("Manager (Regional) ", "manager")],
)
def test_normalise_role_strips_qualifiers(raw: str, expected: str) -> None:
    assert normalise_role(raw) == expected


def test_http_provider_reads_role_list() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/users/u-1/roles"
        return httpx.Response(200, json={"roles": ["Admin", "Voter (Premium)"]})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = HTTPRoleProvider("http://roles/", timeout_seconds=1.0, client=client)

    lookup = provider.lookup("u-1")

    assert not lookup.unavailable
    assert lookup.roles == frozenset({"admin", "voter"})


@pytest.mark.parametrize(
    "response",
    [httpx.Response(500, json={}), httpx.Response(200, json={"roles": "admin"}), httpx.Response(200, text="oops")],
)
def test_http_provider_flags_unusable_answers(response: httpx.Response) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: response))
    provider = HTTPRoleProvider("http://roles", timeout_seconds=1.0, client=client)

    assert provider.lookup("u-1").unavailable


def test_http_provider_flags_connection_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    lookup = HTTPRoleProvider("http://roles", timeout_seconds=1.0, client=client).lookup("u-1")

    assert lookup.unavailable
    assert "refused" in (lookup.reason or "")


def test_authorize_enforces_allowed_roles() -> None:
    lookup = RoleLookup.found(["Voter"])
    assert authorize(lookup, [], policy=DegradePolicy.DENY) == frozenset({"voter"})
    with pytest.raises(UnauthorizedError):
        authorize(lookup, ["admin", "manager"], policy=DegradePolicy.DENY)


def test_unavailable_service_follows_policy() -> None:
    lookup = RoleLookup.service_unavailable("timeout")

    with pytest.raises(RoleServiceUnavailableError):
        authorize(lookup, [], policy=DegradePolicy.DENY)
    assert authorize(lookup, [], policy=DegradePolicy.ASSUME_VOTER) == frozenset({"voter"})
    with pytest.raises(UnauthorizedError):
        authorize(lookup, ["admin"], policy=DegradePolicy.ASSUME_VOTER)


def test_static_provider_and_role_helpers() -> None:
    provider = StaticRoleProvider({"boss": ["Manager"]})
    assert provider.lookup("boss").roles == frozenset({"manager"})
    assert provider.lookup("anyone").roles == frozenset({"voter"})

    provider.available = False
    assert provider.lookup("boss").unavailable

    assert is_admin({"Manager"})
    assert is_admin({"admin"})
    assert not is_admin({"voter"})
    assert is_manager({"Manager (HQ)"})
    assert not is_manager({"admin"})
