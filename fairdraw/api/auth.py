"""Bearer token verification and role requirements.

Tokens are issued elsewhere; this service only verifies them and resolves
roles through the role service.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from fairdraw.api.deps import get_role_provider, to_http_exception
from fairdraw.core.config import get_settings
from fairdraw.services.errors import UnauthorizedError
from fairdraw.services.roles import DegradePolicy, RoleProvider, authorize

security_scheme = HTTPBearer(auto_error=True)


class TokenPayload(BaseModel):
    sub: str
    jti: str | None = None


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    roles: frozenset[str] = frozenset()
    token_id: str | None = None


def _decode_token(token: str) -> TokenPayload:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    try:
        return TokenPayload(**payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedUser:
    payload = _decode_token(credentials.credentials)
    request.state.actor_id = payload.sub
    return AuthenticatedUser(user_id=payload.sub, token_id=payload.jti)


def require_roles(
    *roles: str,
    policy: DegradePolicy = DegradePolicy.DENY,
) -> Callable[..., AuthenticatedUser]:
    """Dependency resolving the caller's roles and enforcing ``roles``.

    With no roles given any authenticated caller passes; the resolved roles
    are still attached to the returned user.
    """

    def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
        provider: RoleProvider = Depends(get_role_provider),
    ) -> AuthenticatedUser:
        try:
            effective = authorize(provider.lookup(user.user_id), roles, policy=policy)
        except UnauthorizedError as exc:
            raise to_http_exception(exc) from exc
        return AuthenticatedUser(user_id=user.user_id, roles=effective, token_id=user.token_id)

    return dependency


__all__ = ["AuthenticatedUser", "TokenPayload", "get_current_user", "require_roles", "security_scheme"]
