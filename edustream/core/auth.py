"""
Authentication dependencies.

Provides:
- get_session_principal: full verification (signature, expiry, live session).
  Used by the auth service, which owns the session store.
- get_token_principal: signature and expiry only. Used by the payment service.
- require_roles: wraps a principal dependency with a role check.

The course service verifies tokens remotely, see edustream.core.remote_auth.
"""
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from edustream.core.errors import Forbidden, Unauthenticated
from edustream.core.resources import get_session_store
from edustream.core.security import decode_access_token
from edustream.schemas import Principal
from edustream.services.session_store import SessionStore
from edustream.services.tokens import TokenService, principal_from_claims


bearer_scheme = HTTPBearer(auto_error=False)


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    """Extract the raw token or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token provided")

    if credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Invalid authentication scheme")

    return credentials.credentials


def get_token_service(sessions: SessionStore = Depends(get_session_store)) -> TokenService:
    return TokenService(sessions)


def get_session_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Principal:
    """Resolve the caller from a token that also has a live session."""
    return tokens.verify(bearer_token(credentials))


def get_token_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Principal:
    """Resolve the caller from the token alone (no session lookup)."""
    claims = decode_access_token(bearer_token(credentials))
    return principal_from_claims(claims)


def check_role(principal: Principal, *roles: str) -> Principal:
    if not principal.has_role(*roles):
        raise Forbidden("Insufficient permissions")
    return principal


def require_roles(dependency: Callable[..., Principal], *roles: str) -> Callable[..., Principal]:
    """
    Build a dependency that resolves the caller via `dependency` and requires
    one of `roles`.

    Example:
        require_admin = require_roles(get_session_principal, "admin")
    """

    def role_checker(principal: Principal = Depends(dependency)) -> Principal:
        return check_role(principal, *roles)

    return role_checker
