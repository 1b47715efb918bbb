"""
Signed session tokens.

Tokens are HS256 JWTs carrying the user id, email and role. Signature and
expiry checks live here; the server-side session check lives in
edustream.services.tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from edustream.core.config import settings
from edustream.core.errors import Unauthenticated


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    ttl_seconds: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """Sign a token for the given user."""
    issued_at = now or datetime.now(timezone.utc)
    ttl = ttl_seconds if ttl_seconds is not None else settings.token_ttl_seconds
    claims = {
        "userId": str(user_id),
        "email": email,
        "role": role,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(seconds=ttl)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the claims.

    Raises:
        Unauthenticated: token is malformed, forged, expired or missing claims
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise Unauthenticated("Invalid or expired token") from exc

    if not claims.get("userId") or not claims.get("role"):
        raise Unauthenticated("Invalid token: missing required claims")
    return claims
