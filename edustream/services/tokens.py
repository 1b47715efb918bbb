"""
Token issuance and verification backed by the session store.

A token is valid when its signature and expiry check out AND a session
record exists for its user id. The record's value is not compared with the
presented token, so any unexpired token of a user with a live session passes.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from edustream.core.config import settings
from edustream.core.errors import Unauthenticated
from edustream.core.security import create_access_token, decode_access_token
from edustream.models import User
from edustream.schemas import Principal
from edustream.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    try:
        return Principal(
            user_id=str(claims["userId"]),
            email=claims.get("email") or "",
            role=claims["role"],
        )
    except (KeyError, ValidationError) as exc:
        raise Unauthenticated("Invalid token: missing required claims") from exc


class TokenService:
    """Issue, verify and revoke session tokens."""

    def __init__(self, sessions: SessionStore, ttl_seconds: Optional[int] = None):
        self.sessions = sessions
        self.ttl_seconds = ttl_seconds or settings.token_ttl_seconds

    def issue(self, user: User) -> str:
        """Sign a token for the user and store it as the user's only session."""
        token = create_access_token(
            user_id=str(user.id),
            email=user.email,
            role=user.role,
            ttl_seconds=self.ttl_seconds,
        )
        self.sessions.save(str(user.id), token, self.ttl_seconds)
        logger.info(f"Issued token for user {user.id} (role={user.role})")
        return token

    def verify(self, token: str) -> Principal:
        """
        Verify a token and require a live session for its user.

        Raises:
            Unauthenticated: bad signature, expired, or no session record
        """
        claims = decode_access_token(token)
        principal = principal_from_claims(claims)

        if not self.sessions.exists(principal.user_id):
            raise Unauthenticated("Session expired or revoked")

        return principal

    def revoke(self, user_id: str) -> None:
        self.sessions.revoke(user_id)
