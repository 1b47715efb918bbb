"""
Server-side session records kept in redis.

One slot per user: saving a new token overwrites the previous one, so a new
login on another device invalidates nothing but replaces the stored token.
"""
import logging
from typing import Optional

from redis import Redis

logger = logging.getLogger(__name__)


class SessionStore:
    """Maps user id -> active token with a TTL."""

    key_prefix = "session:"

    def __init__(self, client: Redis):
        self.client = client

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    def save(self, user_id: str, token: str, ttl_seconds: int) -> None:
        self.client.setex(self._key(user_id), ttl_seconds, token)

    def get(self, user_id: str) -> Optional[str]:
        value = self.client.get(self._key(user_id))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def exists(self, user_id: str) -> bool:
        return bool(self.client.exists(self._key(user_id)))

    def revoke(self, user_id: str) -> None:
        self.client.delete(self._key(user_id))
        logger.info(f"Session revoked for user {user_id}")
