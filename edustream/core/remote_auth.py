"""
Remote token verification against the auth service.

The course service does not hold the session store. It forwards the caller's
bearer token to the auth service's /me endpoint, which runs the full
verification and returns the user profile.
"""
import logging
from typing import Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials

from edustream.core.auth import bearer_scheme, bearer_token
from edustream.core.config import settings
from edustream.core.errors import Unauthenticated
from edustream.schemas import Principal

logger = logging.getLogger(__name__)


class RemoteTokenVerifier:
    """Verify bearer tokens by calling the auth service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.auth_service_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.auth_request_timeout_seconds
        self.transport = transport

    async def verify(self, token: str) -> Principal:
        """
        Resolve the caller's identity.

        Raises:
            Unauthenticated: the auth service rejected the token, was
                unreachable, timed out, or returned an unusable profile
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.base_url}/me",
                    headers={"Authorization": f"Bearer {token}"},
                )
            response.raise_for_status()
            profile = response.json()
            return Principal(
                user_id=str(profile["id"]),
                email=profile.get("email") or "",
                role=profile["role"],
                name=profile.get("name") or "",
                avatar=profile.get("avatar"),
            )
        except httpx.HTTPStatusError as exc:
            logger.info(f"Auth service rejected token: {exc.response.status_code}")
            raise Unauthenticated("Invalid token") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Auth service unreachable: {exc}")
            raise Unauthenticated("Invalid token") from exc
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Malformed profile from auth service: {exc}")
            raise Unauthenticated("Invalid token") from exc


remote_verifier = RemoteTokenVerifier()


async def get_remote_principal(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Principal:
    return await remote_verifier.verify(bearer_token(credentials))
