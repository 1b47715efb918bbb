"""
Google OAuth 2.0 client (authorization code flow).

Only the pieces the auth service needs: building the consent-screen URL and
exchanging a callback code for the user's profile.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from edustream.core.config import settings
from edustream.core.errors import UpstreamFailure
from edustream.schemas import ProviderProfile

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class GoogleOAuthClient:
    """Talks to Google's OAuth endpoints over httpx."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = client_secret if client_secret is not None else settings.google_client_secret
        self.redirect_uri = redirect_uri if redirect_uri is not None else settings.google_redirect_uri
        self.timeout = timeout if timeout is not None else settings.google_request_timeout_seconds
        self.transport = transport

    def authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ProviderProfile:
        """
        Exchange an authorization code for the user's profile.

        Raises:
            UpstreamFailure: Google rejected the code or returned no usable profile
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_response.raise_for_status()
                access_token = token_response.json()["access_token"]

                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                userinfo_response.raise_for_status()
                info = userinfo_response.json()
        except httpx.HTTPError as exc:
            logger.error(f"Google code exchange failed: {exc}")
            raise UpstreamFailure("Identity provider error") from exc
        except (KeyError, ValueError) as exc:
            logger.error(f"Unexpected response from Google: {exc}")
            raise UpstreamFailure("Identity provider error") from exc

        if not info.get("sub") or not info.get("email"):
            raise UpstreamFailure("Identity provider returned an incomplete profile")

        return ProviderProfile(
            provider_id=info["sub"],
            email=info["email"],
            name=info.get("name") or "",
            avatar=info.get("picture"),
        )


google_oauth = GoogleOAuthClient()
