"""
Authentication endpoints (auth service).

Endpoints:
- GET /google - Redirect to Google's consent screen
- GET /google/callback - Complete login and redirect to the frontend with a token
- GET /me - Current user
- POST /logout - Revoke the caller's session
- POST /refresh - Re-issue a token for the caller
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from edustream.core.auth import get_session_principal, get_token_service
from edustream.core.config import settings
from edustream.core.errors import LinkConflict
from edustream.db.base import get_db
from edustream.schemas import MessageResponse, Principal, TokenResponse, UserOut
from edustream.services.accounts import account_service
from edustream.services.identity import google_oauth
from edustream.services.tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter()


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/google")
async def google_login():
    """Start the OAuth flow."""
    return _redirect(google_oauth.authorization_url())


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Finish the OAuth flow.

    Success redirects to {FRONTEND_URL}/auth/success?token=...; any failure
    redirects to {FRONTEND_URL}/auth/error (reason=link_conflict when the
    Google identity could not be linked to the existing account).
    """
    error_url = f"{settings.frontend_url}/auth/error"
    if not code:
        return _redirect(error_url)

    try:
        profile = await google_oauth.exchange_code(code)
        user = account_service.login_with_provider(profile, db)
        token = tokens.issue(user)
    except LinkConflict:
        return _redirect(f"{error_url}?{urlencode({'reason': 'link_conflict'})}")
    except Exception as e:  # noqa: BLE001
        logger.error(f"Auth callback error: {e}", exc_info=True)
        return _redirect(error_url)

    return _redirect(f"{settings.frontend_url}/auth/success?{urlencode({'token': token})}")


@router.get("/me", response_model=UserOut)
async def get_me(
    principal: Principal = Depends(get_session_principal),
    db: Session = Depends(get_db),
):
    """Get current user."""
    return account_service.get_user(principal.user_id, db)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    principal: Principal = Depends(get_session_principal),
    tokens: TokenService = Depends(get_token_service),
):
    tokens.revoke(principal.user_id)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    principal: Principal = Depends(get_session_principal),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
):
    """Issue a fresh token carrying the user's current role. Replaces the stored session."""
    user = account_service.get_user(principal.user_id, db)
    return TokenResponse(token=tokens.issue(user))
