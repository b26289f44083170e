from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from runnmate.api.deps import get_email_sender, get_identity_provider
from runnmate.config import Settings, get_settings
from runnmate.email.sender import EmailSender
from runnmate.handlers.identity import issue_magic_link, verify_magic_link
from runnmate.identity.magic_link import safe_return_path
from runnmate.identity.provider import IdentityProvider

router = APIRouter()
callback_router = APIRouter()

STRAVA_LOGIN_REQUIRED = "strava_verification_requires_login"
# Read by the web front end's server, not by this API; Strava routes take the
# user email from the request.
ACCESS_TOKEN_COOKIE = "runnmate_access_token"
REFRESH_TOKEN_COOKIE = "runnmate_refresh_token"
REFRESH_TOKEN_MAX_AGE_SECONDS = 60 * 60 * 24 * 30


class MagicLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    redirect_to: str | None = Field(default=None, alias="redirectTo")
    language: str | None = None


@router.post("/generate-magic-link")
async def generate_magic_link(
    payload: MagicLinkRequest,
    settings: Settings = Depends(get_settings),
    identity: IdentityProvider = Depends(get_identity_provider),
    email_sender: EmailSender = Depends(get_email_sender),
) -> dict[str, bool | str]:
    if not payload.email or not payload.redirect_to:
        raise HTTPException(status_code=400, detail="Email and redirect URL are required")

    ok, message = await issue_magic_link(
        identity=identity,
        email_sender=email_sender,
        settings=settings,
        email=payload.email.strip(),
        redirect_to=payload.redirect_to,
        language=payload.language,
    )
    if not ok:
        raise HTTPException(status_code=500, detail=message)
    return {"success": True, "message": message}


@callback_router.get("/callback")
async def magic_link_callback(
    token_hash: str | None = None,
    otp_type: str | None = Query(default=None, alias="type"),
    return_to: str | None = Query(default=None, alias="returnTo"),
    message: str | None = None,
    settings: Settings = Depends(get_settings),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> RedirectResponse:
    session, status = await verify_magic_link(identity=identity, token_hash=token_hash, otp_type=otp_type)
    if session is None:
        return RedirectResponse(settings.site_url(f"/login?{urlencode({'error': status})}"), status_code=302)

    if message == STRAVA_LOGIN_REQUIRED:
        target = f"/api/strava/auth?{urlencode({'user_email': session.email})}"
    else:
        target = safe_return_path(return_to)

    response = RedirectResponse(settings.site_url(target), status_code=302)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    if session.refresh_token:
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            session.refresh_token,
            max_age=REFRESH_TOKEN_MAX_AGE_SECONDS,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite="lax",
        )
    return response
