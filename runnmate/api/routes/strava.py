from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.api.deps import get_email_sender, get_strava_client, get_token_cipher
from runnmate.api.routes.auth import STRAVA_LOGIN_REQUIRED
from runnmate.config import Settings, get_settings
from runnmate.db.connection import get_db
from runnmate.db.queries import get_active_verification
from runnmate.email.sender import EmailSender
from runnmate.handlers.strava import (
    VerificationNotFoundError,
    complete_authorization,
    disconnect,
    ensure_fresh_token,
    sync_stats,
    verification_status,
)
from runnmate.security.oauth_state import encode_state
from runnmate.security.token_encryption import TokenCipher, TokenDecryptionError
from runnmate.strava.client import StravaApiError, StravaAuthError, StravaClient

logger = logging.getLogger(__name__)

router = APIRouter()


class StravaUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_email: str | None = Field(default=None, alias="userEmail")


def _require_email(value: str | None) -> str:
    if not value or not value.strip():
        raise HTTPException(status_code=400, detail="User email required")
    return value.strip()


@router.get("/auth")
async def authorize(
    user_email: str | None = None,
    settings: Settings = Depends(get_settings),
    strava: StravaClient = Depends(get_strava_client),
) -> RedirectResponse:
    if not strava.configured:
        raise HTTPException(status_code=500, detail="Strava OAuth not configured")
    if not user_email:
        return RedirectResponse(
            settings.site_url(f"/login?{urlencode({'message': STRAVA_LOGIN_REQUIRED})}"),
            status_code=302,
        )
    return RedirectResponse(strava.authorization_url(encode_state(user_email)), status_code=307)


@router.get("/callback")
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    strava: StravaClient = Depends(get_strava_client),
    cipher: TokenCipher = Depends(get_token_cipher),
    email_sender: EmailSender = Depends(get_email_sender),
) -> RedirectResponse:
    outcome = await complete_authorization(
        session=session,
        strava=strava,
        cipher=cipher,
        email_sender=email_sender,
        settings=settings,
        code=code,
        state=state,
        error=error,
    )
    if outcome.ok:
        query = urlencode({"strava_success": "true", "distance": outcome.distance_km})
    else:
        query = urlencode({"strava_error": outcome.error})
    return RedirectResponse(settings.site_url(f"/profile?{query}"), status_code=302)


@router.get("/status")
async def status(
    user_email: str | None = None,
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    email = _require_email(user_email)
    verification = await get_active_verification(session, email)
    return verification_status(verification)


@router.post("/refresh", response_model=None)
async def refresh_token(
    payload: StravaUserRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    strava: StravaClient = Depends(get_strava_client),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> dict[str, Any] | JSONResponse:
    email = _require_email(payload.user_email)
    try:
        token = await ensure_fresh_token(
            session=session, strava=strava, cipher=cipher, settings=settings, user_email=email
        )
    except VerificationNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Strava verification not found") from exc
    except StravaAuthError as exc:
        return JSONResponse(
            status_code=400,
            content={"error": "Token refresh failed", "details": exc.details or str(exc)},
        )
    except (StravaApiError, TokenDecryptionError, SQLAlchemyError) as exc:
        logger.exception("Strava token refresh failed for %s", email)
        raise HTTPException(status_code=500, detail="Failed to refresh token") from exc

    expires_at = token.expires_at.isoformat()
    if not token.refreshed:
        return {"message": "Token still valid", "expiresAt": expires_at}
    return {"success": True, "message": "Token refreshed successfully", "expiresAt": expires_at}


@router.post("/disconnect")
async def disconnect_strava(
    payload: StravaUserRequest,
    session: AsyncSession = Depends(get_db),
    strava: StravaClient = Depends(get_strava_client),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> dict[str, bool | str]:
    email = _require_email(payload.user_email)
    try:
        found = await disconnect(session=session, strava=strava, cipher=cipher, user_email=email)
    except SQLAlchemyError as exc:
        logger.exception("Failed to disconnect Strava for %s", email)
        await session.rollback()
        raise HTTPException(status_code=500, detail="Failed to disconnect Strava") from exc
    if not found:
        raise HTTPException(status_code=404, detail="Strava verification not found")
    return {"success": True, "message": "Strava disconnected successfully"}


@router.post("/test", response_model=None)
async def test_connection(
    payload: StravaUserRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    strava: StravaClient = Depends(get_strava_client),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> dict[str, Any] | JSONResponse:
    email = _require_email(payload.user_email)
    try:
        result = await sync_stats(session=session, strava=strava, cipher=cipher, settings=settings, user_email=email)
    except VerificationNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Strava verification not found") from exc
    except StravaApiError as exc:
        logger.exception("Strava API test failed for %s", email)
        return JSONResponse(
            status_code=500,
            content={"error": "Strava API test failed", "details": exc.details or str(exc)},
        )
    except (TokenDecryptionError, SQLAlchemyError, KeyError) as exc:
        logger.exception("Strava API test failed for %s", email)
        raise HTTPException(status_code=500, detail="Strava API test failed") from exc
    return {"success": True, **result}
