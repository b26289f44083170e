from __future__ import annotations

import logging

from fastapi import Depends, HTTPException

from runnmate.config import Settings, get_settings
from runnmate.email.sender import EmailSender
from runnmate.identity.provider import IdentityProvider
from runnmate.security.token_encryption import EncryptionKeyMissingError, TokenCipher
from runnmate.strava.client import StravaClient

logger = logging.getLogger(__name__)


def require_service_available(settings: Settings = Depends(get_settings)) -> None:
    if settings.maintenance_mode:
        raise HTTPException(status_code=503, detail="service in maintenance mode")


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return EmailSender(
        api_key=settings.resend_api_key,
        default_from=settings.email_from,
        http_timeout_seconds=settings.email_http_timeout_seconds,
    )


def get_identity_provider(settings: Settings = Depends(get_settings)) -> IdentityProvider:
    return IdentityProvider(
        base_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        anon_key=settings.supabase_anon_key,
        http_timeout_seconds=settings.identity_http_timeout_seconds,
    )


def get_strava_client(settings: Settings = Depends(get_settings)) -> StravaClient:
    return StravaClient(
        client_id=settings.strava_client_id,
        client_secret=settings.strava_client_secret,
        redirect_uri=settings.strava_redirect_uri,
        scopes=settings.strava_scopes,
        http_timeout_seconds=settings.strava_http_timeout_seconds,
    )


def get_token_cipher(settings: Settings = Depends(get_settings)) -> TokenCipher:
    try:
        return TokenCipher(settings.encryption_key)
    except EncryptionKeyMissingError as exc:
        logger.error("Token encryption unavailable: %s", exc)
        raise HTTPException(status_code=500, detail="Token encryption not configured") from exc
