from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from weakref import WeakValueDictionary

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.config import Settings
from runnmate.db.queries import (
    deactivate_verification,
    get_active_verification,
    update_verification_stats,
    update_verification_tokens,
    upsert_strava_verification,
)
from runnmate.email.sender import EmailSender
from runnmate.email.templates import strava_verified_email
from runnmate.models.verification import StravaVerification
from runnmate.security.oauth_state import decode_state, state_email, state_is_expired
from runnmate.security.token_encryption import TokenCipher
from runnmate.strava.client import (
    StravaApiError,
    StravaAuthError,
    StravaClient,
    athlete_display_name,
    compute_running_totals,
)

logger = logging.getLogger(__name__)

_refresh_locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()


class VerificationNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class CallbackOutcome:
    ok: bool
    error: str = ""
    distance_km: int = 0


@dataclass(frozen=True)
class FreshToken:
    access_token: str
    expires_at: datetime
    refreshed: bool


def _refresh_lock(user_email: str) -> asyncio.Lock:
    key = user_email.lower()
    lock = _refresh_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _refresh_locks[key] = lock
    return lock


def needs_refresh(expires_at: datetime, *, buffer_minutes: int, now: datetime | None = None) -> bool:
    current = now or datetime.now(UTC)
    return expires_at <= current + timedelta(minutes=buffer_minutes)


async def complete_authorization(
    *,
    session: AsyncSession,
    strava: StravaClient,
    cipher: TokenCipher,
    email_sender: EmailSender,
    settings: Settings,
    code: str | None,
    state: str | None,
    error: str | None = None,
) -> CallbackOutcome:
    """Handle the OAuth callback: exchange the code, enrich, persist, notify."""
    if error:
        return CallbackOutcome(ok=False, error=error)
    if not code:
        return CallbackOutcome(ok=False, error="missing_code")

    state_data = decode_state(state) if state else None
    if state_data is None or state_is_expired(state_data, max_age_minutes=settings.strava_state_max_age_minutes):
        return CallbackOutcome(ok=False, error="invalid_state")
    user_email = state_email(state_data)
    if user_email is None:
        return CallbackOutcome(ok=False, error="missing_email")

    try:
        grant = await strava.exchange_code(code)
    except StravaApiError:
        logger.exception("Strava token exchange failed for %s", user_email)
        return CallbackOutcome(ok=False, error="token_exchange_failed")

    try:
        athlete = grant.athlete if grant.athlete.get("id") else await strava.get_athlete(grant.access_token)
        stats = await strava.get_athlete_stats(grant.access_token, int(athlete["id"]))
    except (StravaApiError, KeyError, TypeError, ValueError):
        logger.exception("Strava enrichment failed for %s", user_email)
        return CallbackOutcome(ok=False, error="enrichment_failed")

    total_km, activity_count = compute_running_totals(stats)
    athlete_name = athlete_display_name(athlete)

    try:
        await upsert_strava_verification(
            session,
            user_email=user_email,
            athlete_id=int(athlete["id"]),
            athlete_name=athlete_name,
            access_token=cipher.encrypt_record(grant.access_token),
            refresh_token=cipher.encrypt_record(grant.refresh_token),
            token_expires_at=grant.expires_at,
            total_distance_km=total_km,
            total_activities=activity_count,
        )
        await session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to store Strava verification for %s", user_email)
        await session.rollback()
        return CallbackOutcome(ok=False, error="database_error")

    logger.info(
        "Strava verified for %s",
        user_email,
        extra={
            "event_type": "strava.verified",
            "ops_payload": {"total_distance_km": total_km, "total_activities": activity_count},
        },
    )
    sent = await email_sender.send(
        to=user_email,
        email=strava_verified_email(name=athlete_name or user_email, total_distance_km=total_km),
    )
    if not sent:
        logger.warning("Strava verification email to %s was not sent", user_email)
    return CallbackOutcome(ok=True, distance_km=total_km)


async def ensure_fresh_token(
    *,
    session: AsyncSession,
    strava: StravaClient,
    cipher: TokenCipher,
    settings: Settings,
    user_email: str,
    now: datetime | None = None,
) -> FreshToken:
    """Return a usable access token, refreshing it when it is within the expiry buffer.

    Raises VerificationNotFoundError when the user has no active connection
    and StravaAuthError when the provider rejects the refresh token, in which
    case the connection is deactivated.
    """
    async with _refresh_lock(user_email):
        verification = await get_active_verification(session, user_email)
        if verification is None:
            raise VerificationNotFoundError(user_email)

        if not needs_refresh(
            verification.token_expires_at,
            buffer_minutes=settings.strava_refresh_buffer_minutes,
            now=now,
        ):
            return FreshToken(
                access_token=cipher.decrypt_record(verification.access_token),
                expires_at=verification.token_expires_at,
                refreshed=False,
            )

        logger.info("Refreshing Strava token for %s", user_email)
        seen_version = verification.token_version
        try:
            grant = await strava.refresh(cipher.decrypt_record(verification.refresh_token))
        except StravaAuthError:
            logger.warning("Strava rejected the refresh token for %s; deactivating", user_email)
            await deactivate_verification(session, user_email)
            await session.commit()
            raise

        stored = await update_verification_tokens(
            session,
            user_email=user_email,
            expected_version=seen_version,
            access_token=cipher.encrypt_record(grant.access_token),
            refresh_token=cipher.encrypt_record(grant.refresh_token),
            token_expires_at=grant.expires_at,
        )
        if stored:
            await session.commit()
            return FreshToken(access_token=grant.access_token, expires_at=grant.expires_at, refreshed=True)

        # Another worker refreshed first; its token pair is the one to use.
        await session.rollback()
        current = await get_active_verification(session, user_email)
        if current is None:
            raise VerificationNotFoundError(user_email)
        logger.info("Concurrent Strava refresh detected for %s; using stored tokens", user_email)
        return FreshToken(
            access_token=cipher.decrypt_record(current.access_token),
            expires_at=current.token_expires_at,
            refreshed=False,
        )


async def disconnect(
    *,
    session: AsyncSession,
    strava: StravaClient,
    cipher: TokenCipher,
    user_email: str,
) -> bool:
    """Revoke upstream (best effort) and deactivate locally. False if not connected."""
    verification = await get_active_verification(session, user_email)
    if verification is None:
        return False

    try:
        await strava.deauthorize(cipher.decrypt_record(verification.access_token))
    except Exception:
        logger.warning("Failed to revoke Strava token for %s", user_email, exc_info=True)

    await deactivate_verification(session, user_email)
    await session.commit()
    logger.info("Strava disconnected for %s", user_email, extra={"event_type": "strava.disconnected"})
    return True


async def sync_stats(
    *,
    session: AsyncSession,
    strava: StravaClient,
    cipher: TokenCipher,
    settings: Settings,
    user_email: str,
) -> dict[str, Any]:
    token = await ensure_fresh_token(
        session=session, strava=strava, cipher=cipher, settings=settings, user_email=user_email
    )
    athlete = await strava.get_athlete(token.access_token)
    stats = await strava.get_athlete_stats(token.access_token, int(athlete["id"]))
    total_km, activity_count = compute_running_totals(stats)

    await update_verification_stats(
        session,
        user_email=user_email,
        total_distance_km=total_km,
        total_activities=activity_count,
    )
    await session.commit()
    return {
        "athlete": {
            "id": athlete["id"],
            "name": athlete_display_name(athlete),
            "profile_medium": athlete.get("profile_medium"),
        },
        "stats": {"totalDistanceKm": total_km, "totalActivities": activity_count},
        "token": {"refreshed": token.refreshed, "expiresAt": token.expires_at.isoformat()},
        "database": {"success": True},
    }


def verification_status(verification: StravaVerification | None) -> dict[str, Any]:
    if verification is None:
        return {"verified": False}
    read = verification.to_schema()
    return {
        "verified": True,
        "athleteName": read.strava_athlete_name,
        "totalDistanceKm": read.total_distance_km,
        "totalActivities": read.total_activities,
        "verifiedAt": read.verified_at.isoformat(),
    }
