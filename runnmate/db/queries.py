from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.models.launch import LaunchNotification
from runnmate.models.listing import Listing, Offer, OfferCreate, OfferStatus
from runnmate.models.verification import StravaVerification


async def get_active_verification(session: AsyncSession, email: str) -> StravaVerification | None:
    result = await session.execute(
        select(StravaVerification).where(
            StravaVerification.user_email == email,
            StravaVerification.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def upsert_strava_verification(
    session: AsyncSession,
    *,
    user_email: str,
    athlete_id: int,
    athlete_name: str,
    access_token: dict[str, Any],
    refresh_token: dict[str, Any],
    token_expires_at: datetime,
    total_distance_km: int,
    total_activities: int,
) -> StravaVerification:
    """Insert or overwrite the verification for ``user_email`` and mark it active.

    A second completed authorization replaces the first one; there is never
    more than one row per email.
    """
    now = datetime.now(UTC)
    values: dict[str, Any] = {
        "strava_athlete_id": athlete_id,
        "strava_athlete_name": athlete_name,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_expires_at": token_expires_at,
        "total_distance_km": total_distance_km,
        "total_activities": total_activities,
        "is_active": True,
        "verified_at": now,
        "disconnected_at": None,
        "updated_at": now,
    }
    stmt = (
        pg_insert(StravaVerification)
        .values(user_email=user_email, token_version=0, created_at=now, **values)
        .on_conflict_do_update(
            index_elements=[StravaVerification.user_email],
            set_={**values, "token_version": StravaVerification.token_version + 1},
        )
        .returning(StravaVerification)
    )
    result = await session.scalars(stmt, execution_options={"populate_existing": True})
    return result.one()


async def update_verification_tokens(
    session: AsyncSession,
    *,
    user_email: str,
    expected_version: int,
    access_token: dict[str, Any],
    refresh_token: dict[str, Any],
    token_expires_at: datetime,
) -> bool:
    """Store a refreshed token pair only if nobody else wrote tokens since ``expected_version``."""
    result = await session.execute(
        update(StravaVerification)
        .where(
            StravaVerification.user_email == user_email,
            StravaVerification.token_version == expected_version,
        )
        .values(
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=token_expires_at,
            token_version=StravaVerification.token_version + 1,
            updated_at=datetime.now(UTC),
        )
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


async def update_verification_stats(
    session: AsyncSession,
    *,
    user_email: str,
    total_distance_km: int,
    total_activities: int,
) -> None:
    await session.execute(
        update(StravaVerification)
        .where(StravaVerification.user_email == user_email)
        .values(
            total_distance_km=total_distance_km,
            total_activities=total_activities,
            updated_at=datetime.now(UTC),
        )
        .execution_options(synchronize_session=False)
    )


async def deactivate_verification(session: AsyncSession, user_email: str) -> None:
    now = datetime.now(UTC)
    await session.execute(
        update(StravaVerification)
        .where(StravaVerification.user_email == user_email)
        .values(is_active=False, disconnected_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )


async def upsert_launch_notification(
    session: AsyncSession,
    *,
    email: str,
    lottery_consent: bool,
    shoe_interest: str | None,
) -> LaunchNotification:
    values: dict[str, Any] = {
        "lottery_consent": lottery_consent,
        "shoe_interest": shoe_interest,
        "signed_up_at": datetime.now(UTC),
        "is_active": True,
    }
    stmt = (
        pg_insert(LaunchNotification)
        .values(email=email, **values)
        .on_conflict_do_update(index_elements=[LaunchNotification.email], set_=values)
        .returning(LaunchNotification)
    )
    result = await session.scalars(stmt, execution_options={"populate_existing": True})
    return result.one()


async def get_listing(session: AsyncSession, listing_id: UUID) -> Listing | None:
    return await session.get(Listing, listing_id)


async def create_offer(session: AsyncSession, data: OfferCreate) -> Offer:
    offer = Offer(
        listing_id=data.listing_id,
        buyer_email=data.buyer_email,
        buyer_name=data.buyer_name,
        offer_price=data.offer_price,
        message=data.message,
        status=OfferStatus.PENDING.value,
    )
    session.add(offer)
    await session.flush()
    await session.refresh(offer)
    return offer
