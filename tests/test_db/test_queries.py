from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.db.queries import (
    deactivate_verification,
    get_active_verification,
    update_verification_tokens,
    upsert_launch_notification,
    upsert_strava_verification,
)
from runnmate.models.launch import LaunchNotification

RECORD = {"encrypted": "e", "iv": "i", "authTag": "t"}
EXPIRES_AT = datetime(2026, 5, 1, 18, 0, tzinfo=UTC)


def _compiled(statement: object) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))  # type: ignore[attr-defined]


class TestStatementShape:
    async def test_launch_signup_is_upsert_on_email(self) -> None:
        session = AsyncMock()
        session.scalars.return_value = MagicMock()
        await upsert_launch_notification(session, email="a@example.com", lottery_consent=True, shoe_interest=None)

        sql = _compiled(session.scalars.call_args[0][0])
        assert "INSERT INTO launch_notifications" in sql
        assert "ON CONFLICT (email) DO UPDATE" in sql

    async def test_verification_is_upsert_on_user_email(self) -> None:
        session = AsyncMock()
        session.scalars.return_value = MagicMock()
        await upsert_strava_verification(
            session,
            user_email="runner@example.com",
            athlete_id=42,
            athlete_name="Ann Runner",
            access_token=RECORD,
            refresh_token=RECORD,
            token_expires_at=EXPIRES_AT,
            total_distance_km=62,
            total_activities=13,
        )

        sql = _compiled(session.scalars.call_args[0][0])
        assert "ON CONFLICT (user_email) DO UPDATE" in sql
        assert "strava_verifications.token_version +" in sql

    async def test_token_update_is_conditional_on_version(self) -> None:
        session = AsyncMock()
        session.execute.return_value = MagicMock(rowcount=0)
        stored = await update_verification_tokens(
            session,
            user_email="runner@example.com",
            expected_version=2,
            access_token=RECORD,
            refresh_token=RECORD,
            token_expires_at=EXPIRES_AT,
        )

        assert stored is False
        sql = _compiled(session.execute.call_args[0][0])
        assert "strava_verifications.token_version =" in sql.split("WHERE", 1)[1]


class TestLaunchNotificationPersistence:
    async def test_repeat_signup_keeps_one_row_with_latest_values(self, db_session: AsyncSession) -> None:
        await upsert_launch_notification(
            db_session, email="a@example.com", lottery_consent=False, shoe_interest="road"
        )
        await db_session.commit()
        await upsert_launch_notification(
            db_session, email="a@example.com", lottery_consent=True, shoe_interest="trail"
        )
        await db_session.commit()

        count = await db_session.scalar(select(func.count()).select_from(LaunchNotification))
        row = await db_session.scalar(select(LaunchNotification).where(LaunchNotification.email == "a@example.com"))
        assert count == 1
        assert row is not None
        assert row.lottery_consent is True
        assert row.shoe_interest == "trail"


class TestVerificationPersistence:
    async def _upsert(self, session: AsyncSession, distance: int) -> None:
        await upsert_strava_verification(
            session,
            user_email="runner@example.com",
            athlete_id=42,
            athlete_name="Ann Runner",
            access_token=RECORD,
            refresh_token=RECORD,
            token_expires_at=EXPIRES_AT,
            total_distance_km=distance,
            total_activities=13,
        )
        await session.commit()

    async def test_reauthorization_replaces_row_and_bumps_version(self, db_session: AsyncSession) -> None:
        await self._upsert(db_session, 50)
        await self._upsert(db_session, 62)

        row = await get_active_verification(db_session, "runner@example.com")
        assert row is not None
        assert row.total_distance_km == 62
        assert row.token_version == 1

    async def test_stale_version_does_not_overwrite(self, db_session: AsyncSession) -> None:
        await self._upsert(db_session, 62)
        new_expiry = EXPIRES_AT + timedelta(hours=6)

        first = await update_verification_tokens(
            db_session,
            user_email="runner@example.com",
            expected_version=0,
            access_token=RECORD,
            refresh_token=RECORD,
            token_expires_at=new_expiry,
        )
        second = await update_verification_tokens(
            db_session,
            user_email="runner@example.com",
            expected_version=0,
            access_token=RECORD,
            refresh_token=RECORD,
            token_expires_at=new_expiry,
        )
        assert first is True
        assert second is False

    async def test_deactivated_verification_is_not_active(self, db_session: AsyncSession) -> None:
        await self._upsert(db_session, 62)
        await deactivate_verification(db_session, "runner@example.com")
        await db_session.commit()

        assert await get_active_verification(db_session, "runner@example.com") is None
