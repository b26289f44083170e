from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr
from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from runnmate.db.connection import Base


class StravaVerification(Base):
    """Strava connection for one user email.

    Tokens are stored as encrypted records (``{"encrypted", "iv", "authTag"}``),
    never in plain text. ``token_version`` is bumped on every token write so
    concurrent refreshes can be detected with a conditional update.
    """

    __tablename__ = "strava_verifications"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    user_email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    strava_athlete_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    strava_athlete_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    access_token: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    refresh_token: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_distance_km: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_activities: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    disconnected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def to_schema(self) -> StravaVerificationRead:
        return StravaVerificationRead.from_orm_model(self)


class StravaVerificationRead(BaseModel):
    user_email: EmailStr
    strava_athlete_id: int
    strava_athlete_name: str
    total_distance_km: int
    total_activities: int
    is_active: bool
    verified_at: datetime
    disconnected_at: datetime | None = None

    @classmethod
    def from_orm_model(cls, row: StravaVerification) -> StravaVerificationRead:
        return cls(
            user_email=row.user_email,
            strava_athlete_id=row.strava_athlete_id,
            strava_athlete_name=row.strava_athlete_name,
            total_distance_km=row.total_distance_km,
            total_activities=row.total_activities,
            is_active=row.is_active,
            verified_at=row.verified_at,
            disconnected_at=row.disconnected_at,
        )
