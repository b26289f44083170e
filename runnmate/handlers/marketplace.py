from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.config import Settings
from runnmate.db.queries import create_offer, get_listing, upsert_launch_notification
from runnmate.email.sender import EmailSender
from runnmate.email.templates import contact_relay_email, offer_notification_email
from runnmate.models.launch import LaunchNotification
from runnmate.models.listing import Offer, OfferCreate

logger = logging.getLogger(__name__)


async def relay_contact_message(
    *,
    email_sender: EmailSender,
    settings: Settings,
    name: str,
    email: str,
    subject: str,
    message: str,
) -> bool:
    rendered = contact_relay_email(
        name=name,
        email=email,
        subject=subject,
        message=message,
        sent_at=datetime.now(UTC),
    )
    return await email_sender.send(to=settings.admin_email, email=rendered, reply_to=email)


async def signup_for_launch(
    *,
    session: AsyncSession,
    email: str,
    lottery_consent: bool,
    shoe_interest: str | None,
) -> LaunchNotification:
    signup = await upsert_launch_notification(
        session,
        email=email,
        lottery_consent=lottery_consent,
        shoe_interest=shoe_interest or None,
    )
    await session.commit()
    logger.info(
        "Launch signup stored",
        extra={"event_type": "launch.signup", "ops_payload": {"lottery_consent": lottery_consent}},
    )
    return signup


async def record_offer(
    *,
    session: AsyncSession,
    listing_id: UUID,
    buyer_email: str,
    buyer_name: str,
    offer_price: float,
    message: str | None,
) -> Offer | None:
    """Persist a pending offer when the listing exists; None otherwise."""
    listing = await get_listing(session, listing_id)
    if listing is None:
        logger.warning("Offer for unknown listing %s not recorded", listing_id)
        return None
    offer = await create_offer(
        session,
        OfferCreate(
            listing_id=listing_id,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            offer_price=offer_price,
            message=message or None,
        ),
    )
    await session.commit()
    return offer


async def notify_seller_of_offer(
    *,
    email_sender: EmailSender,
    settings: Settings,
    seller_email: str,
    listing_title: str,
    listing_price: float,
    listing_size: float,
    offer_price: float,
    buyer_name: str,
    buyer_email: str,
    message: str,
) -> bool:
    rendered = offer_notification_email(
        listing_title=listing_title,
        listing_price=listing_price,
        listing_size=listing_size,
        offer_price=offer_price,
        buyer_name=buyer_name,
        buyer_email=buyer_email,
        message=message,
    )
    return await email_sender.send(
        to=seller_email,
        email=rendered,
        from_address=settings.offers_email_from,
        reply_to=buyer_email,
    )
