from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from runnmate.api.deps import get_email_sender
from runnmate.api.errors import is_valid_email
from runnmate.config import Settings, get_settings
from runnmate.db.connection import get_db
from runnmate.email.sender import EmailSender
from runnmate.handlers.marketplace import (
    notify_seller_of_offer,
    record_offer,
    relay_contact_message,
    signup_for_launch,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_CONTACT_MESSAGE_LENGTH = 10


class ContactRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    subject: str | None = None
    message: str | None = None


class LotterySignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    lottery_consent: bool = Field(default=False, alias="lotteryConsent")
    shoe_interest: str | None = Field(default=None, alias="shoeInterest")


class SendOfferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seller_email: str | None = Field(default=None, alias="sellerEmail")
    listing_title: str | None = Field(default=None, alias="listingTitle")
    listing_price: float | None = Field(default=None, alias="listingPrice")
    listing_size: float | None = Field(default=None, alias="listingSize")
    offer_price: float | None = Field(default=None, alias="offerPrice")
    buyer_name: str | None = Field(default=None, alias="buyerName")
    buyer_email: str | None = Field(default=None, alias="buyerEmail")
    message: str | None = None
    listing_id: UUID | None = Field(default=None, alias="listingId")


@router.post("/contact")
async def contact(
    payload: ContactRequest,
    settings: Settings = Depends(get_settings),
    email_sender: EmailSender = Depends(get_email_sender),
) -> dict[str, bool | str]:
    if not (payload.name and payload.email and payload.subject and payload.message):
        raise HTTPException(status_code=400, detail="All fields are required")
    if not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if len(payload.message.strip()) < MIN_CONTACT_MESSAGE_LENGTH:
        raise HTTPException(status_code=400, detail="Message must be at least 10 characters long")

    sent = await relay_contact_message(
        email_sender=email_sender,
        settings=settings,
        name=payload.name,
        email=payload.email,
        subject=payload.subject,
        message=payload.message,
    )
    if not sent:
        raise HTTPException(status_code=500, detail="Failed to send message")
    return {"success": True, "message": "Message sent successfully"}


@router.post("/lottery-signup")
async def lottery_signup(
    payload: LotterySignupRequest,
    session: AsyncSession = Depends(get_db),
) -> dict[str, bool | str]:
    if not payload.email or not payload.email.strip():
        raise HTTPException(status_code=400, detail="Email is required")
    if not is_valid_email(payload.email.strip()):
        raise HTTPException(status_code=400, detail="Invalid email address")

    try:
        await signup_for_launch(
            session=session,
            email=payload.email.strip(),
            lottery_consent=payload.lottery_consent,
            shoe_interest=payload.shoe_interest,
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to save launch signup")
        await session.rollback()
        raise HTTPException(status_code=500, detail="Failed to save signup") from exc

    if payload.lottery_consent:
        message = "Successfully entered in lottery and signed up for launch notifications"
    else:
        message = "Successfully signed up for launch notifications"
    return {"success": True, "message": message}


@router.post("/send-offer")
async def send_offer(
    payload: SendOfferRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_sender: EmailSender = Depends(get_email_sender),
) -> dict[str, str]:
    required = (
        payload.seller_email,
        payload.listing_title,
        payload.listing_price,
        payload.listing_size,
        payload.offer_price,
        payload.buyer_name,
        payload.buyer_email,
    )
    if not all(required):
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not is_valid_email(payload.seller_email) or not is_valid_email(payload.buyer_email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if payload.offer_price <= 0 or payload.listing_price <= 0:
        raise HTTPException(status_code=400, detail="Invalid price values")

    if payload.listing_id is not None:
        try:
            await record_offer(
                session=session,
                listing_id=payload.listing_id,
                buyer_email=payload.buyer_email,
                buyer_name=payload.buyer_name,
                offer_price=payload.offer_price,
                message=payload.message,
            )
        except SQLAlchemyError as exc:
            logger.exception("Failed to record offer for listing %s", payload.listing_id)
            await session.rollback()
            raise HTTPException(status_code=500, detail="Failed to send offer") from exc

    sent = await notify_seller_of_offer(
        email_sender=email_sender,
        settings=settings,
        seller_email=payload.seller_email,
        listing_title=payload.listing_title,
        listing_price=payload.listing_price,
        listing_size=payload.listing_size,
        offer_price=payload.offer_price,
        buyer_name=payload.buyer_name,
        buyer_email=payload.buyer_email,
        message=payload.message or "",
    )
    if not sent:
        raise HTTPException(status_code=500, detail="Failed to send offer")
    return {"message": "Offer sent successfully"}
