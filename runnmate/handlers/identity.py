from __future__ import annotations

import logging

from runnmate.config import Settings
from runnmate.email.sender import EmailSender
from runnmate.email.templates import magic_link_email, normalize_language
from runnmate.identity.magic_link import MAGIC_LINK_TYPE, MagicLinkError, rewrite_action_link
from runnmate.identity.provider import IdentityProvider, IdentityProviderError, ProviderSession

logger = logging.getLogger(__name__)


async def issue_magic_link(
    *,
    identity: IdentityProvider,
    email_sender: EmailSender,
    settings: Settings,
    email: str,
    redirect_to: str,
    language: str | None,
) -> tuple[bool, str]:
    """Request a one-time link from the provider and mail our own branded version.

    Exactly one email is sent on success. Nothing is persisted, so a failed
    send leaves the generated link unused.
    """
    try:
        action_link = await identity.generate_magic_link(email=email, redirect_to=redirect_to)
    except IdentityProviderError as exc:
        logger.error("Error generating magic link for %s: %s", email, exc)
        return False, f"Failed to generate magic link: {exc}"

    try:
        callback_link = rewrite_action_link(action_link, redirect_to)
    except MagicLinkError:
        logger.exception("Error processing provider magic link for %s", email)
        return False, "Failed to process magic link"

    lang = normalize_language(language, default=settings.magic_link_default_language)
    rendered = magic_link_email(callback_link, email, lang, expiry_hours=settings.magic_link_expiry_hours)
    sent = await email_sender.send(to=email, email=rendered, from_address=settings.email_from)
    if not sent:
        logger.error("Failed to send magic link email to %s", email)
        return False, "Failed to send magic link email"

    logger.info(
        "Magic link email sent to %s",
        email,
        extra={"event_type": "auth.magic_link.sent", "ops_payload": {"language": lang}},
    )
    return True, "Magic link sent successfully"


async def verify_magic_link(
    *,
    identity: IdentityProvider,
    token_hash: str | None,
    otp_type: str | None,
) -> tuple[ProviderSession | None, str]:
    if not token_hash:
        return None, "invalid_link"
    try:
        session = await identity.verify_otp(token_hash=token_hash, otp_type=otp_type or MAGIC_LINK_TYPE)
    except IdentityProviderError as exc:
        logger.warning("Magic link verification failed: %s", exc)
        return None, "auth_failed"
    logger.info("Magic link verified for %s", session.email, extra={"event_type": "auth.magic_link.verified"})
    return session, "ok"
