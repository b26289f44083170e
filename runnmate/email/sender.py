from __future__ import annotations

import logging
from typing import Any

import httpx

from runnmate.email.templates import RenderedEmail

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailSender:
    """Transactional email through the Resend HTTP API."""

    def __init__(self, *, api_key: str | None, default_from: str, http_timeout_seconds: float) -> None:
        self.api_key = api_key
        self.default_from = default_from
        self.http_timeout_seconds = http_timeout_seconds

    async def send(
        self,
        *,
        to: str,
        email: RenderedEmail,
        from_address: str | None = None,
        reply_to: str | None = None,
    ) -> bool:
        """Send one email.

        Returns True if sent successfully (or logged in dev mode), False on failure.
        """
        if not self.api_key:
            logger.info(
                "Email to %s (email sending disabled, no RESEND_API_KEY): %s\n%s",
                to,
                email.subject,
                email.text,
            )
            return True

        payload: dict[str, Any] = {
            "from": from_address or self.default_from,
            "to": [to],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            async with httpx.AsyncClient(timeout=self.http_timeout_seconds) as client:
                response = await client.post(
                    RESEND_API_URL,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
            if response.status_code >= 400:
                logger.error("Resend API error %d: %s", response.status_code, response.text)
                return False
            logger.info("Email sent to %s (Resend ID: %s)", to, response.json().get("id", "unknown"))
            return True
        except httpx.HTTPError:
            logger.exception("Failed to send email to %s", to)
            return False
