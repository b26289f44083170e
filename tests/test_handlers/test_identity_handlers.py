from __future__ import annotations

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlsplit

from runnmate.config import get_settings
from runnmate.handlers.identity import issue_magic_link, verify_magic_link
from runnmate.identity.provider import IdentityProviderError, ProviderSession

ACTION_LINK = (
    "https://project.supabase.co/auth/v1/verify?token=tok_123&type=magiclink"
    "&redirect_to=https%3A%2F%2Frunnmate.com%2Fauth%2Fcallback%3FreturnTo%3D%252Fsell"
)
REDIRECT = "https://runnmate.com/auth/callback"


class TestIssueMagicLink:
    async def test_sends_one_rewritten_link(self) -> None:
        identity = AsyncMock()
        identity.generate_magic_link.return_value = ACTION_LINK
        email_sender = AsyncMock()
        email_sender.send.return_value = True

        ok, message = await issue_magic_link(
            identity=identity,
            email_sender=email_sender,
            settings=get_settings(),
            email="runner@example.com",
            redirect_to=REDIRECT,
            language="nl",
        )

        assert ok is True
        assert message == "Magic link sent successfully"
        email_sender.send.assert_awaited_once()
        rendered = email_sender.send.call_args.kwargs["email"]
        assert rendered.subject == "Je Runnmate inloglink"
        link = next(line for line in rendered.text.splitlines() if line.startswith(REDIRECT))
        params = parse_qs(urlsplit(link).query)
        assert params["token_hash"] == ["tok_123"]
        assert params["returnTo"] == ["/sell"]

    async def test_provider_failure_sends_nothing(self) -> None:
        identity = AsyncMock()
        identity.generate_magic_link.side_effect = IdentityProviderError("Invalid magic link response")
        email_sender = AsyncMock()

        ok, message = await issue_magic_link(
            identity=identity,
            email_sender=email_sender,
            settings=get_settings(),
            email="runner@example.com",
            redirect_to=REDIRECT,
            language=None,
        )

        assert ok is False
        assert message == "Failed to generate magic link: Invalid magic link response"
        email_sender.send.assert_not_awaited()

    async def test_link_without_token_sends_nothing(self) -> None:
        identity = AsyncMock()
        identity.generate_magic_link.return_value = "https://project.supabase.co/auth/v1/verify?type=magiclink"
        email_sender = AsyncMock()

        ok, message = await issue_magic_link(
            identity=identity,
            email_sender=email_sender,
            settings=get_settings(),
            email="runner@example.com",
            redirect_to=REDIRECT,
            language="en",
        )

        assert ok is False
        assert message == "Failed to process magic link"
        email_sender.send.assert_not_awaited()

    async def test_send_failure(self) -> None:
        identity = AsyncMock()
        identity.generate_magic_link.return_value = ACTION_LINK
        email_sender = AsyncMock()
        email_sender.send.return_value = False

        ok, message = await issue_magic_link(
            identity=identity,
            email_sender=email_sender,
            settings=get_settings(),
            email="runner@example.com",
            redirect_to=REDIRECT,
            language="en",
        )

        assert ok is False
        assert message == "Failed to send magic link email"
        email_sender.send.assert_awaited_once()


class TestVerifyMagicLink:
    async def test_missing_token(self) -> None:
        identity = AsyncMock()
        session, status = await verify_magic_link(identity=identity, token_hash=None, otp_type=None)
        assert session is None
        assert status == "invalid_link"
        identity.verify_otp.assert_not_awaited()

    async def test_provider_rejects(self) -> None:
        identity = AsyncMock()
        identity.verify_otp.side_effect = IdentityProviderError("Token has expired or is invalid")
        session, status = await verify_magic_link(identity=identity, token_hash="hash", otp_type=None)
        assert session is None
        assert status == "auth_failed"

    async def test_success_defaults_type(self) -> None:
        identity = AsyncMock()
        identity.verify_otp.return_value = ProviderSession(
            access_token="jwt", refresh_token="refresh", expires_in=3600, email="runner@example.com"
        )
        session, status = await verify_magic_link(identity=identity, token_hash="hash", otp_type=None)
        assert status == "ok"
        assert session is not None and session.email == "runner@example.com"
        identity.verify_otp.assert_awaited_once_with(token_hash="hash", otp_type="magiclink")
