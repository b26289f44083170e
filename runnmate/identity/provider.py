from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    pass


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: str
    expires_in: int
    email: str
    full_name: str | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


class IdentityProvider:
    """Client for the managed auth backend (Supabase GoTrue REST API).

    Response contracts relied on:
      * ``POST /auth/v1/admin/generate_link`` returns a top-level ``action_link``.
      * ``POST /auth/v1/verify`` returns ``access_token``, ``refresh_token``,
        ``expires_in`` and ``user.email``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_role_key: str,
        anon_key: str,
        http_timeout_seconds: float,
    ) -> None:
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.anon_key = anon_key
        self.http_timeout_seconds = http_timeout_seconds

    def _headers(self, key: str) -> dict[str, str]:
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, *, key: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout_seconds) as client:
                response = await client.post(f"{self.auth_url}{path}", json=body, headers=self._headers(key))
        except httpx.HTTPError as exc:
            logger.exception("Identity provider request to %s failed", path)
            raise IdentityProviderError("identity provider unreachable") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("Identity provider error %d on %s: %s", response.status_code, path, message)
            raise IdentityProviderError(message)

        try:
            data = response.json()
        except ValueError as exc:
            raise IdentityProviderError("identity provider returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise IdentityProviderError("identity provider returned an unexpected payload")
        return data

    async def generate_magic_link(self, *, email: str, redirect_to: str) -> str:
        data = await self._post(
            "/admin/generate_link",
            key=self.service_role_key,
            body={"type": "magiclink", "email": email, "redirect_to": redirect_to},
        )
        action_link = data.get("action_link")
        if not isinstance(action_link, str) or not action_link:
            raise IdentityProviderError("Invalid magic link response")
        return action_link

    async def verify_otp(self, *, token_hash: str, otp_type: str = "magiclink") -> ProviderSession:
        data = await self._post(
            "/verify",
            key=self.anon_key,
            body={"type": otp_type, "token_hash": token_hash},
        )
        access_token = data.get("access_token")
        user = data.get("user") or {}
        email = user.get("email") if isinstance(user, dict) else None
        if not access_token or not email:
            raise IdentityProviderError("no session returned")

        metadata = user.get("user_metadata") or {}
        full_name = metadata.get("full_name") if isinstance(metadata, dict) else None
        return ProviderSession(
            access_token=str(access_token),
            refresh_token=str(data.get("refresh_token") or ""),
            expires_in=int(data.get("expires_in") or 3600),
            email=str(email),
            full_name=full_name,
        )
