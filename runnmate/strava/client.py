from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
STRAVA_DEAUTHORIZE_URL = "https://www.strava.com/oauth/deauthorize"
STRAVA_API_URL = "https://www.strava.com/api/v3"

# The code or refresh token was refused. 429 and 5xx are outages, not refusals.
REJECTED_GRANT_STATUSES = frozenset({400, 401, 403})


class StravaApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None, details: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class StravaAuthError(StravaApiError):
    """The provider rejected our credentials (code, refresh token or client)."""


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: str
    expires_at: datetime
    athlete: dict[str, Any] = field(default_factory=dict)


def athlete_display_name(athlete: dict[str, Any]) -> str:
    parts = [str(athlete.get(key) or "").strip() for key in ("firstname", "lastname")]
    return " ".join(part for part in parts if part)


def compute_running_totals(stats: dict[str, Any]) -> tuple[int, int]:
    """Return (total km, activity count) from an athlete stats payload.

    Distances are in meters; the all-time and recent run totals are summed.
    """
    all_runs = stats.get("all_run_totals") or {}
    recent_runs = stats.get("recent_run_totals") or {}
    meters = float(all_runs.get("distance") or 0) + float(recent_runs.get("distance") or 0)
    count = int(all_runs.get("count") or 0) + int(recent_runs.get("count") or 0)
    return round(meters / 1000), count


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise StravaApiError(
            "Strava returned a non-JSON body",
            status_code=response.status_code,
            details=response.text[:500],
        ) from exc
    if not isinstance(data, dict):
        raise StravaApiError("Strava returned an unexpected JSON body", status_code=response.status_code)
    return data


def _parse_grant(data: dict[str, Any]) -> TokenGrant:
    access_token = data.get("access_token")
    if not access_token:
        raise StravaApiError("missing access token in token response")
    expires_at = data.get("expires_at")
    if not isinstance(expires_at, int | float):
        raise StravaApiError("missing expires_at in token response")
    return TokenGrant(
        access_token=str(access_token),
        refresh_token=str(data.get("refresh_token") or ""),
        expires_at=datetime.fromtimestamp(int(expires_at), tz=UTC),
        athlete=data.get("athlete") or {},
    )


class StravaClient:
    def __init__(
        self,
        *,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str,
        scopes: str,
        http_timeout_seconds: float,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.http_timeout_seconds = http_timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.client_id)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": self.scopes,
            "state": state,
        }
        return f"{STRAVA_AUTHORIZE_URL}?{urlencode(params)}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout_seconds) as client:
                return await client.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise StravaApiError(f"Strava request failed: {exc}") from exc

    async def _token_grant(self, body: dict[str, Any]) -> TokenGrant:
        response = await self._request(
            "POST",
            STRAVA_TOKEN_URL,
            json={"client_id": self.client_id, "client_secret": self.client_secret, **body},
        )
        if response.status_code in REJECTED_GRANT_STATUSES:
            logger.error("Strava token endpoint returned %d: %s", response.status_code, response.text)
            raise StravaAuthError(
                "Strava token request rejected",
                status_code=response.status_code,
                details=response.text,
            )
        if response.status_code >= 400:
            logger.error("Strava token endpoint returned %d: %s", response.status_code, response.text)
            raise StravaApiError(
                f"Strava token endpoint error: {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )
        return _parse_grant(_json_object(response))

    async def exchange_code(self, code: str) -> TokenGrant:
        return await self._token_grant({"code": code, "grant_type": "authorization_code"})

    async def refresh(self, refresh_token: str) -> TokenGrant:
        return await self._token_grant({"refresh_token": refresh_token, "grant_type": "refresh_token"})

    async def _get_json(self, path: str, access_token: str) -> dict[str, Any]:
        response = await self._request("GET", f"{STRAVA_API_URL}{path}", access_token=access_token)
        if response.status_code >= 400:
            raise StravaApiError(
                f"Strava API error: {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )
        return _json_object(response)

    async def get_athlete(self, access_token: str) -> dict[str, Any]:
        return await self._get_json("/athlete", access_token)

    async def get_athlete_stats(self, access_token: str, athlete_id: int) -> dict[str, Any]:
        return await self._get_json(f"/athletes/{athlete_id}/stats", access_token)

    async def deauthorize(self, access_token: str) -> None:
        response = await self._request("POST", STRAVA_DEAUTHORIZE_URL, access_token=access_token)
        if response.status_code >= 400:
            raise StravaApiError(
                "Strava deauthorize failed",
                status_code=response.status_code,
                details=response.text,
            )
