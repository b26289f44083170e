from __future__ import annotations

import json
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote, unquote


def _now_ms(now: datetime | None = None) -> int:
    return int((now or datetime.now(UTC)).timestamp() * 1000)


def encode_state(email: str, *, now: datetime | None = None, nonce: str | None = None) -> str:
    payload = {
        "userEmail": email,
        "timestamp": _now_ms(now),
        "nonce": nonce or secrets.token_urlsafe(8),
    }
    return quote(json.dumps(payload, separators=(",", ":")), safe="")


def decode_state(raw: str) -> dict[str, Any] | None:
    """Parse a state value received on the OAuth callback.

    Returns None when the value is not a URL-encoded JSON object.
    """
    try:
        data = json.loads(unquote(raw))
    except (ValueError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def state_email(data: dict[str, Any]) -> str | None:
    email = data.get("userEmail") or data.get("email")
    if not isinstance(email, str) or not email.strip():
        return None
    return email.strip()


def state_is_expired(data: dict[str, Any], *, max_age_minutes: int, now: datetime | None = None) -> bool:
    timestamp = data.get("timestamp")
    if not isinstance(timestamp, int | float) or isinstance(timestamp, bool):
        return True
    age_ms = _now_ms(now) - int(timestamp)
    return age_ms > timedelta(minutes=max_age_minutes).total_seconds() * 1000
