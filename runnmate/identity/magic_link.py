from __future__ import annotations

from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

MAGIC_LINK_TYPE = "magiclink"


class MagicLinkError(Exception):
    pass


def _first(params: dict[str, list[str]], key: str) -> str | None:
    values = params.get(key)
    if not values:
        return None
    return values[0] or None


def _set_params(pairs: list[tuple[str, str]], updates: dict[str, str]) -> list[tuple[str, str]]:
    kept = [(key, value) for key, value in pairs if key not in updates]
    return kept + list(updates.items())


def rewrite_action_link(action_link: str, redirect_to: str) -> str:
    """Turn a provider verification link into a link to our own callback route.

    The provider link looks like
    ``https://<project>/auth/v1/verify?token=...&type=magiclink&redirect_to=...``;
    the result is ``redirect_to`` carrying ``token_hash``, ``type`` and the
    ``returnTo`` found in the provider's redirect target.
    """
    provider_params = parse_qs(urlsplit(action_link).query)
    token = _first(provider_params, "token")
    if token is None:
        raise MagicLinkError("No token found in provider magic link")

    destination = urlsplit(redirect_to)
    if not destination.scheme or not destination.netloc:
        raise MagicLinkError("Redirect URL must be absolute")

    updates = {"token_hash": token, "type": MAGIC_LINK_TYPE}
    provider_redirect = _first(provider_params, "redirect_to")
    if provider_redirect:
        return_to = _first(parse_qs(urlsplit(provider_redirect).query), "returnTo")
        if return_to:
            updates["returnTo"] = return_to

    query = _set_params(parse_qsl(destination.query, keep_blank_values=True), updates)
    return urlunsplit(
        (destination.scheme, destination.netloc, destination.path, urlencode(query), destination.fragment)
    )


def safe_return_path(return_to: str | None, default: str = "/browse") -> str:
    """Only same-site relative paths are honoured as post-login destinations."""
    if not return_to or not return_to.startswith("/") or return_to.startswith("//"):
        return default
    if "\\" in return_to:
        return default
    return return_to
