"""OAuth2 session state and authorization helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from urllib.parse import quote, urlencode

from .exceptions import InvalidScopeError

AUTHORIZE_URL = "https://ssl.reddit.com/api/v1/authorize"


class Attempt(IntEnum):
    """Where a logical call is in the refresh-and-replay state machine.

    FIRST may trigger one silent refresh; on success the call is replayed
    as RETRY. RETRY and REFRESH (the token refresh request itself) are
    terminal: an unauthorized response is reported, never retried.
    """

    FIRST = 1
    RETRY = 2
    REFRESH = 3

    @property
    def may_refresh(self) -> bool:
        return self is Attempt.FIRST


@dataclass
class Credentials:
    """Access and refresh tokens for one client session."""

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        """True if an access token is present."""
        return isinstance(self.access_token, str) and len(self.access_token) > 0

    @property
    def can_refresh(self) -> bool:
        """True if a refresh token is present."""
        return isinstance(self.refresh_token, str) and len(self.refresh_token) > 0

    def clear(self, *, keep_refresh_token: bool = False) -> None:
        """Drop the access token, and the refresh token unless asked to keep it."""
        self.access_token = None
        if not keep_refresh_token:
            self.refresh_token = None


def normalize_scope(scope: str | Iterable[str] | None) -> str:
    """Reduce a scope (single string or ordered collection) to a comma list.

    Raises:
        InvalidScopeError: If scope is missing or contains non-strings.
    """
    if isinstance(scope, str):
        return scope
    if scope is None or isinstance(scope, (bytes, Mapping)):
        raise InvalidScopeError(f"Invalid scope: {scope!r}")
    try:
        parts = list(scope)
    except TypeError:
        raise InvalidScopeError(f"Invalid scope: {scope!r}") from None
    if not all(isinstance(part, str) for part in parts):
        raise InvalidScopeError(f"Invalid scope: {scope!r}")
    return ",".join(parts)


def build_authorize_url(
    client_id: str,
    state: str,
    scope: str | Iterable[str],
    redirect_uri: str | None = None,
) -> str:
    """Build the URL the resource owner visits to grant access.

    Every value is percent-encoded, including ``/``, ``:`` and ``,``.

    Args:
        client_id: OAuth application client id
        state: Anti-forgery token, echoed back on the redirect
        scope: Scope string or ordered collection of scopes
        redirect_uri: Registered redirect target (empty when not set)

    Returns:
        Authorization URL requesting a permanent (refreshable) grant
    """
    query = [
        ("client_id", client_id),
        ("response_type", "code"),
        ("state", state),
        ("redirect_uri", redirect_uri or ""),
        ("duration", "permanent"),
        ("scope", normalize_scope(scope)),
    ]
    return f"{AUTHORIZE_URL}?{urlencode(query, quote_via=quote)}"


def code_from_callback(state: str, query: Mapping[str, str]) -> str | None:
    """Return the authorization code if the redirect query is trustworthy.

    None when the returned state does not match ours or no code came back.
    """
    if query.get("state") != state:
        return None
    code = query.get("code")
    return code or None
