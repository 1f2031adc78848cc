"""Schemas for the OAuth2 token endpoint."""

from pydantic import Field

from .base import SchemaBase


class TokenResponse(SchemaBase):
    """Body returned by ``POST /api/v1/access_token``.

    Every field is optional: reddit reports grant failures with a 200 and
    an ``error`` field, so callers check the token fields they need.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    expires_in: int | None = Field(default=None, ge=0)
    scope: str | None = None
    error: str | None = None

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)
