"""Outcome of a single logical API call as seen by the caller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .exceptions import (
    RedditAuthenticationError,
    RedditClientError,
    RedditNotFoundError,
    RedditRateLimitError,
)
from .transport import ApiResponse


@dataclass(frozen=True)
class ApiResult:
    """What a request callback receives: ``(error, response, body)``.

    ``error`` is set for transport failures and unparseable bodies. A
    non-2xx response is *not* an error here; it is reported through
    ``response.status_code`` and can be turned into an exception with
    raise_for_error().
    """

    error: BaseException | None = None
    response: ApiResponse | None = None
    body: str | None = None

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    @property
    def json_data(self) -> Any:
        """Parsed body of a successful response (None otherwise)."""
        return self.response.json_data if self.response is not None else None

    @property
    def ok(self) -> bool:
        """True when there is no error and the status is 2xx."""
        return self.error is None and self.response is not None and self.response.is_success

    def raise_for_error(self) -> ApiResult:
        """Raise the matching client exception unless the call succeeded.

        Returns:
            self, so calls can be chained

        Raises:
            RedditAuthenticationError: 401
            RedditNotFoundError: 404
            RedditRateLimitError: 429
            RedditClientError: any other failure
        """
        if self.error is not None:
            if isinstance(self.error, Exception):
                raise self.error
            raise RedditClientError(f"Request failed: {self.error!r}") from self.error

        if self.response is None:
            raise RedditClientError("Request produced no response")

        status = self.response.status_code
        if self.response.is_success:
            return self
        if status == 401:
            raise RedditAuthenticationError("Invalid or expired access token", status_code=401)
        if status == 404:
            raise RedditNotFoundError(f"Not found: {self.body or ''}".strip(), status_code=404)
        if status == 429:
            reset = self.response.headers.get("x-ratelimit-reset")
            try:
                reset_after = float(reset) if reset is not None else None
            except ValueError:
                reset_after = None
            raise RedditRateLimitError("reddit rate limit exceeded", reset_after=reset_after)
        if status == 403:
            raise RedditClientError("Access forbidden", status_code=403)
        raise RedditClientError(f"reddit API error ({status})", status_code=status)
