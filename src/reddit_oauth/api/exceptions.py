"""reddit client exceptions."""


class RedditClientError(Exception):
    """Base exception for reddit client errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(RedditClientError):
    """Raised when the client is constructed with missing or invalid options."""

    pass


class InvalidWorkItemError(RedditClientError, TypeError):
    """Raised synchronously when a malformed work item is submitted to the queue."""

    pass


class InvalidScopeError(RedditClientError, ValueError):
    """Raised when an authorization scope cannot be reduced to a string."""

    pass


class ResponseParseError(RedditClientError):
    """Raised when a response body is not valid JSON (or not the expected shape).

    The raw body is kept so callers can inspect what the server actually sent.
    """

    def __init__(
        self,
        message: str,
        body: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class RedditAuthenticationError(RedditClientError):
    """Raised when authentication fails (401) or a grant yields no token."""

    pass


class RedditNotFoundError(RedditClientError):
    """Raised when a resource is not found (404)."""

    pass


class RedditRateLimitError(RedditClientError):
    """Raised when the per-client rate limit is exceeded (429)."""

    def __init__(self, message: str, reset_after: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.reset_after = reset_after
