"""reddit API client module.

This module provides:
- RedditClient: rate-limited client with transparent token refresh
- Request queue: RequestQueue, WorkItem, WorkState
- Transport boundary: ApiRequest, ApiResponse, RequestOptions, HttpxTransport
- OAuth helpers: Attempt, Credentials, build_authorize_url
"""

from .auth import Attempt, Credentials, build_authorize_url, normalize_scope
from .client import RedditClient
from .exceptions import (
    ConfigurationError,
    InvalidScopeError,
    InvalidWorkItemError,
    RedditAuthenticationError,
    RedditClientError,
    RedditNotFoundError,
    RedditRateLimitError,
    ResponseParseError,
)
from .pacing import RequestQueue, WorkItem, WorkState
from .results import ApiResult
from .transport import ApiRequest, ApiResponse, HttpxTransport, RequestOptions, Transport

__all__ = [
    # Client
    "RedditClient",
    "ApiResult",
    # Exceptions
    "ConfigurationError",
    "InvalidScopeError",
    "InvalidWorkItemError",
    "RedditAuthenticationError",
    "RedditClientError",
    "RedditNotFoundError",
    "RedditRateLimitError",
    "ResponseParseError",
    # Request queue
    "RequestQueue",
    "WorkItem",
    "WorkState",
    # Transport
    "ApiRequest",
    "ApiResponse",
    "HttpxTransport",
    "RequestOptions",
    "Transport",
    # OAuth
    "Attempt",
    "Credentials",
    "build_authorize_url",
    "normalize_scope",
]
