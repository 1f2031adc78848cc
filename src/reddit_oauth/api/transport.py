"""HTTP transport boundary.

The client never talks to httpx directly. It builds an immutable
``ApiRequest`` per call and hands it to a ``Transport``: any async callable
returning an ``ApiResponse``. Raising is the transport error channel.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

import httpx

from reddit_oauth.logging import get_logger

logger = get_logger(__name__)

HTTP_METHODS = frozenset({"GET", "POST", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"})


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if mapping is None:
        return None
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class RequestOptions:
    """Caller-supplied options for a single API call.

    Mappings are copied into read-only views, so reusing an options object
    for a replayed call can never leak state from the previous attempt.
    """

    method: str | None = None
    url: str | None = None
    headers: Mapping[str, str] | None = None
    params: Mapping[str, Any] | None = None
    form: Mapping[str, Any] | None = None
    auth: tuple[str, str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze(self.headers))
        object.__setattr__(self, "params", _freeze(self.params))
        object.__setattr__(self, "form", _freeze(self.form))


@dataclass(frozen=True)
class ApiRequest:
    """Fully resolved request descriptor handed to the transport."""

    url: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] | None = None
    form: Mapping[str, Any] | None = None
    auth: tuple[str, str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "params", _freeze(self.params))
        object.__setattr__(self, "form", _freeze(self.form))


@dataclass
class ApiResponse:
    """Response metadata and raw body.

    ``json_data`` is filled in by the client once a 2xx body parses.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""
    json_data: Any = None

    @property
    def is_success(self) -> bool:
        """True for 2xx status codes."""
        return 200 <= self.status_code < 300


class Transport(Protocol):
    """Anything that can perform an ApiRequest asynchronously."""

    async def __call__(self, request: ApiRequest) -> ApiResponse: ...


class HttpxTransport:
    """Default transport backed by ``httpx.AsyncClient``.

    Usage:
        transport = HttpxTransport(timeout=30.0)
        response = await transport(ApiRequest(url="https://ssl.reddit.com/api/v1/me"))
        await transport.aclose()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds. The queue has no timeout
                     of its own, so this bounds how long a hung call can
                     block every request behind it.
            client: Optional pre-configured httpx client (not closed by aclose)
        """
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def _http(self) -> httpx.AsyncClient:
        """Get or create the httpx client instance."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def __call__(self, request: ApiRequest) -> ApiResponse:
        response = await self._http.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            params=dict(request.params) if request.params else None,
            data=dict(request.form) if request.form else None,
            auth=request.auth,
        )
        logger.debug("{} {} -> {}", request.method, request.url, response.status_code)
        return ApiResponse(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            text=response.text,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
