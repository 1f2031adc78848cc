"""Pytest configuration and shared fixtures.

Usage Guide:
- For queue tests: build WorkItems directly, no transport involved
- For client tests: use the `transport` fixture (a scripted FakeTransport)
  and `make_client` to get a RedditClient with no request buffer
- For canned response bodies: import from tests.fixtures.reddit_responses
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest

from reddit_oauth.api import ApiRequest, ApiResponse, RedditClient

Handler = Callable[[ApiRequest], ApiResponse | BaseException]


def json_response(status_code: int = 200, body: Any = None, **headers: str) -> ApiResponse:
    """Build an ApiResponse whose text is ``body`` encoded as JSON."""
    return ApiResponse(
        status_code=status_code,
        headers=dict(headers),
        text=json.dumps(body if body is not None else {}),
    )


class FakeTransport:
    """Scripted async transport recording every request it receives.

    The handler maps a request to a response; returning an exception makes
    the transport raise it instead.
    """

    def __init__(self, handler: Handler | None = None, delay: float = 0.0) -> None:
        self.requests: list[ApiRequest] = []
        self.handler: Handler = handler or (lambda request: json_response(200, {}))
        self.delay = delay
        self.closed = False

    async def __call__(self, request: ApiRequest) -> ApiResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.handler(request)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True

    def calls_to(self, path: str) -> list[ApiRequest]:
        """Requests whose URL ends with ``path``."""
        return [request for request in self.requests if request.url.endswith(path)]


@pytest.fixture
def transport() -> FakeTransport:
    """A FakeTransport answering 200 ``{}`` until its handler is replaced."""
    return FakeTransport()


@pytest.fixture
def make_client(transport: FakeTransport) -> Callable[..., RedditClient]:
    """Factory for clients wired to the shared FakeTransport, no request buffer."""

    def _make(**overrides: Any) -> RedditClient:
        options: dict[str, Any] = {
            "request_buffer_ms": 0,
            "transport": transport,
            "redirect_uri": "https://example.com/callback",
        }
        options.update(overrides)
        return RedditClient("cid", "secret", **options)

    return _make
