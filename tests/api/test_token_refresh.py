"""Tests for the silent refresh-and-replay protocol.

An authenticated call answered with 401 refreshes the access token once
and is replayed behind whatever is already queued. The replay can never
trigger a second refresh.
"""

from __future__ import annotations

import asyncio

from reddit_oauth.api import ApiRequest, ApiResult, Attempt
from reddit_oauth.api.client import ACCESS_TOKEN_PATH, BOOTSTRAP_HOST, OAUTH_HOST
from tests.conftest import json_response
from tests.fixtures.reddit_responses import ME, TOKEN_ERROR, TOKEN_REFRESHED


def token_endpoint(body=TOKEN_REFRESHED, status=200):
    """Handler fragment answering the token endpoint."""

    def _handle(request: ApiRequest):
        return json_response(status, body)

    return _handle


def route(token_handler, other_handler):
    def _handler(request: ApiRequest):
        if request.url.endswith(ACCESS_TOKEN_PATH):
            return token_handler(request)
        return other_handler(request)

    return _handler


def rejects_token(token: str):
    """Endpoint answering 401 to ``token`` and 200 to anything else."""

    def _handle(request: ApiRequest):
        if request.headers.get("Authorization") == f"bearer {token}":
            return json_response(401, {"message": "Unauthorized", "error": 401})
        return json_response(200, ME)

    return _handle


async def collect(client, path, attempt=Attempt.FIRST, settle=0.02):
    """Issue one call and return every result its callback received."""
    results: list[ApiResult] = []
    done = asyncio.Event()

    def _callback(result: ApiResult) -> None:
        results.append(result)
        done.set()

    client.request(path, callback=_callback, attempt=attempt)
    await asyncio.wait_for(done.wait(), 2.0)
    await asyncio.sleep(settle)  # catch any stray extra callback
    return results


class TestRefreshAndReplay:
    async def test_expired_token_refreshed_and_replayed(self, make_client, transport):
        transport.handler = route(token_endpoint(), rejects_token("stale"))
        client = make_client(access_token="stale", refresh_token="r")

        results = await collect(client, "/api/v1/me")

        assert len(results) == 1
        assert results[0].ok
        assert results[0].json_data == ME
        assert client.credentials.access_token == "access-refreshed"

        first, refresh, replay = transport.requests
        assert first.url == f"{OAUTH_HOST}/api/v1/me"
        assert first.headers["Authorization"] == "bearer stale"

        assert refresh.url == f"{BOOTSTRAP_HOST}{ACCESS_TOKEN_PATH}"
        assert refresh.method == "POST"
        assert refresh.auth == ("cid", "secret")
        assert dict(refresh.form or {}) == {"grant_type": "refresh_token", "refresh_token": "r"}
        assert "Authorization" not in refresh.headers

        assert replay.url == f"{OAUTH_HOST}/api/v1/me"
        assert replay.headers["Authorization"] == "bearer access-refreshed"

    async def test_retry_happens_at_most_once(self, make_client, transport):
        """Refresh always succeeds but the endpoint keeps answering 401."""
        always_401 = lambda request: json_response(401, {"error": 401})  # noqa: E731
        transport.handler = route(token_endpoint(), always_401)
        client = make_client(access_token="stale", refresh_token="r")

        results = await collect(client, "/api/v1/me", settle=0.05)

        assert len(results) == 1
        assert results[0].status_code == 401
        assert len(transport.calls_to("/api/v1/me")) == 2
        assert len(transport.calls_to(ACCESS_TOKEN_PATH)) == 1

    async def test_no_refresh_token_surfaces_401(self, make_client, transport):
        transport.handler = rejects_token("stale")
        client = make_client(access_token="stale")

        results = await collect(client, "/api/v1/me")

        assert results[0].status_code == 401
        assert len(transport.requests) == 1
        assert client.credentials.access_token == "stale"

    async def test_failed_refresh_surfaces_original_response(self, make_client, transport):
        transport.handler = route(token_endpoint(TOKEN_ERROR), rejects_token("stale"))
        client = make_client(access_token="stale", refresh_token="r")

        results = await collect(client, "/api/v1/me")

        assert len(results) == 1
        assert results[0].status_code == 401
        assert results[0].response is not None
        assert results[0].response.headers == {}
        assert client.is_authenticated is False
        assert len(transport.calls_to("/api/v1/me")) == 1

    async def test_retry_attempt_never_refreshes(self, make_client, transport):
        transport.handler = route(token_endpoint(), rejects_token("stale"))
        client = make_client(access_token="stale", refresh_token="r")

        results = await collect(client, "/api/v1/me", attempt=Attempt.RETRY)

        assert results[0].status_code == 401
        assert transport.calls_to(ACCESS_TOKEN_PATH) == []

    async def test_replay_queued_behind_pending_work(self, make_client, transport):
        """The replay is a fresh submission, not a priority jump."""

        def _handler(request: ApiRequest):
            if request.url.endswith(ACCESS_TOKEN_PATH):
                return json_response(200, TOKEN_REFRESHED)
            if request.url.endswith("/a"):
                return rejects_token("stale")(request)
            return json_response(200, {})

        transport.handler = _handler
        client = make_client(access_token="stale", refresh_token="r")

        await asyncio.gather(client.fetch("/a"), client.fetch("/b"))

        paths = [request.url.rsplit("/", 1)[-1] for request in transport.requests]
        assert paths == ["a", "b", "access_token", "a"]


class TestRefreshAccessToken:
    async def test_refresh_success(self, make_client, transport):
        transport.handler = token_endpoint()
        client = make_client(access_token="old", refresh_token="r")

        assert await client.refresh() is True
        assert client.credentials.access_token == "access-refreshed"
        assert client.credentials.refresh_token == "r"

    async def test_refresh_rotates_refresh_token(self, make_client, transport):
        transport.handler = token_endpoint({**TOKEN_REFRESHED, "refresh_token": "r2"})
        client = make_client(refresh_token="r")

        assert await client.refresh() is True
        assert client.credentials.refresh_token == "r2"

    async def test_refresh_clears_access_token_before_request(self, make_client, transport):
        transport.handler = token_endpoint()
        client = make_client(access_token="old", refresh_token="r")

        client.refresh_access_token()

        assert client.credentials.access_token is None
        await asyncio.sleep(0.01)

    async def test_refresh_failure_leaves_session_unauthenticated(self, make_client, transport):
        transport.handler = token_endpoint(TOKEN_ERROR)
        client = make_client(access_token="old", refresh_token="r")

        assert await client.refresh() is False
        assert client.is_authenticated is False
        assert client.credentials.refresh_token == "r"

    async def test_refresh_401_does_not_recurse(self, make_client, transport):
        transport.handler = token_endpoint({"error": 401}, status=401)
        client = make_client(access_token="old", refresh_token="r")

        assert await client.refresh() is False
        await asyncio.sleep(0.02)
        assert len(transport.requests) == 1

    async def test_refresh_transport_error_is_failure(self, make_client, transport):
        transport.handler = lambda request: ConnectionError("offline")
        client = make_client(refresh_token="r")

        assert await client.refresh() is False
        assert client.is_authenticated is False
