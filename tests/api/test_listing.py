"""Tests for paginated listings.

get_listing() fetches one page per call and hands back a continuation;
iter_listing() wraps the same walk as a lazy async iterator.
"""

from __future__ import annotations

import asyncio

import pytest

from reddit_oauth.api import ApiRequest, ApiResult, RedditNotFoundError, ResponseParseError
from reddit_oauth.schemas import Listing
from tests.conftest import json_response
from tests.fixtures.reddit_responses import make_listing

PAGES = {
    None: make_listing(["a", "b"], after="t3_b"),
    "t3_b": make_listing(["c", "d"], after="t3_d"),
    "t3_d": make_listing(["e"], after=None),
}


def paged(request: ApiRequest):
    params = dict(request.params or {})
    return json_response(200, PAGES[params.get("after")])


class PageCollector:
    def __init__(self) -> None:
        self.calls: list[tuple[ApiResult, Listing | None, object]] = []
        self.event = asyncio.Event()

    def __call__(self, result, listing, next_page) -> None:
        self.calls.append((result, listing, next_page))
        self.event.set()

    async def wait(self) -> None:
        await asyncio.wait_for(self.event.wait(), 1.0)
        self.event.clear()


class TestGetListing:
    async def test_first_page_and_continuation(self, make_client, transport):
        transport.handler = paged
        client = make_client(access_token="tok")
        collector = PageCollector()

        client.get_listing("/r/python/new", {"limit": 2}, collector)
        await collector.wait()

        result, listing, next_page = collector.calls[0]
        assert result.ok
        assert listing is not None
        assert [thing.fullname for thing in listing.children] == ["t3_a", "t3_b"]
        assert callable(next_page)
        assert dict(transport.requests[0].params or {}) == {"limit": 2}

        next_page()
        await collector.wait()

        assert dict(transport.requests[1].params or {}) == {
            "limit": 2,
            "after": "t3_b",
            "count": 2,
        }

    async def test_last_page_has_no_continuation(self, make_client, transport):
        transport.handler = paged
        client = make_client(access_token="tok")
        collector = PageCollector()

        client.get_listing("/r/python/new", None, collector, after="t3_d", count=4)
        await collector.wait()

        _, listing, next_page = collector.calls[0]
        assert listing is not None
        assert listing.after is None
        assert next_page is None
        assert dict(transport.requests[0].params or {}) == {"after": "t3_d", "count": 4}

    async def test_walk_to_end_accumulates_count(self, make_client, transport):
        transport.handler = paged
        client = make_client(access_token="tok")
        collector = PageCollector()

        client.get_listing("/r/python/new", None, collector)
        await collector.wait()
        while collector.calls[-1][2] is not None:
            collector.calls[-1][2]()
            await collector.wait()

        assert len(collector.calls) == 3
        assert [dict(r.params or {}).get("count") for r in transport.requests] == [None, 2, 4]

    async def test_error_page_has_no_continuation(self, make_client, transport):
        transport.handler = lambda request: json_response(403, {"reason": "private"})
        client = make_client(access_token="tok")
        collector = PageCollector()

        client.get_listing("/r/secret/new", None, collector)
        await collector.wait()

        result, listing, next_page = collector.calls[0]
        assert result.status_code == 403
        assert listing is None
        assert next_page is None

    async def test_non_listing_body_is_parse_error(self, make_client, transport):
        transport.handler = lambda request: json_response(200, {"kind": "t2", "name": "x"})
        client = make_client(access_token="tok")
        collector = PageCollector()

        client.get_listing("/api/v1/me", None, collector)
        await collector.wait()

        result, listing, next_page = collector.calls[0]
        assert isinstance(result.error, ResponseParseError)
        assert listing is None
        assert next_page is None


class TestIterListing:
    async def test_yields_every_page(self, make_client, transport):
        transport.handler = paged
        client = make_client(access_token="tok")

        pages = [page async for page in client.iter_listing("/r/python/new")]

        assert [len(page.children) for page in pages] == [2, 2, 1]
        assert len(transport.requests) == 3

    async def test_max_pages(self, make_client, transport):
        transport.handler = paged
        client = make_client(access_token="tok")

        pages = [page async for page in client.iter_listing("/r/python/new", max_pages=2)]

        assert len(pages) == 2
        assert len(transport.requests) == 2

    async def test_lazy_fetching(self, make_client, transport):
        """Breaking early stops further requests."""
        transport.handler = paged
        client = make_client(access_token="tok")

        async for _page in client.iter_listing("/r/python/new"):
            break

        assert len(transport.requests) == 1

    async def test_error_raises(self, make_client, transport):
        transport.handler = lambda request: json_response(404, {"error": 404})
        client = make_client(access_token="tok")

        with pytest.raises(RedditNotFoundError):
            async for _page in client.iter_listing("/r/nope/new"):
                pass

    async def test_non_listing_raises(self, make_client, transport):
        transport.handler = lambda request: json_response(200, [1, 2, 3])
        client = make_client(access_token="tok")

        with pytest.raises(ResponseParseError):
            async for _page in client.iter_listing("/r/python/new"):
                pass
