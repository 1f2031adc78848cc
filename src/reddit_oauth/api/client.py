"""Rate-limited reddit API client with transparent token refresh.

Every call, token grants included, goes through one RequestQueue, so the
whole session is single flight and spaced by the configured request
buffer. When an authenticated call comes back 401 and a refresh token is
available, the client refreshes once and replays the call behind whatever
is already queued.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from typing import Any, TypeVar

from reddit_oauth.config import DEFAULT_USER_AGENT, Settings, get_settings
from reddit_oauth.logging import get_logger
from reddit_oauth.schemas import Listing, TokenResponse

from .auth import Attempt, Credentials, build_authorize_url, code_from_callback
from .exceptions import (
    ConfigurationError,
    RedditAuthenticationError,
    RedditClientError,
    ResponseParseError,
)
from .pacing import RequestQueue, WorkItem
from .results import ApiResult
from .transport import (
    HTTP_METHODS,
    ApiRequest,
    ApiResponse,
    HttpxTransport,
    RequestOptions,
    Transport,
)

logger = get_logger(__name__)

T = TypeVar("T")

OAUTH_HOST = "https://oauth.reddit.com"
BOOTSTRAP_HOST = "https://ssl.reddit.com"
ACCESS_TOKEN_PATH = "/api/v1/access_token"

ResultCallback = Callable[[ApiResult], None]
AuthCallback = Callable[[bool], None]
NextPage = Callable[[], None]
ListingCallback = Callable[[ApiResult, Listing | None, NextPage | None], None]


class RedditClient:
    """reddit API client that serializes and spaces every request.

    Callback style (mirrors the queue):
        client = RedditClient("client-id", "secret", refresh_token="...")
        client.request("/api/v1/me", callback=lambda result: print(result.json_data))

    Awaitable style:
        async with RedditClient.from_settings() as client:
            result = await client.fetch("/api/v1/me")
            me = result.raise_for_error().json_data
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str | None = None,
        user_agent: str | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
        request_buffer_ms: int = 2000,
        transport: Transport | None = None,
        queue: RequestQueue | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth application client id (required)
            client_secret: OAuth application client secret (required)
            redirect_uri: Redirect target registered for the application
            user_agent: User-Agent header value (reddit requires a unique one)
            access_token: Initial access token
            refresh_token: Initial refresh token; enables silent refresh on 401
            request_buffer_ms: Minimum milliseconds between the end of one
                               request and the start of the next
            transport: Async callable performing the HTTP call. Defaults to
                       an HttpxTransport owned (and closed) by this client.
            queue: Pre-built queue (overrides request_buffer_ms)

        Raises:
            ConfigurationError: If client id/secret are missing or the
                buffer is negative.
        """
        if not isinstance(client_id, str) or not client_id:
            raise ConfigurationError(f"Invalid client id: {client_id!r}")
        if not isinstance(client_secret, str) or not client_secret:
            raise ConfigurationError("Invalid client secret")
        if request_buffer_ms < 0:
            raise ConfigurationError(f"Invalid request buffer: {request_buffer_ms}")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri or None
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.credentials = Credentials(access_token or None, refresh_token or None)

        self._queue = queue if queue is not None else RequestQueue(request_buffer_ms / 1000)
        self._waiters: set[asyncio.Future[Any]] = set()
        self._owns_transport = transport is None
        self._transport: Transport = transport if transport is not None else HttpxTransport()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        transport: Transport | None = None,
    ) -> RedditClient:
        """Build a client from ``REDDIT_*`` settings."""
        settings = settings or get_settings()
        owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport(timeout=settings.queue.request_timeout_s)
        client = cls(
            settings.client_id,
            settings.client_secret,
            redirect_uri=settings.redirect_uri,
            user_agent=settings.user_agent,
            access_token=settings.access_token,
            refresh_token=settings.refresh_token,
            request_buffer_ms=settings.queue.request_buffer_ms,
            transport=transport,
        )
        client._owns_transport = owns_transport
        return client

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------
    @property
    def queue(self) -> RequestQueue:
        """The request queue every call goes through."""
        return self._queue

    @property
    def is_authenticated(self) -> bool:
        """True if an access token is present."""
        return self.credentials.is_authenticated

    def kill(self) -> None:
        """Abandon every queued and in-flight request.

        No callback fires. Coroutines awaiting an abandoned call (fetch,
        login, refresh, ...) raise RedditClientError.
        """
        self._queue.kill()
        waiters = list(self._waiters)
        self._waiters.clear()
        for future in waiters:
            if not future.done():
                future.set_exception(RedditClientError("Request abandoned: client was killed"))

    async def aclose(self) -> None:
        """Kill the queue and close the transport if this client created it."""
        self.kill()
        if self._owns_transport:
            close = getattr(self._transport, "aclose", None)
            if close is not None:
                await close()

    async def __aenter__(self) -> RedditClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Core request path
    # -------------------------------------------------------------------------
    def build_request(self, path: str, options: RequestOptions | None = None) -> ApiRequest:
        """Resolve options into a fresh request descriptor.

        The host and Authorization header depend on whether the session is
        authenticated at the moment of the call, so a replay after a token
        refresh picks up the new token and the OAuth host.
        """
        options = options or RequestOptions()

        headers = dict(options.headers or {})
        headers["User-Agent"] = self.user_agent
        if self.credentials.is_authenticated:
            headers["Authorization"] = f"bearer {self.credentials.access_token}"

        url = options.url
        if not url:
            host = OAUTH_HOST if self.credentials.is_authenticated else BOOTSTRAP_HOST
            url = host + path

        method = (options.method or "GET").upper()
        if method not in HTTP_METHODS:
            method = "GET"

        return ApiRequest(
            url=url,
            method=method,
            headers=headers,
            params=options.params,
            form=options.form,
            auth=options.auth,
        )

    def request(
        self,
        path: str,
        options: RequestOptions | None = None,
        callback: ResultCallback | None = None,
        attempt: Attempt = Attempt.FIRST,
    ) -> WorkItem:
        """Queue an API call.

        Args:
            path: API path (e.g. "/api/v1/me"), appended to the selected host
            options: Method, params, form body, extra headers, basic auth
            callback: Receives exactly one ApiResult, unless the queue is killed
            attempt: Position in the refresh state machine; only FIRST may
                     trigger a token refresh

        Returns:
            The queued WorkItem
        """
        api_request = self.build_request(path, options)

        def _on_complete(error: BaseException | None, response: ApiResponse | None) -> None:
            self._handle_completion(path, options, callback, attempt, error, response)

        return self._queue.submit(WorkItem(lambda: self._transport(api_request), _on_complete))

    def _handle_completion(
        self,
        path: str,
        options: RequestOptions | None,
        callback: ResultCallback | None,
        attempt: Attempt,
        error: BaseException | None,
        response: ApiResponse | None,
    ) -> None:
        """Interpret a completed call and either deliver it or refresh and replay."""
        result = _interpret(error, response)

        if (
            result.error is None
            and result.status_code == 401
            and attempt.may_refresh
            and self.credentials.can_refresh
        ):
            logger.info("Access token rejected for {}, refreshing", path)

            def _after_refresh(success: bool) -> None:
                if success:
                    self.request(path, options, callback, Attempt.RETRY)
                else:
                    _deliver(callback, result)

            self.refresh_access_token(_after_refresh)
            return

        if not result.ok:
            logger.warning(
                "reddit request failed: {} {} (error={!r}, status={})",
                (options.method if options and options.method else "GET").upper(),
                path,
                result.error,
                result.status_code,
            )
        _deliver(callback, result)

    # -------------------------------------------------------------------------
    # Convenience verbs
    # -------------------------------------------------------------------------
    def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> WorkItem:
        """Queue a GET with ``params`` as the query string."""
        return self.request(path, RequestOptions(params=params or None), callback)

    def post(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        callback: ResultCallback | None = None,
    ) -> WorkItem:
        """Queue a POST with ``params`` as a form-encoded body."""
        return self.request(path, RequestOptions(method="POST", form=params or None), callback)

    # -------------------------------------------------------------------------
    # Credential operations
    # -------------------------------------------------------------------------
    def _token_request(self, form: Mapping[str, str]) -> RequestOptions:
        return RequestOptions(
            method="POST",
            form=form,
            auth=(self.client_id, self.client_secret),
        )

    def password_grant(
        self,
        username: str,
        password: str,
        callback: AuthCallback | None = None,
    ) -> WorkItem:
        """Authenticate a script application with account credentials.

        Clears both tokens first. Success requires a non-empty access token.
        """
        self.credentials.clear()

        def _on_token(result: ApiResult) -> None:
            token = _token_from(result)
            success = token is not None and token.has_access_token
            if token is not None and success:
                self.credentials.access_token = token.access_token
                if token.has_refresh_token:
                    self.credentials.refresh_token = token.refresh_token
            _log_grant("password", success)
            _deliver(callback, success)

        return self.request(
            ACCESS_TOKEN_PATH,
            self._token_request(
                {"grant_type": "password", "username": username, "password": password}
            ),
            _on_token,
        )

    def authorization_code_grant(
        self,
        code: str,
        callback: AuthCallback | None = None,
    ) -> WorkItem:
        """Exchange an authorization code for access and refresh tokens.

        Clears both tokens first. Success requires both tokens, non-empty.
        """
        self.credentials.clear()

        def _on_token(result: ApiResult) -> None:
            token = _token_from(result)
            success = token is not None and token.has_access_token and token.has_refresh_token
            if token is not None and success:
                self.credentials.access_token = token.access_token
                self.credentials.refresh_token = token.refresh_token
            _log_grant("authorization_code", success)
            _deliver(callback, success)

        return self.request(
            ACCESS_TOKEN_PATH,
            self._token_request(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri or "",
                }
            ),
            _on_token,
        )

    def refresh_access_token(self, callback: AuthCallback | None = None) -> WorkItem:
        """Obtain a new access token from the stored refresh token.

        Clears the access token first and is submitted as Attempt.REFRESH,
        so a 401 from the token endpoint never triggers a nested refresh.
        """
        self.credentials.clear(keep_refresh_token=True)

        def _on_token(result: ApiResult) -> None:
            token = _token_from(result)
            success = token is not None and token.has_access_token
            if token is not None and success:
                self.credentials.access_token = token.access_token
                if token.has_refresh_token:
                    self.credentials.refresh_token = token.refresh_token
            _log_grant("refresh_token", success)
            _deliver(callback, success)

        return self.request(
            ACCESS_TOKEN_PATH,
            self._token_request(
                {"grant_type": "refresh_token", "refresh_token": self.credentials.refresh_token or ""}
            ),
            _on_token,
            Attempt.REFRESH,
        )

    def oauth_url(self, state: str, scope: str | Iterable[str]) -> str:
        """Authorization URL for the code flow (see build_authorize_url)."""
        return build_authorize_url(self.client_id, state, scope, self.redirect_uri)

    def oauth_tokens(
        self,
        state: str,
        query: Mapping[str, str],
        callback: AuthCallback | None = None,
    ) -> WorkItem | None:
        """Finish the code flow from the redirect's query parameters.

        Fails closed without touching the network when the state does not
        match or no code was returned.
        """
        code = code_from_callback(state, query)
        if code is None:
            logger.warning("Authorization callback rejected (state mismatch or missing code)")
            _deliver(callback, False)
            return None
        return self.authorization_code_grant(code, callback)

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------
    def get_listing(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        callback: ListingCallback | None = None,
        after: str | None = None,
        count: int = 0,
    ) -> WorkItem:
        """Fetch one page of a listing.

        The callback receives ``(result, listing, next_page)``. ``next_page``
        is a zero-argument callable queueing the following page with the same
        callback, or None at the end of the listing or on error.
        """

        def _on_page(result: ApiResult) -> None:
            if not result.ok:
                _deliver_page(callback, result, None, None)
                return

            listing = Listing.try_validate(result.json_data)
            if listing is None:
                error = ResponseParseError(
                    "Response is not a listing", body=result.body, status_code=result.status_code
                )
                _deliver_page(callback, ApiResult(error, result.response, result.body), None, None)
                return

            next_after = listing.after
            next_count = count + len(listing.children)

            def _next_page() -> None:
                self.get_listing(path, params, callback, next_after, next_count)

            next_page = _next_page if next_after is not None else None
            _deliver_page(callback, result, listing, next_page)

        return self.get(path, _listing_params(params, after, count), _on_page)

    async def iter_listing(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        max_pages: int | None = None,
    ) -> AsyncIterator[Listing]:
        """Iterate over listing pages lazily, one queued GET per page.

        Raises:
            RedditClientError: (or a subclass) as soon as a page fails.
        """
        after: str | None = None
        count = 0
        pages = 0
        while True:
            result = await self.fetch(
                path, RequestOptions(params=_listing_params(params, after, count))
            )
            result.raise_for_error()
            listing = Listing.try_validate(result.json_data)
            if listing is None:
                raise ResponseParseError(
                    "Response is not a listing", body=result.body, status_code=result.status_code
                )

            yield listing

            pages += 1
            if listing.after is None or (max_pages is not None and pages >= max_pages):
                return
            count += len(listing.children)
            after = listing.after

    # -------------------------------------------------------------------------
    # Awaitable wrappers
    # -------------------------------------------------------------------------
    async def _wait_for(
        self,
        start: Callable[[Callable[[T], None]], Any],
        timeout: float | None,
    ) -> T:
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

        def _resolve(value: T) -> None:
            if not future.done():
                future.set_result(value)

        self._waiters.add(future)
        try:
            start(_resolve)
            if timeout is not None:
                return await asyncio.wait_for(future, timeout)
            return await future
        finally:
            self._waiters.discard(future)

    async def fetch(
        self,
        path: str,
        options: RequestOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> ApiResult:
        """Queue a call and wait for its result.

        Args:
            path: API path
            options: Request options
            timeout: Optional seconds to wait (queue time included)

        Raises:
            asyncio.TimeoutError: If timeout exceeded. The queued call is not
                removed; its result is dropped.
            RedditClientError: If the client is killed before the call completes.
        """
        return await self._wait_for(lambda done: self.request(path, options, done), timeout)

    async def login(self, username: str, password: str, *, timeout: float | None = None) -> bool:
        """Awaitable password_grant()."""
        return await self._wait_for(
            lambda done: self.password_grant(username, password, done), timeout
        )

    async def refresh(self, *, timeout: float | None = None) -> bool:
        """Awaitable refresh_access_token()."""
        return await self._wait_for(self.refresh_access_token, timeout)

    async def exchange_code(
        self,
        state: str,
        query: Mapping[str, str],
        *,
        timeout: float | None = None,
    ) -> bool:
        """Awaitable oauth_tokens()."""
        return await self._wait_for(lambda done: self.oauth_tokens(state, query, done), timeout)

    async def ensure_authenticated(
        self,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        """Make sure the session holds an access token.

        Tries a refresh first, then the password grant if credentials are
        given.

        Raises:
            RedditAuthenticationError: If no grant produced a token.
        """
        if self.is_authenticated:
            return
        if self.credentials.can_refresh and await self.refresh():
            return
        if username and password and await self.login(username, password):
            return
        raise RedditAuthenticationError("Could not obtain an access token")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _interpret(error: BaseException | None, response: ApiResponse | None) -> ApiResult:
    """Turn the transport outcome into what the caller sees."""
    if error is not None:
        # A transport failure may still carry a raw body (e.g. a proxy error page)
        body = getattr(error, "body", None)
        if isinstance(body, str) and body:
            try:
                json.loads(body)
            except ValueError as e:
                parse_error = ResponseParseError("Failed to parse response body", body=body)
                parse_error.__cause__ = e
                return ApiResult(parse_error, None, body)
            return ApiResult(error, None, body)
        return ApiResult(error, None, None)

    if response is None:
        return ApiResult(None, None, None)

    body = response.text
    if response.is_success:
        try:
            response.json_data = json.loads(body)
        except ValueError as e:
            parse_error = ResponseParseError(
                "Failed to parse response body", body=body, status_code=response.status_code
            )
            parse_error.__cause__ = e
            return ApiResult(parse_error, response, body)
    return ApiResult(None, response, body)


def _token_from(result: ApiResult) -> TokenResponse | None:
    if not result.ok or not isinstance(result.json_data, dict):
        return None
    return TokenResponse.try_validate(result.json_data)


def _listing_params(
    params: Mapping[str, Any] | None,
    after: str | None,
    count: int,
) -> dict[str, Any] | None:
    merged = dict(params or {})
    if after:
        merged["after"] = after
        merged["count"] = count
    return merged or None


def _deliver(callback: Callable[[T], None] | None, value: T) -> None:
    if callback is not None:
        callback(value)


def _deliver_page(
    callback: ListingCallback | None,
    result: ApiResult,
    listing: Listing | None,
    next_page: NextPage | None,
) -> None:
    if callback is not None:
        callback(result, listing, next_page)


def _log_grant(grant_type: str, success: bool) -> None:
    if success:
        logger.info("Token grant '{}' succeeded", grant_type)
    else:
        logger.warning("Token grant '{}' failed, session is unauthenticated", grant_type)
