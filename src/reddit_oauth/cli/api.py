"""reddit API commands."""

import json

import typer
from rich.table import Table

from reddit_oauth.api import RedditClient, RequestOptions
from reddit_oauth.api.auth import build_authorize_url
from reddit_oauth.cli.common import (
    ParamsOption,
    PathArgument,
    build_client,
    console,
    parse_params,
    run_async_command,
)
from reddit_oauth.config import get_settings
from reddit_oauth.logging import LogContext
from reddit_oauth.schemas import Listing

app = typer.Typer(help="reddit API commands")


async def _authenticate(client: RedditClient) -> None:
    settings = get_settings()
    await client.ensure_authenticated(settings.username, settings.password)


@app.command("authorize-url")
def authorize_url(
    state: str = typer.Argument(help="Anti-forgery state token echoed back on redirect"),
    scopes: list[str] = typer.Argument(help="One or more scopes (e.g., read identity)"),
) -> None:
    """Print the authorization URL for the code flow.

    Examples:
        reddit-oauth api authorize-url s1 read identity
    """
    settings = get_settings()
    if not settings.client_id:
        console.print("[red]Error:[/red] REDDIT_CLIENT_ID must be set")
        raise typer.Exit(1)
    url = build_authorize_url(settings.client_id, state, scopes, settings.redirect_uri)
    console.print(url, soft_wrap=True)


@app.command("get")
def get_path(
    path: PathArgument,
    params: ParamsOption = None,
    raw: bool = typer.Option(False, "--raw", help="Print the raw body instead of JSON"),
) -> None:
    """GET an API path through the request queue.

    Examples:
        reddit-oauth api get /api/v1/me
        reddit-oauth api get /r/python/about --raw
    """
    query = parse_params(params)

    async def _get() -> tuple[object, str | None]:
        with LogContext(command="get", path=path):
            async with build_client() as client:
                await _authenticate(client)
                result = await client.fetch(path, RequestOptions(params=query or None))
                result.raise_for_error()
                return result.json_data, result.body

    data, body = run_async_command(_get(), error_prefix="Request failed")
    if raw:
        console.print(body or "", soft_wrap=True)
    else:
        console.print_json(json.dumps(data))


@app.command("listing")
def listing(
    path: PathArgument,
    params: ParamsOption = None,
    pages: int = typer.Option(1, "--pages", "-n", min=1, help="Maximum pages to fetch"),
) -> None:
    """Walk a paginated listing, one queued request per page.

    Examples:
        reddit-oauth api listing /r/python/new --pages 3
        reddit-oauth api listing /r/python/top -p t=week
    """
    query = parse_params(params)

    async def _walk() -> list[Listing]:
        with LogContext(command="listing", path=path):
            async with build_client() as client:
                await _authenticate(client)
                return [
                    page
                    async for page in client.iter_listing(path, query or None, max_pages=pages)
                ]

    fetched = run_async_command(_walk(), error_prefix="Listing failed")

    table = Table(title=f"{path} ({len(fetched)} page(s))")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Title", max_width=60)

    index = 0
    for page in fetched:
        for thing in page.children:
            index += 1
            title = str(thing.data.get("title") or thing.data.get("body") or "")
            title = title[:57] + "..." if len(title) > 60 else title
            table.add_row(str(index), thing.fullname or "", title)

    console.print(table)
    if fetched and fetched[-1].after:
        console.print(f"  next cursor: {fetched[-1].after}")
