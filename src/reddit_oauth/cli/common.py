"""Common CLI option factories and helpers.

This module centralizes reusable CLI options and provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- `build_client`: Settings-backed client construction with friendly validation
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Annotated, TypeVar

import typer
from rich.console import Console

from reddit_oauth.api import ConfigurationError, RedditClient
from reddit_oauth.config import Settings, get_settings

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


def build_client(settings: Settings | None = None) -> RedditClient:
    """Create a RedditClient from settings, exiting with code 1 if misconfigured.

    Raises:
        typer.Exit(1): If REDDIT_CLIENT_ID / REDDIT_CLIENT_SECRET are missing
    """
    settings = settings or get_settings()
    try:
        return RedditClient.from_settings(settings)
    except ConfigurationError:
        console.print(
            "[red]Error:[/red] REDDIT_CLIENT_ID and REDDIT_CLIENT_SECRET must be set"
        )
        raise typer.Exit(1) from None


# Typer requires function calls as default arguments, which triggers B008.
# Using Annotated with a centralized type alias keeps the noqa in one place.

PathArgument = Annotated[
    str,
    typer.Argument(
        help="API path (e.g., /api/v1/me or /r/python/new)",
    ),
]
"""Required positional API path argument."""

ParamsOption = Annotated[
    list[str] | None,
    typer.Option(
        "--param",
        "-p",
        help="Query parameter as key=value (repeatable)",
    ),
]
"""Repeatable key=value query parameter option."""


def parse_params(params: list[str] | None) -> dict[str, str]:
    """Parse key=value pairs, exiting with code 1 on malformed input.

    Raises:
        typer.Exit(1): If a pair has no '='
    """
    parsed: dict[str, str] = {}
    for pair in params or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            console.print(f"[red]Error:[/red] Parameter '{pair}' must be in key=value format")
            raise typer.Exit(1)
        parsed[key] = value
    return parsed
