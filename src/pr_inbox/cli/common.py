"""Common CLI option factories and helpers.

This module centralizes reusable CLI options and provides
`run_async_command` for running async work from synchronous commands.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from enum import Enum
from typing import Annotated, TypeVar

import typer
from rich.console import Console

from pr_inbox.schemas import parse_repo_string

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


class OutputFormat(str, Enum):
    """Output format for CLI commands."""

    TEXT = "text"
    """Human-readable text output."""

    JSON = "json"
    """Machine-readable JSON output."""


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


# Typer requires function calls as default arguments, which triggers B008.
# Using Annotated with a centralized type alias keeps the noqa in one place.

OutputFormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
    ),
]
"""Output format option type for CLI commands.

Usage:
    def command(output_format: OutputFormatOption = OutputFormat.TEXT):
"""

RepoArgument = Annotated[
    str,
    typer.Argument(
        help="Repository in owner/name format (e.g., octo/widgets)",
    ),
]
"""Required positional repository argument."""

UserArgument = Annotated[
    str,
    typer.Argument(help="User the tracking belongs to"),
]

UserOption = Annotated[
    str | None,
    typer.Option(
        "--user",
        "-u",
        help="Restrict to this user's tracked repositories",
    ),
]


def validate_repo(repo: str) -> tuple[str, str]:
    """Parse and validate a single repository string.

    Raises:
        typer.Exit(1): If format is invalid
    """
    try:
        return parse_repo_string(repo)
    except ValueError:
        console.print(f"[red]Error:[/red] Repository '{repo}' must be in owner/name format")
        raise typer.Exit(1) from None
