"""Main CLI application for PR Inbox."""

from pathlib import Path
from typing import Annotated

import typer

from pr_inbox import __version__
from pr_inbox.cli import audit as audit_cmd
from pr_inbox.cli import inbox as inbox_cmd
from pr_inbox.cli import repos as repos_cmd
from pr_inbox.cli import sync as sync_cmd
from pr_inbox.cli.common import console, run_async_command
from pr_inbox.config import get_settings
from pr_inbox.db import create_tables, dispose_engine
from pr_inbox.logging import setup_logging

app = typer.Typer(
    name="prinbox",
    help="Pull request inbox: sync tracked repositories and rank what needs attention.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"prinbox version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """PR Inbox - reconcile pull requests and score their urgency."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


@app.command("init-db")
def init_db() -> None:
    """Create database tables."""

    async def _init() -> None:
        try:
            await create_tables()
        finally:
            await dispose_engine()

    run_async_command(_init(), error_prefix="Database setup failed")
    console.print(f"[green]Database ready:[/green] {get_settings().database_url}")


# Register subcommands
app.add_typer(sync_cmd.app, name="sync")
app.add_typer(repos_cmd.app, name="repos")
app.add_typer(audit_cmd.app, name="audit")
app.command("inbox")(inbox_cmd.inbox)


if __name__ == "__main__":
    app()
