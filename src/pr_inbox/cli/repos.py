"""Tracked repository commands for PR Inbox."""

from typing import Any

import typer
from rich.table import Table

from pr_inbox.db import TrackedRepositoryRepository, dispose_engine, get_session
from pr_inbox.schemas import TrackedRepositoryRead

from .common import (
    RepoArgument,
    UserArgument,
    UserOption,
    console,
    run_async_command,
    validate_repo,
)

app = typer.Typer(help="Manage tracked repositories")


@app.command("add")
def repos_add(user: UserArgument, repo: RepoArgument) -> None:
    """Start tracking a repository for a user.

    Examples:
        prinbox repos add alice octo/widgets
    """
    validate_repo(repo)

    async def _add() -> bool:
        try:
            async with get_session() as session:
                _, created = await TrackedRepositoryRepository(session).track(user, repo)
                return created
        finally:
            await dispose_engine()

    created = run_async_command(_add())
    if created:
        console.print(f"[green]Tracking[/green] {repo} for {user}")
    else:
        console.print(f"[dim]{repo} is already tracked for {user}[/dim]")


@app.command("list")
def repos_list(user: UserOption = None) -> None:
    """List tracked repositories (one user's, or everyone's)."""

    async def _list() -> list[dict[str, Any]]:
        try:
            async with get_session() as session:
                repo = TrackedRepositoryRepository(session)
                if user is not None:
                    rows = await repo.list_for_user(user)
                else:
                    rows = await repo.get_all()
                return [r.model_dump() for r in TrackedRepositoryRead.from_orm_list(rows)]
        finally:
            await dispose_engine()

    rows = run_async_command(_list())
    if not rows:
        console.print("[dim]No tracked repositories.[/dim]")
        return

    table = Table(title="Tracked repositories")
    table.add_column("User")
    table.add_column("Repository")
    table.add_column("Synced", justify="center")
    for row in rows:
        table.add_row(row["user_id"], row["full_name"], "yes" if row["repository_id"] else "no")
    console.print(table)


@app.command("remove")
def repos_remove(user: UserArgument, repo: RepoArgument) -> None:
    """Stop tracking a repository for a user."""
    validate_repo(repo)

    async def _remove() -> bool:
        try:
            async with get_session() as session:
                return await TrackedRepositoryRepository(session).untrack(user, repo)
        finally:
            await dispose_engine()

    if not run_async_command(_remove()):
        console.print(f"[red]Error:[/red] {repo} is not tracked for {user}")
        raise typer.Exit(1)
    console.print(f"[green]Stopped tracking[/green] {repo} for {user}")
