"""Audit log commands for PR Inbox."""

import json
from datetime import timedelta
from typing import Annotated

import typer

from pr_inbox.audit import AuditLog
from pr_inbox.config import get_settings
from pr_inbox.db import dispose_engine, get_session_factory
from pr_inbox.db.models import ActionType
from pr_inbox.schemas import ActionLogRead

from .common import (
    OutputFormat,
    OutputFormatOption,
    RepoArgument,
    console,
    run_async_command,
    validate_repo,
)

app = typer.Typer(help="Inspect audited sync and enrichment actions")


@app.command("status")
def audit_status(
    action: Annotated[ActionType, typer.Argument(help="Action type, e.g. AI_SUMMARY")],
    repo: RepoArgument,
    pr_number: Annotated[
        int | None,
        typer.Option("--pr", help="PR number, for PR-scoped actions"),
    ] = None,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Show the latest audited action for a repository or PR.

    A RUNNING entry that has been silent for too long is reported (and
    stored) as FAILED.

    Examples:
        prinbox audit status AI_SUMMARY octo/widgets --pr 42
        prinbox audit status SYNC_SINGLE octo/widgets --pr 42 --format json
    """
    validate_repo(repo)
    stale_after = timedelta(minutes=get_settings().ai.stale_running_minutes)

    async def _status() -> ActionLogRead | None:
        try:
            audit = AuditLog(get_session_factory(), stale_after=stale_after)
            return await audit.get_status(action, repo, pr_number)
        finally:
            await dispose_engine()

    entry = run_async_command(_status())
    if entry is None:
        console.print(f"[dim]No {action.value} entries for {repo}[/dim]")
        raise typer.Exit(1)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(entry.model_dump(mode="json")))
        return

    color = {"SUCCESS": "green", "RUNNING": "yellow"}.get(entry.result_status.value, "red")
    target = f"{repo}#{pr_number}" if pr_number is not None else repo
    console.print(
        f"{entry.action_type.value} {target}: "
        f"[{color}]{entry.result_status.value}[/{color}] at {entry.created_at.isoformat()}"
    )
    if entry.error_message:
        console.print(f"  {entry.error_message}")
