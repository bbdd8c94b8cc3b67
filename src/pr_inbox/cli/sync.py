"""Sync commands for PR Inbox."""

import json
from typing import Annotated, Any

import typer
from rich.table import Table

from pr_inbox.db import dispose_engine, get_session_factory
from pr_inbox.db.models import SyncStatus, SyncTrigger
from pr_inbox.github import GitHubClient, SyncOrchestrator
from pr_inbox.schemas import PullRequestRef

from .common import (
    OutputFormat,
    OutputFormatOption,
    RepoArgument,
    UserOption,
    console,
    run_async_command,
    validate_repo,
)

app = typer.Typer(help="Sync pull requests from GitHub")


@app.command("run")
def sync_run(
    manual: Annotated[
        bool,
        typer.Option("--manual", help="Record the run as user-initiated instead of a poll"),
    ] = False,
    user: UserOption = None,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Reconcile every tracked repository against GitHub.

    Examples:
        prinbox sync run
        prinbox sync run --manual --user alice
        prinbox sync run --format json
    """
    trigger = SyncTrigger.MANUAL if manual else SyncTrigger.POLL

    async def _run() -> dict[str, Any]:
        try:
            async with GitHubClient() as client:
                orchestrator = SyncOrchestrator(client, get_session_factory())
                result = await orchestrator.run_sync(trigger, user)
                return result.to_dict()
        finally:
            await dispose_engine()

    result = run_async_command(_run(), error_prefix="Sync failed")

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(result))
    else:
        _print_run(result)

    if result["status"] == SyncStatus.FAILED.value:
        raise typer.Exit(1)


def _print_run(result: dict[str, Any]) -> None:
    summary = result["summary"]
    status = result["status"]
    color = {"SUCCESS": "green", "PARTIAL": "yellow"}.get(status, "red")

    table = Table(title=f"Sync run {result['run_id'][:8]}")
    table.add_column("Repository")
    table.add_column("Pulled", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Errors", justify="right")
    for repo in result["repositories"]:
        table.add_row(
            repo["repository"],
            str(repo["pulled"]),
            str(repo["created"]),
            str(repo["updated"]),
            str(len(repo["errors"])),
        )
    console.print(table)

    console.print(
        f"[{color}]{status}[/{color}] pulled={summary['pulled']} "
        f"upserted={summary['upserted']} errors={summary['errors']} "
        f"({result['duration_seconds']}s)"
    )
    for error in result["errors"]:
        where = error["repository"]
        if "pull_number" in error:
            where = f"{where}#{error['pull_number']}"
        console.print(f"  [red]-[/red] {where}: {error['message']}")


@app.command("pr")
def sync_pr(
    repo: RepoArgument,
    pr_number: Annotated[int, typer.Argument(help="PR number to refresh")],
    user: UserOption = None,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Refresh a single PR of a tracked repository.

    Examples:
        prinbox sync pr octo/widgets 42
        prinbox sync pr octo/widgets 42 --format json
    """
    validate_repo(repo)
    if pr_number < 1:
        console.print("[red]Error:[/red] PR number must be positive")
        raise typer.Exit(1)
    ref = PullRequestRef(full_name=repo, number=pr_number)

    async def _refresh() -> dict[str, Any]:
        try:
            async with GitHubClient() as client:
                orchestrator = SyncOrchestrator(client, get_session_factory())
                result = await orchestrator.sync_single_pull_request(ref, user)
                return result.to_dict()
        finally:
            await dispose_engine()

    result = run_async_command(_refresh(), error_prefix="Refresh failed")

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(result))
        return

    console.print(f"[bold]{result['action'].title()}[/bold] {ref}")
    if "urgency_score" in result:
        flag = "[yellow]needs attention[/yellow]" if result["needs_attention"] else "ok"
        reason = f" ({result['attention_reason']})" if result["attention_reason"] else ""
        console.print(f"  score={result['urgency_score']} {flag}{reason}")
    if result["flow_violation"]:
        console.print(f"  [red]flow:[/red] {result['flow_violation']}")
