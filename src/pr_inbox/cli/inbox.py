"""Inbox command: pull requests that need attention, most urgent first."""

import json
from typing import Annotated, Any

import typer
from rich.table import Table

from pr_inbox.db import PullRequestRepository, dispose_engine, get_session
from pr_inbox.schemas import AttentionRead, PullRequestRead

from .common import OutputFormat, OutputFormatOption, console, run_async_command


def inbox(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Maximum number of pull requests"),
    ] = 20,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """List pull requests that need attention, highest urgency first.

    Examples:
        prinbox inbox
        prinbox inbox --limit 5 --format json
    """

    async def _load() -> list[dict[str, Any]]:
        try:
            async with get_session() as session:
                prs = await PullRequestRepository(session).list_needing_attention(limit)
                return [
                    {
                        "repository": pr.repository.full_name,
                        **PullRequestRead.from_orm(pr).model_dump(mode="json"),
                        "attention": AttentionRead.model_validate(pr.attention).model_dump(
                            mode="json"
                        ),
                    }
                    for pr in prs
                ]
        finally:
            await dispose_engine()

    rows = run_async_command(_load())

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(rows))
        return

    if not rows:
        console.print("[dim]Nothing needs attention.[/dim]")
        return

    table = Table(title="Needs attention")
    table.add_column("Score", justify="right")
    table.add_column("Pull request")
    table.add_column("Title")
    table.add_column("Reason")
    table.add_column("Flow")
    for row in rows:
        attention = row["attention"]
        flow = attention["flow_violation"]
        table.add_row(
            str(attention["urgency_score"]),
            f"{row['repository']}#{row['number']}",
            row["title"],
            attention["attention_reason"] or "",
            "[red]violation[/red]" if flow else (attention["flow_phase"] or ""),
        )
    console.print(table)
