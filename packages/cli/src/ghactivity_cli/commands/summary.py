"""summary command - counts over the stored snapshot."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ghactivity_core.tracker import summarize
from ghactivity_store.base import StorageError

console = Console()


@click.command("summary")
@click.pass_context
def summary_cmd(ctx):
    """Show summary statistics of stored activities.

    Reads the configured store only; no GitHub calls are made.
    """
    store = ctx.obj["store"]
    try:
        data = store.load()
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    if data is None:
        console.print('[yellow]No data found. Run "gh-activity fetch" first.[/yellow]')
        return

    summary = summarize(data)
    title = f"GitHub Activity - {data.metadata.username}" if data.metadata.username else "GitHub Activity"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="bold")
    table.add_column("Metric")
    table.add_column("Count", justify="right")

    table.add_row("Pull Requests", "Total", str(summary.total_pull_requests))
    table.add_row("", "Open", str(summary.open_pull_requests))
    table.add_row("", "Merged", str(summary.merged_pull_requests))
    table.add_row("Issues", "Total", str(summary.total_issues))
    table.add_row("", "Open", str(summary.open_issues))
    table.add_row("", "Closed", str(summary.closed_issues))
    table.add_row("Reviews", "Total", str(summary.total_reviews))
    table.add_row("", "Approved", str(summary.approved_reviews))
    table.add_row("", "Changes Requested", str(summary.changes_requested_reviews))

    console.print(table)
    if data.metadata.last_updated:
        console.print(f"[dim]Last updated: {data.metadata.last_updated[:19].replace('T', ' ')}[/dim]")
