"""list command: print stored records, newest first."""

from __future__ import annotations

import click
from rich.console import Console

from ghactivity_store.base import StorageError

console = Console()


def _sort_desc(records: list, key: str) -> list:
    return sorted(records, key=lambda r: getattr(r, key) or "", reverse=True)


@click.command("list")
@click.option(
    "--type",
    "-t",
    "kind",
    type=click.Choice(["all", "prs", "issues", "reviews"]),
    default="all",
    show_default=True,
    help="Activity type to list.",
)
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=0), help="Maximum items per type.")
@click.pass_context
def list_cmd(ctx, kind: str, limit: int):
    """List stored pull requests, issues and reviews."""
    store = ctx.obj["store"]
    try:
        data = store.load()
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    if data is None:
        console.print('[yellow]No data found. Run "gh-activity fetch" first.[/yellow]')
        return

    if kind in ("all", "prs"):
        console.print("\n[bold]=== Pull Requests ===[/bold]\n")
        for pr in _sort_desc(data.pull_requests, "created_at")[:limit]:
            merged = " (merged)" if pr.merged_at else ""
            console.print(f"#{pr.number} - {pr.title}", markup=False)
            console.print(f"  Repository: {pr.repository.full_name}", markup=False)
            console.print(f"  State: {pr.state}{merged}", markup=False)
            console.print(f"  URL: {pr.html_url}\n", markup=False)

    if kind in ("all", "issues"):
        console.print("\n[bold]=== Issues ===[/bold]\n")
        for issue in _sort_desc(data.issues, "created_at")[:limit]:
            console.print(f"#{issue.number} - {issue.title}", markup=False)
            console.print(f"  Repository: {issue.repository.full_name}", markup=False)
            console.print(f"  State: {issue.state}", markup=False)
            console.print(f"  URL: {issue.html_url}\n", markup=False)

    if kind in ("all", "reviews"):
        console.print("\n[bold]=== Reviews ===[/bold]\n")
        for review in _sort_desc(data.reviews, "submitted_at")[:limit]:
            console.print(f"Review on PR #{review.pull_request_number} - {review.pull_request_title}", markup=False)
            console.print(f"  Repository: {review.repository.full_name}", markup=False)
            console.print(f"  State: {review.state}", markup=False)
            console.print(f"  URL: {review.html_url}\n", markup=False)
