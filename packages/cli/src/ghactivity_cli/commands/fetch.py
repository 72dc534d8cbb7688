"""fetch commands: pull activity from GitHub into the configured store."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console

from ghactivity_core.errors import ActivityError
from ghactivity_core.gh.client import GitHubClient
from ghactivity_core.tracker import ActivityTracker
from ghactivity_store.base import StorageError
from ghactivity_store.models import ISSUES, PULL_REQUESTS, REVIEWS

console = Console()

_max_pages_option = click.option(
    "--max-pages",
    "-m",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum search pages (of 100 results) per date window. Defaults to the config value (10).",
)


def _prepare(ctx: click.Context, max_pages: int | None) -> tuple[dict, object, int]:
    """Return (config, store, max_pages), raising UsageError when credentials are missing."""
    from ghactivity_core.config import validate_config

    config = ctx.obj["config"]
    errors = validate_config(config)
    if errors:
        raise click.UsageError(
            "Configuration errors:\n"
            + "\n".join(f"  - {e}" for e in errors)
            + "\n\nProvide --token/--user, set GITHUB_TOKEN/GITHUB_USERNAME, or run `gh auth login`.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    return config, ctx.obj["store"], max_pages or int(config.get("max_pages", 10))


async def _run_tracker(config: dict, store, max_pages: int, action):
    async with GitHubClient(config["github_token"], base_url=config.get("github_api_url")) as client:
        tracker = ActivityTracker(client, store, config["github_username"], max_pages=max_pages)
        return await action(tracker)


def _run(config: dict, store, max_pages: int, action):
    try:
        return asyncio.run(_run_tracker(config, store, max_pages, action))
    except (ActivityError, StorageError) as e:
        raise click.ClickException(str(e)) from e


@click.command("fetch")
@_max_pages_option
@click.pass_context
def fetch_cmd(ctx, max_pages: int | None):
    """Fetch all pull requests, issues and reviews and replace the stored snapshot."""
    config, store, max_pages = _prepare(ctx, max_pages)

    console.print(f"Fetching activities for GitHub user: [bold]{config['github_username']}[/bold]...")
    data = _run(config, store, max_pages, lambda tracker: tracker.fetch_all())

    console.print("\n[green]Fetch completed successfully![/green]")
    console.print(f"Pull Requests: {data.metadata.total_pull_requests}")
    console.print(f"Issues: {data.metadata.total_issues}")
    console.print(f"Reviews: {data.metadata.total_reviews}")
    console.print(f"\nData saved to: {config['storage_path']}")


def _kind_command(name: str, kind: str, label: str) -> click.Command:
    @click.command(name, help=f"Fetch only {label} and merge them into the stored snapshot.")
    @_max_pages_option
    @click.pass_context
    def command(ctx, max_pages: int | None):
        config, store, max_pages = _prepare(ctx, max_pages)
        console.print(f"Fetching {label}...")
        _run(config, store, max_pages, lambda tracker: tracker.fetch_kind(kind))
        console.print(f"[green]{label.capitalize()} fetched successfully![/green]")

    return command


fetch_prs_cmd = _kind_command("fetch-prs", PULL_REQUESTS, "pull requests")
fetch_issues_cmd = _kind_command("fetch-issues", ISSUES, "issues")
fetch_reviews_cmd = _kind_command("fetch-reviews", REVIEWS, "reviews")
