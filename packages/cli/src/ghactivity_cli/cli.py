"""CLI entry point for gh-activity.

Commands:
  fetch          - fetch PRs, issues and reviews and replace the stored snapshot
  fetch-prs      - fetch pull requests only and merge them into the store
  fetch-issues   - fetch issues only and merge them into the store
  fetch-reviews  - fetch reviews only and merge them into the store
  summary        - counts over the stored snapshot
  list           - list stored records
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from ghactivity_cli.commands.fetch import fetch_cmd, fetch_issues_cmd, fetch_prs_cmd, fetch_reviews_cmd
from ghactivity_cli.commands.listing import list_cmd
from ghactivity_cli.commands.summary import summary_cmd
from ghactivity_store.base import BaseStore, StorageError

console = Console()

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _configure_logging(level: str) -> None:
    """Send log records to stderr through rich, filtered at the configured level."""
    logging.basicConfig(
        level=_LOG_LEVELS.get(level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_store(config: dict) -> BaseStore:
    """Instantiate the configured snapshot store.

    Store selection:
      storage_type: json   → JSONStore   (default; storage_path is a .json file)
      storage_type: sqlite → SQLiteStore (storage_path is a .db file)
    """
    storage_type = config.get("storage_type", "json")
    path = config["storage_path"]

    if storage_type == "json":
        from ghactivity_store.jsonfile import JSONStore

        return JSONStore(path)

    if storage_type == "sqlite":
        from ghactivity_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=path)

    raise ValueError(f"Unsupported storage type: {storage_type!r}")


@click.group()
@click.version_option(
    version=importlib.metadata.version("gh-activity"),
    prog_name="gh-activity",
)
@click.option(
    "--config",
    "config_path",
    default=".gh-activity.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="GH_ACTIVITY_CONFIG",
)
@click.option("--token", "-t", default=None, help="GitHub personal access token (default: GITHUB_TOKEN or gh CLI).")
@click.option("--user", "-u", default=None, help="GitHub username to track (default: GITHUB_USERNAME).")
@click.option(
    "--format",
    "-f",
    "storage_type",
    type=click.Choice(["json", "sqlite"]),
    default=None,
    help="Storage format. Overrides config file.",
)
@click.option("--path", "-p", "storage_dir", default=None, help="Directory holding the storage file.")
@click.option("--output", "-o", default=None, help="Storage file name; extension added from --format if omitted.")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warn", "error"]),
    default=None,
    help="Log level. Overrides config file.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str,
    token: str | None,
    user: str | None,
    storage_type: str | None,
    storage_dir: str | None,
    output: str | None,
    log_level: str | None,
):
    """Track your GitHub pull requests, issues and reviews across repositories."""
    from ghactivity_cli.auth import resolve_github_token
    from ghactivity_core.config import load_config, validate_config
    from ghactivity_core.errors import ConfigError

    ctx.ensure_object(dict)

    try:
        config = load_config(
            config_path,
            cli_overrides={
                "github_username": user,
                "storage_type": storage_type,
                "storage_dir": storage_dir,
                "output": output,
                "log_level": log_level,
            },
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    errors = validate_config(config, require_credentials=False)
    if errors:
        raise click.UsageError("Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors))

    _configure_logging(config["log_level"])

    # Resolve the token early so every subcommand sees the same value.
    config["github_token"] = resolve_github_token(explicit=token, configured=config.get("github_token"))

    try:
        store = _build_store(config)
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(fetch_cmd)
main.add_command(fetch_prs_cmd)
main.add_command(fetch_issues_cmd)
main.add_command(fetch_reviews_cmd)
main.add_command(summary_cmd)
main.add_command(list_cmd)
