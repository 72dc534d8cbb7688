"""Subcommands of the gh-activity CLI."""
