"""Command-line interface for gh-activity."""
