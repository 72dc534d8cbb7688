"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. --token on the command line
  2. github_token from the loaded config (GITHUB_TOKEN or .gh-activity.yml)
  3. `gh auth token` (GitHub CLI session, works after `gh auth login`)
"""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)


def _gh_cli_token() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or hung.
        return None
    if result.returncode != 0:
        return None
    token = result.stdout.strip()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token or None


def resolve_github_token(explicit: str | None = None, configured: str | None = None) -> str | None:
    """Return a GitHub token or None if no source provides one.

    Never raises. Callers decide whether a missing token is a usage error.
    """
    if explicit:
        return explicit
    if configured:
        return configured
    return _gh_cli_token()
