"""GitHub token resolution.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI, explicit override)
  2. `gh auth token` (the GitHub CLI session after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_GH_TIMEOUT_SECONDS = 5


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh missing or hung; treat as "not logged in".
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None if neither source has one."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    token = _token_from_gh_cli()
    if token:
        logger.debug("Using the GitHub token from the gh CLI session.")
    return token
