"""Code-host identity resolution for `mrlens login`.

Resolution order for the access token (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session, works after `gh auth login`)

The refresh token is only ever read from GITHUB_REFRESH_TOKEN.
"""

from __future__ import annotations

import logging
import os
import subprocess

from mrlens_core.session import ProviderIdentity

logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return an access token or None if no valid source is available.

    Never raises; callers check for None and emit a UsageError.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved access token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out
        pass

    return None


def resolve_identity(name: str | None = None) -> ProviderIdentity:
    """Bundle the resolved token pair with the display name given on the command line."""
    return ProviderIdentity(
        access_token=resolve_github_token(),
        refresh_token=os.environ.get("GITHUB_REFRESH_TOKEN"),
        name=name,
    )
