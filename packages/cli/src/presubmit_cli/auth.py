"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (Actions, CI, explicit override)
  2. `gh auth token` (GitHub CLI session, for local runs)
"""

from __future__ import annotations

import logging
import os
import subprocess

import click

logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available."""
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
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh missing or hung; no token from this source.
        pass

    return None


def require_credentials(config: dict) -> None:
    """Raise ``click.UsageError`` when a credential needed for a run is missing."""
    from presubmit_core.config import provider_api_key

    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    if config.get("model") not in ("anthropic", "openai"):
        raise click.UsageError(f"Unknown model provider {config.get('model')!r}. Choose 'anthropic' or 'openai'.")
    if not provider_api_key(config):
        env_var = "ANTHROPIC_API_KEY" if config["model"] == "anthropic" else "OPENAI_API_KEY"
        raise click.UsageError(f"{env_var} (or LLM_API_KEY) environment variable is not set.")
