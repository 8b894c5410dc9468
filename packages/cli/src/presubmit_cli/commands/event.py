"""event command — handle the webhook event that triggered a GitHub Actions run."""

from __future__ import annotations

import click

from presubmit_core.gh.event import load_event
from presubmit_core.handler import handle_pull_request


@click.command("event")
@click.option("--event-name", default=None, help="Event name. Defaults to GITHUB_EVENT_NAME.")
@click.option(
    "--event-path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the event payload JSON. Defaults to GITHUB_EVENT_PATH.",
)
@click.option("--repo", default=None, help="owner/name. Defaults to GITHUB_REPOSITORY.")
@click.pass_context
def event_cmd(ctx, event_name: str | None, event_path: str | None, repo: str | None):
    """Handle a pull_request / pull_request_target event."""
    from presubmit_cli.auth import require_credentials

    config = ctx.obj["config"]
    try:
        event = load_event(event_name, event_path, repo)
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))
    if not event.repository:
        raise click.UsageError("Could not determine the repository. Pass --repo or set GITHUB_REPOSITORY.")

    require_credentials(config)
    handle_pull_request(event, config)
