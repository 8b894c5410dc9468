"""review command — run presubmit on an existing pull request."""

from __future__ import annotations

import click
from rich.console import Console

from presubmit_core.gh.event import event_from_pull
from presubmit_core.gh.pull_request import get_pull, get_repo
from presubmit_core.handler import handle_pull_request

console = Console()


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--action",
    type=click.Choice(["synchronize", "opened", "reopened", "closed"]),
    default="synchronize",
    show_default=True,
    help="Event action to simulate. 'synchronize' runs the review only.",
)
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.pass_context
def review_cmd(ctx, repo: str, pr_number: int, action: str, model: str | None):
    """Review a pull request as if GitHub had sent a pull_request event.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
      LLM_API_KEY          Accepted for either provider
    """
    from presubmit_cli.auth import require_credentials

    config = dict(ctx.obj["config"])
    if model is not None:
        config["model"] = model
    require_credentials(config)

    this_repo = get_repo(repo, token=config["github_token"])
    this_pr = get_pull(this_repo, pr_number)
    event = event_from_pull(repo, this_pr, action=action)

    outcome = handle_pull_request(event, config, repo=this_repo)
    if outcome is None:
        return
    console.print(
        f"[bold]{outcome.mode.capitalize()} review of #{outcome.pr_number}:[/bold] "
        f"{len(outcome.commits_reviewed)} commit(s), {len(outcome.files_reviewed)} file(s), "
        f"{outcome.actionable} posted, {outcome.skipped} skipped."
    )
