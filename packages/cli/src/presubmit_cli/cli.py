"""CLI entry point for presubmit.

Commands:
  event   — handle a GitHub pull request webhook event (GitHub Actions)
  review  — run the review flow on an existing pull request
"""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from presubmit_cli.commands.event import event_cmd
from presubmit_cli.commands.review import review_cmd


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # PyGithub and urllib3 are chatty at DEBUG.
    for noisy in ("github", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(package_name="presubmit", prog_name="presubmit")
@click.option(
    "--config",
    "config_path",
    default=".presubmit.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRESUBMIT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI pull request reviewer with incremental reviews and Jira sync."""
    from presubmit_cli.auth import resolve_github_token
    from presubmit_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve the token once so every subcommand sees the same one.
    token = config.get("github_token") or resolve_github_token()
    if token:
        config["github_token"] = token

    ctx.obj["config"] = config


main.add_command(event_cmd)
main.add_command(review_cmd)
