"""Pull request event handling.

One invocation per webhook delivery:

    closed            → sync Jira tickets, stop
    opened / reopened → summarize, link tickets, rewrite title and description
    anything else     → (also after opened / reopened) incremental review

The review path keeps no state of its own. What was already reviewed is
read back from the overview comment, and everything it writes goes back
into that comment and the review summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rich.console import Console

from presubmit_core.config import jira_enabled, provider_api_key
from presubmit_core.diagrams import format_diagram_markdown, generate_diagram
from presubmit_core.diff import parse_file_diff
from presubmit_core.gh.event import SUPPORTED_EVENTS, Event
from presubmit_core.gh.pull_request import (
    find_overview_comment,
    get_pull,
    get_pull_request_template,
    get_repo,
    list_commits,
    list_files,
    list_review_threads,
)
from presubmit_core.jira import JiraClient, discover_tickets, format_ticket_references, sync_tickets_on_close
from presubmit_core.messages.render import render_loading, render_overview
from presubmit_core.prompts import fill_pr_template, run_review_prompt, run_summary_prompt
from presubmit_core.providers.anthropic import AnthropicProvider
from presubmit_core.providers.openai import OpenAIProvider
from presubmit_core.reconciler import plan_review
from presubmit_core.submission import submit_review
from presubmit_core.utils.files import is_reviewable

console = Console()
logger = logging.getLogger(__name__)

IGNORE_PHRASES = (
    "@presubmit ignore",
    "@presubmit: ignore",
    "@presubmit skip",
    "@presubmit: skip",
    "@presubmitai ignore",
    "@presubmitai: ignore",
    "@presubmitai skip",
    "@presubmitai: skip",
)
TITLE_MENTIONS = ("@presubmitai", "@presubmit")


@dataclass
class ReviewOutcome:
    """What one review run did; returned to the CLI for reporting."""

    repo: str
    pr_number: int
    head_sha: str
    mode: str
    commits_reviewed: list[str] = field(default_factory=list)
    files_reviewed: list[str] = field(default_factory=list)
    actionable: int = 0
    skipped: int = 0
    used_fallback: bool = False


def _get_provider(config: dict):
    model = config["model"]
    api_key = provider_api_key(config)
    if model == "anthropic":
        return AnthropicProvider(api_key=api_key, model=config.get("llm_model"))
    if model == "openai":
        return OpenAIProvider(api_key=api_key, model=config.get("llm_model"))
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def _get_jira(config: dict) -> JiraClient | None:
    return JiraClient.from_config(config) if jira_enabled(config) else None


def should_ignore_pull_request(body: str | None) -> bool:
    body_lower = (body or "").lower()
    for phrase in IGNORE_PHRASES:
        if phrase in body_lower:
            console.print(f"[yellow]Ignoring pull request because of '{phrase}' in description.[/yellow]")
            return True
    return False


def handle_pull_request(event: Event, config: dict, repo=None, provider=None, jira=None) -> ReviewOutcome | None:
    """Entry point for a single webhook delivery.

    Returns the ``ReviewOutcome`` when a review ran, otherwise None.
    """
    if event.name not in SUPPORTED_EVENTS:
        logger.warning("Unsupported GitHub event: %r", event.name)
        return None
    pr_data = event.pull_request
    if not pr_data:
        logger.warning("`pull_request` is missing from payload")
        return None
    if should_ignore_pull_request(pr_data.get("body")):
        return None

    this_repo = repo if repo is not None else get_repo(event.repository, token=config["github_token"])
    this_pr = get_pull(this_repo, pr_data["number"])
    if jira is None:
        jira = _get_jira(config)

    commits = list_commits(this_pr)
    console.print(f"Fetched {len(commits)} commit(s) for PR #{pr_data['number']}.")

    if event.action == "closed":
        if jira is not None:
            sync_tickets_on_close(
                jira, pr_data.get("body") or "", [c.message for c in commits], bool(pr_data.get("merged"))
            )
        return None

    if provider is None:
        provider = _get_provider(config)

    if event.action in ("opened", "reopened"):
        describe_pull_request(this_repo, this_pr, pr_data, commits, config, provider, jira)

    return run_review(this_repo, this_pr, event.repository, pr_data, commits, config, provider)


def describe_pull_request(repo, pr, pr_data: dict, commits: list, config: dict, provider, jira=None) -> None:
    """Rewrite the title and description of a newly opened pull request."""
    console.print(f"PR #{pr_data['number']} opened, generating title and description...")
    commit_messages = [c.message for c in commits]
    raw_files = list_files(pr)
    files = [parse_file_diff(f) for f in raw_files]
    max_chars = config.get("max_chars_per_file", 20000)
    body = pr_data.get("body") or ""

    summary = run_summary_prompt(provider, pr_data.get("title", ""), body, commit_messages, files, max_chars)

    tickets, ticket_types = [], {}
    if jira is not None:
        head = pr_data.get("head") or {}
        tickets, ticket_types = discover_tickets(
            jira,
            branch=head.get("ref") or "",
            commit_messages=commit_messages,
            title=summary.title,
            description=summary.description,
            default_project=config.get("jira_default_project"),
            pr={
                "url": pr_data.get("html_url"),
                "branch": head.get("ref"),
                "author": (pr_data.get("user") or {}).get("login"),
                "author_email": commits[0].author_email if commits else None,
                "files": [f.filename for f in files],
                "commit_messages": commit_messages,
            },
            user_map=config.get("jira_user_map"),
        )

    template = get_pull_request_template(repo)
    description = fill_pr_template(provider, template, summary.title, body, commit_messages, files, max_chars)
    if tickets:
        description = f"{format_ticket_references(jira, tickets, ticket_types)}\n{description}"

    pr.edit(title=summary.title, body=description)
    console.print(f'Updated PR title to: "{summary.title}"')
    if tickets:
        console.print(f"Linked Jira tickets: {', '.join(tickets)}")


def run_review(
    repo, pr, repo_name: str, pr_data: dict, commits: list, config: dict, provider
) -> ReviewOutcome | None:
    """Review whatever changed since the last run.

    Returns None without touching the pull request when every commit has
    already been reviewed.
    """
    head_sha = pr_data["head"]["sha"]
    base_sha = pr_data["base"]["sha"]
    pr_title = pr_data.get("title") or ""
    pr_body = pr_data.get("body") or ""
    max_chars = config.get("max_chars_per_file", 20000)

    overview = find_overview_comment(pr)
    threads = list_review_threads(pr) if overview is not None else []
    raw_files = list_files(pr)
    all_files = [parse_file_diff(f, threads) for f in raw_files]

    overview_body = overview.body if overview is not None else None
    plan = plan_review(repo, overview_body, commits, all_files, head_sha, base_sha)
    if plan.is_noop:
        console.print("[yellow]No new commits to review. Nothing to do.[/yellow]")
        return None

    console.print(
        f"[cyan]{plan.mode.capitalize()} review: {len(plan.commits_to_review)} commit(s), "
        f"{len(plan.files_to_review)} file(s)[/cyan]"
    )

    loading = render_loading(repo_name, plan.base_sha, plan.commits_to_review, plan.files_to_review)
    if overview is not None:
        overview.edit(loading)
        logger.info("Updated existing overview comment")
    else:
        overview = pr.create_issue_comment(loading)
        logger.info("Posted new overview loading comment")

    commit_messages = [c.message for c in commits]
    summary = run_summary_prompt(provider, pr_title, pr_body, commit_messages, all_files, max_chars)
    console.print(f"Generated pull request summary: {summary.title}")

    if any(mention in pr_title for mention in TITLE_MENTIONS):
        logger.info("Title mentions presubmit.ai, so generating a new title")
        pr.edit(title=summary.title)

    diagram = ""
    if config.get("generate_diagrams"):
        diagram = format_diagram_markdown(generate_diagram(provider, summary, all_files, commit_messages))

    overview.edit(render_overview(summary, plan.updated_commits(), diagram))
    logger.info("Updated overview comment with walkthrough")

    exclude = config.get("exclude", [])
    reviewable = [f for f in plan.files_to_review if is_reviewable(f.filename, exclude)]
    review = run_review_prompt(
        provider,
        reviewable,
        pr_title,
        pr_body,
        summary.description,
        style_guide_rules=config.get("style_guide_rules"),
        max_chars=max_chars,
    )

    filenames = {f.filename for f in all_files}
    comments = [c for c in review.comments if c.content.strip() and c.file in filenames]
    result = submit_review(
        repo,
        pr,
        repo_name,
        head_sha,
        comments,
        plan.commits_to_review,
        plan.files_to_review,
        max_workers=config.get("max_workers", 4),
    )
    posted = result.line_comments_posted + result.file_comments_posted
    console.print(f"[green]Review posted: {posted} comment(s), {len(result.skipped)} skipped.[/green]")

    return ReviewOutcome(
        repo=repo_name,
        pr_number=pr_data["number"],
        head_sha=head_sha,
        mode=plan.mode,
        commits_reviewed=[c.sha for c in plan.commits_to_review],
        files_reviewed=[f.filename for f in reviewable],
        actionable=result.line_comments_posted + result.line_comments_failed,
        skipped=len(result.skipped),
        used_fallback=result.used_fallback,
    )
