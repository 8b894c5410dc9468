"""Prompts for summarizing, reviewing and describing a pull request.

Each prompt asks for a JSON object and validates it against the models in
``presubmit_core.schemas``. Malformed output is downgraded (a fallback
summary, no findings, the untouched description) instead of failing the run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from presubmit_core.diff import FileDiff, format_file_diff
from presubmit_core.providers.base import ProviderError
from presubmit_core.schemas import AIComment, PullRequestSummary, ReviewResult

if TYPE_CHECKING:
    from presubmit_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 20000

_SUMMARY_SYSTEM = """You are an expert software engineer summarizing a GitHub pull request.
Read the title, description, commit messages and diffs, then describe what the pull request does.

Respond with only a JSON object of this shape:
{
  "title": "<concise pull request title, imperative mood, under 70 characters>",
  "description": "<two to five sentence description of the change and its motivation>",
  "type": ["<one or more of: feature, bugfix, refactor, docs, test, chore, performance, security>"],
  "files": [
    {"filename": "<path>", "title": "<one line title of the change>", "summary": "<one or two sentences>"}
  ]
}
List every file that appears in the diffs exactly once."""

_REVIEW_SYSTEM = """You are a strict and precise senior code reviewer.
Review the changes below and report only real problems: bugs, security issues, data loss,
race conditions, broken error handling, and typos in identifiers, strings or docs.
Do not comment on code that already follows best practices. Avoid assumptions when context is unclear.
Line numbers in the diffs are new-file line numbers; cite them exactly.
Do not repeat a point already raised in an existing comment thread.

Respond with only a JSON object of this shape:
{
  "comments": [
    {
      "file": "<path>",
      "start_line": <first new-file line the comment applies to>,
      "end_line": <last new-file line, omit for a comment about the whole file>,
      "label": "<one of: bug, security, performance, typo, maintainability, style, other>",
      "header": "<one line headline of the issue>",
      "content": "<concise, actionable explanation in GitHub-flavored markdown>",
      "highlighted_code": "<the offending lines, verbatim>",
      "critical": <true if this must be fixed before merging>
    }
  ]
}
If there are no issues, return {"comments": []}."""

_TEMPLATE_SYSTEM = """You write pull request descriptions.
Fill in the pull request template using the information provided. Keep the template's headings,
replace placeholder text, tick checklist items only when the changes clearly satisfy them,
and keep any useful text from the existing description.

Respond with only a JSON object of this shape:
{"description": "<the filled template in GitHub-flavored markdown>"}"""

DEFAULT_PR_TEMPLATE = """## Summary

## Changes

## Testing
"""


def _format_files(files: list[FileDiff], max_chars: int) -> str:
    return "\n\n".join(format_file_diff(f, max_chars=max_chars) for f in files)


def _format_commits(commit_messages: list[str]) -> str:
    return "\n".join(f"- {m.strip().splitlines()[0]}" for m in commit_messages if m.strip())


def run_summary_prompt(
    provider: BaseProvider,
    pr_title: str,
    pr_description: str,
    commit_messages: list[str],
    files: list[FileDiff],
    max_chars: int = DEFAULT_MAX_CHARS,
) -> PullRequestSummary:
    """Summarize the pull request.

    Raises ``ProviderError`` if the model cannot be reached at all. A
    response that does not match the schema yields a summary that echoes
    the current title and description.
    """
    user = f"""## Title
{pr_title}

## Description
{pr_description or "(empty)"}

## Commits
{_format_commits(commit_messages)}

## Diffs
{_format_files(files, max_chars)}"""

    try:
        data = provider.complete_json(_SUMMARY_SYSTEM, user)
        return PullRequestSummary.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.warning("Summary response was not usable: %s", e)
        return PullRequestSummary(title=pr_title, description=pr_description)


def _valid_comments(raw_comments) -> list[AIComment]:
    comments = []
    for raw in raw_comments if isinstance(raw_comments, list) else []:
        try:
            comments.append(AIComment.model_validate(raw))
        except ValidationError as e:
            logger.debug("Dropping malformed review comment %r: %s", raw, e)
    return comments


def run_review_prompt(
    provider: BaseProvider,
    files: list[FileDiff],
    pr_title: str,
    pr_description: str,
    pr_summary: str,
    style_guide_rules: str | None = None,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> ReviewResult:
    """Ask the model for findings on ``files``.

    Any failure yields an empty result; malformed individual comments are
    dropped.
    """
    if not files:
        return ReviewResult()

    system = _REVIEW_SYSTEM
    if style_guide_rules:
        system += f"\n\nAlso enforce the team's style guide:\n{style_guide_rules}"

    user = f"""## Pull request
Title: {pr_title}

Description:
{pr_description or "(empty)"}

Summary of changes:
{pr_summary}

## Diffs
{_format_files(files, max_chars)}"""

    try:
        data = provider.complete_json(system, user)
    except (ProviderError, ValueError) as e:
        logger.warning("Review failed: %s", e)
        return ReviewResult()
    if not isinstance(data, dict):
        logger.warning("Review response was not a JSON object; ignoring it.")
        return ReviewResult()
    return ReviewResult(comments=_valid_comments(data.get("comments")))


def fill_pr_template(
    provider: BaseProvider,
    template: str | None,
    pr_title: str,
    pr_description: str,
    commit_messages: list[str],
    files: list[FileDiff],
    max_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    """Return a filled pull request description, or the current one on failure."""
    user = f"""## Template
{template or DEFAULT_PR_TEMPLATE}

## Title
{pr_title}

## Existing description
{pr_description or "(empty)"}

## Commits
{_format_commits(commit_messages)}

## Diffs
{_format_files(files, max_chars)}"""

    try:
        data = provider.complete_json(_TEMPLATE_SYSTEM, user)
    except (ProviderError, ValueError) as e:
        logger.warning("Could not fill pull request template: %s", e)
        return pr_description
    description = data.get("description") if isinstance(data, dict) else None
    if not isinstance(description, str) or not description.strip():
        logger.warning("Template response had no description; keeping the current one.")
        return pr_description
    return description.strip()
