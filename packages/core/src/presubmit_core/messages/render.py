"""Markdown rendering for the overview comment and the review summary.

Output must be deterministic for a given input: the next run parses it back
(see ``presubmit_core.messages.parser``), so headings and item layouts here
are part of the persisted format.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from presubmit_core.messages.parser import (
    ACTIONABLE_HEADING,
    COMMITS_HEADING,
    FILES_HEADING,
    REVIEW_SUMMARY_HEADING,
    SKIPPED_HEADING,
    SUMMARY_VERSION_MARKER,
    parse_review_summary,
    short_sha,
)
from presubmit_core.messages.payload import (
    COMMENT_SIGNATURE,
    OVERVIEW_MESSAGE_SIGNATURE,
    ReviewPayload,
    encode_payload,
)

if TYPE_CHECKING:
    from presubmit_core.diff import FileDiff
    from presubmit_core.gh.pull_request import Commit
    from presubmit_core.schemas import AIComment, PullRequestSummary

LGTM_VERDICT = "✅ **LGTM!**"
ATTENTION_VERDICT = "🚨 **Pull request needs attention.**"

_STATUS_PREFIX = {"added": "➕", "removed": "➖", "renamed": "📝"}


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0] if text.strip() else ""


def _one_line(text: str) -> str:
    return " ".join(text.split())


def _commit_url(repo_name: str, sha: str) -> str:
    return f"https://github.com/{repo_name}/commit/{sha}"


def _file_line(diff: FileDiff) -> str:
    text = diff.filename
    if diff.status == "renamed" and diff.previous_filename:
        text += f" (from {diff.previous_filename})"
    return f"{text} _({diff.hunk_label})_"


def build_comment(content: str) -> str:
    """Body of an inline comment posted by the bot."""
    return content + COMMENT_SIGNATURE


def render_loading(repo_name: str, base_sha: str, commits: list[Commit], files: list[FileDiff]) -> str:
    """Progress message shown in the overview comment while a run is in flight."""
    lines = [
        "⏳ **Analyzing changes in this PR...** ⏳",
        "",
        "_This might take a few minutes, please wait_",
        "",
        "<details>",
        "<summary>📥 Commits</summary>",
        "",
    ]
    if commits:
        lines.append(
            f"Analyzing changes from base (`{short_sha(base_sha)}`) "
            f"to latest commit (`{short_sha(commits[-1].sha)}`):"
        )
    for commit in reversed(commits):
        lines.append(
            f"- [{short_sha(commit.sha)}]({_commit_url(repo_name, commit.sha)}): {_first_line(commit.message)}"
        )
    lines += ["", "</details>", "", "<details>", f"<summary>📁 Files being considered ({len(files)})</summary>", ""]
    for diff in files:
        lines.append(f"{_STATUS_PREFIX.get(diff.status, '🔄')} {_file_line(diff)}")
    lines += ["", "</details>", ""]
    return "\n".join(lines) + OVERVIEW_MESSAGE_SIGNATURE


def render_overview(summary: PullRequestSummary, commits: list[str], diagram: str = "") -> str:
    """Final overview comment: per-file walkthrough plus the encoded payload."""
    lines = ["### Changes", ""]
    for file in summary.files:
        heading = f"**{file.filename}**"
        if file.title:
            heading += f": {_one_line(file.title)}"
        lines += [heading, file.summary.strip(), ""]
    text = "\n".join(lines)
    if diagram:
        text += "\n" + diagram
    return text + OVERVIEW_MESSAGE_SIGNATURE + encode_payload(ReviewPayload(commits=list(commits)))


def merge_comments(previous: Iterable[AIComment], current: Iterable[AIComment]) -> list[AIComment]:
    """Concatenate two finding lists, keeping the first of each identity."""
    seen: set[tuple] = set()
    merged = []
    for comment in [*previous, *current]:
        if comment.identity in seen:
            continue
        seen.add(comment.identity)
        merged.append(comment)
    return merged


def merge_commit_shas(previous: list[str], current: list[str]) -> list[str]:
    """Append unseen SHAs from ``current`` to ``previous``, preserving order."""
    merged = list(dict.fromkeys(previous))
    for sha in current:
        if sha not in merged:
            merged.append(sha)
    return merged


def _render_comment_items(comments: list[AIComment]) -> list[str]:
    lines = []
    for comment in comments:
        lines += [
            "- <details>",
            f"  <summary>{comment.file} [{comment.start_line}-{comment.end_line}]</summary>",
            "",
            f'  > {_one_line(comment.label)}: "{_one_line(comment.header)}"',
            "  </details>",
        ]
    return lines


def _collapsible(heading: str, title: str, items: list[str]) -> list[str]:
    return [heading, "", "<details>", f"<summary>{title}</summary>", "", *items, "", "</details>", ""]


def render_review_summary(
    repo_name: str,
    files: list[FileDiff],
    commits: list[Commit],
    actionable: list[AIComment],
    skipped: list[AIComment],
    previous_summary: str | None = None,
) -> str:
    """Review summary merged with whatever the previous summary recorded.

    The verdict reflects this run's actionable findings; the lists carry
    every distinct finding recorded so far.
    """
    prior = parse_review_summary(previous_summary)

    messages = dict(prior.commit_messages)
    for commit in commits:
        messages[short_sha(commit.sha)] = _first_line(commit.message)
    all_commits = merge_commit_shas(prior.commits, [short_sha(c.sha) for c in commits])

    all_actionable = merge_comments(prior.actionable, actionable)
    all_skipped = merge_comments(prior.skipped, skipped)

    commit_items = []
    for sha in all_commits:
        item = f"- [{sha}]({_commit_url(repo_name, sha)})"
        if messages.get(sha):
            item += f": {messages[sha]}"
        commit_items.append(item)

    lines = [LGTM_VERDICT if not actionable else ATTENTION_VERDICT, "", REVIEW_SUMMARY_HEADING, ""]
    lines += _collapsible(COMMITS_HEADING, f"Commits Considered ({len(all_commits)})", commit_items)
    lines += _collapsible(FILES_HEADING, f"Files Processed ({len(files)})", [f"- {_file_line(f)}" for f in files])
    lines += _collapsible(
        ACTIONABLE_HEADING,
        f"Actionable Comments ({len(all_actionable)})",
        _render_comment_items(all_actionable),
    )
    lines += _collapsible(
        SKIPPED_HEADING,
        f"Skipped Comments ({len(all_skipped)})",
        _render_comment_items(all_skipped),
    )
    return "\n".join(lines) + SUMMARY_VERSION_MARKER
