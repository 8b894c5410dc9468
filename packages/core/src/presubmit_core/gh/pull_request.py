from __future__ import annotations

import logging
from dataclasses import dataclass

from github import Github, GithubException

from presubmit_core.diff import ReviewThread
from presubmit_core.messages.parser import REVIEW_SUMMARY_HEADING
from presubmit_core.messages.payload import is_overview_comment

logger = logging.getLogger(__name__)

_TEMPLATE_PATHS = (
    ".github/pull_request_template.md",
    ".github/PULL_REQUEST_TEMPLATE.md",
    "pull_request_template.md",
    "PULL_REQUEST_TEMPLATE.md",
    "docs/pull_request_template.md",
)


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author_email: str | None = None


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def to_commit(gh_commit) -> Commit:
    author = getattr(gh_commit.commit, "author", None)
    return Commit(
        sha=gh_commit.sha,
        message=gh_commit.commit.message or "",
        author_email=getattr(author, "email", None),
    )


def list_commits(pr) -> list[Commit]:
    return [to_commit(c) for c in pr.get_commits()]


def list_files(pr) -> list:
    return list(pr.get_files())


def find_overview_comment(pr):
    """Return the issue comment carrying the overview signature, or None."""
    for comment in pr.get_issue_comments():
        if is_overview_comment(comment.body):
            return comment
    return None


def find_latest_review_summary(pr) -> str | None:
    """Body of the most recent review that contains a review summary."""
    latest = None
    for review in pr.get_reviews():
        if REVIEW_SUMMARY_HEADING in (review.body or ""):
            latest = review.body
    return latest


def list_review_threads(pr) -> list[ReviewThread]:
    """Group inline review comments into threads keyed by their root comment.

    The REST API does not expose thread resolution, so every thread is
    reported as unresolved.
    """
    threads: dict[int, ReviewThread] = {}
    replies = []
    for comment in pr.get_review_comments():
        if getattr(comment, "in_reply_to_id", None):
            replies.append(comment)
            continue
        end = comment.line if comment.line is not None else getattr(comment, "original_line", None)
        if end is None:
            continue
        start = getattr(comment, "start_line", None) or end
        threads[comment.id] = ReviewThread(
            file=comment.path,
            start_line=start,
            end_line=end,
            comments=[comment.body or ""],
        )
    for reply in replies:
        thread = threads.get(reply.in_reply_to_id)
        if thread is not None:
            thread.comments.append(reply.body or "")
    return list(threads.values())


def get_incremental_files(repo, base_sha: str, head_sha: str):
    """Return files changed between two commits using GitHub's compare API."""
    comparison = repo.compare(base_sha, head_sha)
    return comparison.files


def get_pull_request_template(repo, ref: str | None = None) -> str | None:
    """Contents of the repository's pull request template, if it has one."""
    for path in _TEMPLATE_PATHS:
        try:
            if ref:
                contents = repo.get_contents(path, ref=ref)
            else:
                contents = repo.get_contents(path)
        except GithubException:
            continue
        if isinstance(contents, list):
            continue
        return contents.decoded_content.decode("utf-8", errors="replace")
    logger.debug("No pull request template found in repository.")
    return None
