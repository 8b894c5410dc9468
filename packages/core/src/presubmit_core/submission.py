"""Posting findings and the review summary back to the pull request.

File-level findings are posted one by one. Line findings that pass the
posting policy go out as a single review; if that call fails they are
posted one by one instead. Individual failures are logged and never stop
the remaining submissions.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from github import GithubException

from presubmit_core.gh.pull_request import find_latest_review_summary
from presubmit_core.messages.render import build_comment, render_review_summary

logger = logging.getLogger(__name__)

T = TypeVar("T")

POSTED_LABELS = {"typo"}
DEFAULT_MAX_WORKERS = 4


@dataclass
class SubmissionResult:
    file_comments_posted: int = 0
    file_comments_failed: int = 0
    line_comments_posted: int = 0
    line_comments_failed: int = 0
    skipped: list = field(default_factory=list)
    used_fallback: bool = False
    summary_posted: bool = False


def settle_all(
    fn: Callable[[T], object],
    items: list[T],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[Exception | None]:
    """Run ``fn`` on every item concurrently and wait for all of them.

    Returns one entry per item, in order: None on success, the raised
    exception otherwise. A failing item never cancels the others.
    """
    if not items:
        return []

    def _run(item: T) -> Exception | None:
        try:
            fn(item)
        except Exception as e:
            return e
        return None

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as executor:
        return list(executor.map(_run, items))


def should_post(comment) -> bool:
    """Posting policy for line findings; everything else is only summarized."""
    return comment.critical or comment.label in POSTED_LABELS


def split_comments(comments: list) -> tuple[list, list, list]:
    """Split findings into (file comments, line comments to post, skipped)."""
    file_comments, line_comments, skipped = [], [], []
    for comment in comments:
        if comment.is_file_comment:
            file_comments.append(comment)
        elif should_post(comment):
            line_comments.append(comment)
        else:
            skipped.append(comment)
    return file_comments, line_comments, skipped


def review_comment_payload(comment) -> dict:
    data = {
        "path": comment.file,
        "body": build_comment(comment.content),
        "line": comment.end_line,
        "side": "RIGHT",
    }
    if comment.start_line and comment.start_line < comment.end_line:
        data["start_line"] = comment.start_line
        data["start_side"] = "RIGHT"
    return data


def submit_review(
    repo,
    pr,
    repo_name: str,
    head_sha: str,
    comments: list,
    commits: list,
    files: list,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> SubmissionResult:
    result = SubmissionResult()
    file_comments, line_comments, skipped = split_comments(comments)
    result.skipped = skipped

    def post_file_comment(comment) -> None:
        pr.create_review_comment(
            body=build_comment(comment.content),
            commit=head_sha,
            path=comment.file,
            subject_type="file",
        )

    def post_line_comment(comment) -> None:
        data = review_comment_payload(comment)
        kwargs = {k: v for k, v in data.items() if k not in ("path", "body")}
        pr.create_review_comment(body=data["body"], commit=head_sha, path=data["path"], **kwargs)

    for comment, error in zip(file_comments, settle_all(post_file_comment, file_comments, max_workers)):
        if error is None:
            result.file_comments_posted += 1
        else:
            result.file_comments_failed += 1
            logger.warning("Error creating file comment on %s: %s", comment.file, error)

    try:
        previous_summary = find_latest_review_summary(pr)
    except GithubException as e:
        logger.warning("Could not list previous reviews: %s", e)
        previous_summary = None

    summary = render_review_summary(repo_name, files, commits, line_comments, skipped, previous_summary)

    try:
        # create_review only takes a Commit object, not a SHA.
        pr.create_review(
            commit=repo.get_commit(head_sha),
            body=summary,
            event="COMMENT",
            comments=[review_comment_payload(c) for c in line_comments],
        )
        result.line_comments_posted = len(line_comments)
        result.summary_posted = True
        return result
    except Exception as e:
        logger.warning("Error submitting review: %s", e)

    logger.info("Trying to submit comments one by one")
    result.used_fallback = True
    for comment, error in zip(line_comments, settle_all(post_line_comment, line_comments, max_workers)):
        if error is None:
            result.line_comments_posted += 1
        else:
            result.line_comments_failed += 1
            logger.warning("Error creating comment on %s:%s: %s", comment.file, comment.end_line, error)

    # Summary-only review; inline comments were handled above.
    try:
        pr.create_review(body=summary, event="COMMENT")
        result.summary_posted = True
    except Exception as e:
        logger.warning("Error posting review summary: %s", e)
    return result
