"""Decide what a run has to review, given what earlier runs already covered.

State from earlier runs lives only in the overview comment's payload. A PR
without an overview comment gets a full review. Otherwise the commits listed
in the payload are skipped and the file set is narrowed to files touched
between the last reviewed commit and the current head.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from github import GithubException

from presubmit_core.diff import FileDiff
from presubmit_core.gh.pull_request import Commit, get_incremental_files
from presubmit_core.messages.payload import decode_payload
from presubmit_core.messages.render import merge_commit_shas

logger = logging.getLogger(__name__)

FULL = "full"
INCREMENTAL = "incremental"


@dataclass
class ReviewPlan:
    mode: str
    base_sha: str
    commits_reviewed: list[str] = field(default_factory=list)
    last_reviewed: str | None = None
    commits_to_review: list[Commit] = field(default_factory=list)
    files_to_review: list[FileDiff] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.commits_to_review

    def updated_commits(self) -> list[str]:
        """Payload commit list after this run: previous SHAs plus the new ones."""
        return merge_commit_shas(self.commits_reviewed, [c.sha for c in self.commits_to_review])


def select_commits_to_review(commits: list[Commit], commits_reviewed: list[str]) -> list[Commit]:
    reviewed = set(commits_reviewed)
    return [c for c in commits if c.sha not in reviewed]


def narrow_files(repo, files: list[FileDiff], last_reviewed: str, head_sha: str) -> list[FileDiff]:
    """Keep only files changed in ``last_reviewed..head_sha``.

    If the compare call fails (for example after a force push removed
    ``last_reviewed``) the full file list is returned unchanged.
    """
    if last_reviewed == head_sha:
        return []
    try:
        changed = get_incremental_files(repo, last_reviewed, head_sha)
    except GithubException as e:
        logger.warning(
            "Could not compare %s..%s (%s); falling back to all files.", last_reviewed[:7], head_sha[:7], e
        )
        return files
    if changed is None:
        logger.warning(
            "Compare %s..%s returned no file list; falling back to all files.", last_reviewed[:7], head_sha[:7]
        )
        return files
    changed_names = {f.filename for f in changed}
    return [f for f in files if f.filename in changed_names]


def plan_review(
    repo,
    overview_body: str | None,
    commits: list[Commit],
    files: list[FileDiff],
    head_sha: str,
    base_sha: str,
) -> ReviewPlan:
    """Build the ``ReviewPlan`` for this run.

    ``overview_body`` is the current text of the overview comment, or None
    when the PR has none yet.
    """
    if overview_body is None:
        logger.info("Running full review")
        return ReviewPlan(mode=FULL, base_sha=base_sha, commits_to_review=list(commits), files_to_review=list(files))

    commits_reviewed = decode_payload(overview_body).commits
    if not commits_reviewed:
        logger.info("Overview comment has no reviewed commits; running full review")
        return ReviewPlan(mode=FULL, base_sha=base_sha, commits_to_review=list(commits), files_to_review=list(files))

    logger.info("Running incremental review")
    last_reviewed = commits_reviewed[-1]
    return ReviewPlan(
        mode=INCREMENTAL,
        base_sha=last_reviewed,
        commits_reviewed=commits_reviewed,
        last_reviewed=last_reviewed,
        commits_to_review=select_commits_to_review(commits, commits_reviewed),
        files_to_review=narrow_files(repo, files, last_reviewed, head_sha),
    )
