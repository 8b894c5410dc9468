"""Recover prior review state from a previously rendered review summary.

This is the reading half of the summary format written by
``presubmit_core.messages.render``; the two must change together. Each
section is located and parsed on its own so a damaged section only loses
its own items.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from presubmit_core.schemas import AIComment

logger = logging.getLogger(__name__)

REVIEW_SUMMARY_HEADING = "### Review Summary"
COMMITS_HEADING = "### Commits Considered"
FILES_HEADING = "### Files Processed"
ACTIONABLE_HEADING = "### Actionable Comments"
SKIPPED_HEADING = "### Skipped Comments"

SUMMARY_TEMPLATE_VERSION = 1
SUMMARY_VERSION_MARKER = f"\n<!-- presubmit.ai: review summary v{SUMMARY_TEMPLATE_VERSION} -->"

SHORT_SHA_LENGTH = 7

_VERSION_RE = re.compile(r"<!-- presubmit\.ai: review summary v(\d+) -->")
_NEXT_SECTION_RE = re.compile(r"^(?:### |<!-- presubmit\.ai:)", re.MULTILINE)
_COMMIT_RE = re.compile(r"^- \[(?P<sha>[0-9a-f]{7})\]\([^)]*\)(?:: (?P<message>.*))?$", re.MULTILINE)
_COMMENT_RE = re.compile(
    r"- <details>\s*<summary>(?P<file>.+?) \[(?P<start>\d+)-(?P<end>\d+)\]</summary>\s*"
    r"> (?P<label>[^\n]*?): \"(?P<header>[^\n]*)\"\s*</details>"
)


@dataclass
class PriorReviewState:
    commits: list[str] = field(default_factory=list)  # short SHAs, oldest first
    commit_messages: dict[str, str] = field(default_factory=dict)
    actionable: list[AIComment] = field(default_factory=list)
    skipped: list[AIComment] = field(default_factory=list)


def short_sha(sha: str) -> str:
    return sha[:SHORT_SHA_LENGTH]


def _section(body: str, heading: str) -> str | None:
    # Headings only count at the start of their own line; commit messages may quote them.
    match = re.search(rf"^{re.escape(heading)}[ \t]*$", body, re.MULTILINE)
    if match is None:
        return None
    start = match.end()
    end = _NEXT_SECTION_RE.search(body, start)
    return body[start : end.start() if end else len(body)]


def _parse_comments(section: str, actionable: bool) -> list[AIComment]:
    comments = []
    for match in _COMMENT_RE.finditer(section):
        label = match.group("label")
        comments.append(
            AIComment(
                file=match.group("file"),
                start_line=int(match.group("start")),
                end_line=int(match.group("end")),
                label=label,
                header=match.group("header"),
                critical=actionable and label.lower() == "critical",
            )
        )
    return comments


def summary_template_version(body: str) -> int | None:
    match = _VERSION_RE.search(body)
    return int(match.group(1)) if match else None


def parse_review_summary(body: str | None) -> PriorReviewState:
    """Parse a review summary body into ``PriorReviewState``.

    Recovered comments only carry their identity fields; ``content`` and
    ``highlighted_code`` are not part of the rendered summary. Bodies
    written by an unknown template version are ignored.
    """
    state = PriorReviewState()
    if not body:
        return state

    version = summary_template_version(body)
    if version is not None and version != SUMMARY_TEMPLATE_VERSION:
        logger.warning("Ignoring review summary written with unknown template version v%d", version)
        return state

    commits_section = _section(body, COMMITS_HEADING)
    if commits_section is not None:
        for match in _COMMIT_RE.finditer(commits_section):
            sha = match.group("sha")
            if sha in state.commit_messages:
                continue
            state.commits.append(sha)
            state.commit_messages[sha] = (match.group("message") or "").strip()

    actionable_section = _section(body, ACTIONABLE_HEADING)
    if actionable_section is not None:
        state.actionable = _parse_comments(actionable_section, actionable=True)

    skipped_section = _section(body, SKIPPED_HEADING)
    if skipped_section is not None:
        state.skipped = _parse_comments(skipped_section, actionable=False)

    return state
