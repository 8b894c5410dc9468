"""Structured per-file view of a pull request diff.

A ``FileDiff`` is rebuilt from the host's file list on every run and is never
persisted; only its rendering ends up in comment text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

FILE_STATUSES = ("added", "removed", "modified", "renamed")


@dataclass
class ReviewThread:
    """An existing inline comment thread on the pull request."""

    file: str
    start_line: int
    end_line: int
    comments: list[str] = field(default_factory=list)
    resolved: bool = False

    def overlaps(self, start: int, end: int) -> bool:
        return self.start_line <= end and start <= self.end_line


@dataclass
class Hunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[str] = field(default_factory=list)
    comment_threads: list[ReviewThread] = field(default_factory=list)

    @property
    def new_end(self) -> int:
        # Pure deletions have zero new lines; anchor them on new_start.
        return self.new_start + max(self.new_lines, 1) - 1


@dataclass
class FileDiff:
    filename: str
    status: str
    previous_filename: str | None = None
    hunks: list[Hunk] = field(default_factory=list)
    patch: str = ""

    @property
    def hunk_label(self) -> str:
        count = len(self.hunks)
        return f"{count} {'hunk' if count == 1 else 'hunks'}"


def _attr(raw, name: str, default=None):
    if isinstance(raw, dict):
        return raw.get(name, default)
    return getattr(raw, name, default)


def parse_hunks(patch: str) -> list[Hunk]:
    """Split a unified diff patch into hunks.

    Lines before the first ``@@`` header are ignored. Headers that do not
    parse start no hunk, and their body lines are dropped.
    """
    hunks: list[Hunk] = []
    current: Hunk | None = None
    for line in patch.splitlines():
        if line.startswith("@@"):
            match = _HUNK_HEADER_RE.match(line)
            if match is None:
                logger.debug("Ignoring malformed hunk header: %s", line)
                current = None
                continue
            old_start, old_lines, new_start, new_lines = match.groups()
            current = Hunk(
                old_start=int(old_start),
                old_lines=int(old_lines) if old_lines is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_lines) if new_lines is not None else 1,
            )
            hunks.append(current)
            continue
        if current is not None:
            current.lines.append(line)
    return hunks


def parse_file_diff(raw_file, threads: list[ReviewThread] | None = None) -> FileDiff:
    """Build a ``FileDiff`` from a changed-file record.

    ``raw_file`` may be a PyGithub ``File`` or a plain dict with the same
    field names. Unresolved threads on the same file are attached to every
    hunk whose new-file range they overlap. Files without a patch (binary
    changes, very large diffs) come back with no hunks.
    """
    filename = _attr(raw_file, "filename")
    status = _attr(raw_file, "status") or "modified"
    if status not in FILE_STATUSES:
        # GitHub also reports "copied", "changed" and "unchanged".
        status = "modified"
    previous_filename = _attr(raw_file, "previous_filename") if status == "renamed" else None
    patch = _attr(raw_file, "patch") or ""

    hunks = parse_hunks(patch)
    for thread in threads or []:
        if thread.resolved or thread.file != filename:
            continue
        for hunk in hunks:
            if thread.overlaps(hunk.new_start, hunk.new_end):
                hunk.comment_threads.append(thread)

    return FileDiff(
        filename=filename,
        status=status,
        previous_filename=previous_filename,
        hunks=hunks,
        patch=patch,
    )


def format_file_diff(diff: FileDiff, max_chars: int | None = None) -> str:
    """Render a file diff for a prompt, with new-file line numbers.

    Added and context lines are prefixed with their line number in the new
    file so the model can cite exact ranges. Existing threads are listed
    after the hunk they are anchored to.
    """
    header = f"## File: {diff.filename}"
    if diff.status == "renamed" and diff.previous_filename:
        header += f" (renamed from {diff.previous_filename})"
    out = [header, f"Status: {diff.status}"]
    if not diff.hunks:
        out.append("(no textual changes)")

    for hunk in diff.hunks:
        out.append(f"\n@@ -{hunk.old_start},{hunk.old_lines} +{hunk.new_start},{hunk.new_lines} @@")
        line_no = hunk.new_start
        for line in hunk.lines:
            if line.startswith("-"):
                out.append(f"     {line}")
            elif line.startswith("\\"):
                out.append(line)
            else:
                out.append(f"{line_no:>4} {line}")
                line_no += 1
        for thread in hunk.comment_threads:
            out.append(f"[existing comment thread on lines {thread.start_line}-{thread.end_line}]")
            for body in thread.comments:
                out.append(f"> {body.strip()}")

    text = "\n".join(out)
    if max_chars is not None and len(text) > max_chars:
        text = text[:max_chars] + "\n... [diff truncated]"
    return text
