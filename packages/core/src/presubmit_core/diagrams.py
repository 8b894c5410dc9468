"""Optional mermaid diagram for the overview comment."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from pydantic import ValidationError

from presubmit_core.diff import FileDiff, format_file_diff
from presubmit_core.providers.base import ProviderError
from presubmit_core.schemas import DiagramResult, PullRequestSummary

if TYPE_CHECKING:
    from presubmit_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

_MAX_DIFF_FILES = 5

_SYSTEM = """You create technical diagrams that help reviewers understand pull request changes.
Decide whether a diagram would add significant value: new features or workflows, architectural
changes, data flow changes, API integrations, schema changes, component relationships.
Do not suggest diagrams for bug fixes, typos or simple refactors.

Diagram types: flowchart (processes), sequence (API calls, interactions), class (data models),
state (state machines), entity-relationship (database schema), gitgraph (branching, rarely needed),
architecture (system architecture), none.

Respond with only a JSON object of this shape:
{
  "should_generate": <true or false>,
  "type": "<diagram type>",
  "diagram": "<valid Mermaid syntax without code fences, only when should_generate is true>",
  "title": "<brief title, only when should_generate is true>",
  "description": "<one sentence describing the diagram, only when should_generate is true>"
}"""

_PATTERNS = {
    "api": re.compile(r"api|endpoint|route|controller|service"),
    "workflow": re.compile(r"workflow|process|step|flow|pipeline"),
    "schema": re.compile(r"schema|migration|database|table|model"),
    "architecture": re.compile(r"component|module|service|architecture|integration"),
    "state": re.compile(r"state|status|transition|stage"),
}


def diagram_hints(summary: PullRequestSummary, files: list[FileDiff]) -> list[str]:
    """Kinds of change in this PR that usually benefit from a diagram."""
    text = " ".join([summary.title, summary.description, *(f.filename for f in files)]).lower()
    return [name for name, pattern in _PATTERNS.items() if pattern.search(text)]


def generate_diagram(
    provider: BaseProvider,
    summary: PullRequestSummary,
    files: list[FileDiff],
    commit_messages: list[str],
) -> DiagramResult:
    hints = diagram_hints(summary, files)
    file_lines = "\n".join(f"- {f.filename}: {f.title} - {f.summary}" for f in summary.files)
    diffs = "\n\n".join(format_file_diff(f) for f in files[:_MAX_DIFF_FILES])
    user = f"""## Summary
Title: {summary.title}
Description: {summary.description}
Type: {", ".join(summary.type)}
Detected change kinds: {", ".join(hints) or "none"}

## File changes
{file_lines}

## Commit messages
{chr(10).join(commit_messages)}

## Diffs
{diffs}

Should a diagram be generated? If yes, what type and content?"""

    try:
        data = provider.complete_json(_SYSTEM, user)
        return DiagramResult.model_validate(data)
    except (ProviderError, ValueError, ValidationError) as e:
        logger.warning("Diagram generation failed: %s", e)
        return DiagramResult()


def format_diagram_markdown(result: DiagramResult) -> str:
    if not result.should_generate or not result.diagram or not result.title:
        return ""
    parts = [f"## {result.title}", ""]
    if result.description:
        parts += [result.description, ""]
    parts += ["```mermaid", result.diagram.strip(), "```", ""]
    return "\n".join(parts)
