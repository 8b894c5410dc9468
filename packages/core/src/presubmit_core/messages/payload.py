"""Machine-readable state embedded in the overview comment.

The payload is the only state carried between runs. It is stored as compact
JSON between two HTML comment markers so it stays invisible on GitHub:

    <!-- presubmit.ai: payload --{"commits":["<sha>", ...]}-- presubmit.ai: payload -->

This layout must stay readable by every released version.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

OVERVIEW_MESSAGE_SIGNATURE = "\n<!-- presubmit.ai: overview message -->"
COMMENT_SIGNATURE = "\n<!-- presubmit.ai: comment -->"

PAYLOAD_TAG_OPEN = "\n<!-- presubmit.ai: payload --"
PAYLOAD_TAG_CLOSE = "\n-- presubmit.ai: payload -->"

# Whitespace around the markers is optional so hand-edited comments still decode.
_PAYLOAD_RE = re.compile(
    r"<!-- presubmit\.ai: payload --(?P<json>.*?)\s*-- presubmit\.ai: payload -->",
    re.DOTALL,
)


@dataclass
class ReviewPayload:
    """Full SHAs of every commit already reviewed, oldest first."""

    commits: list[str] = field(default_factory=list)

    @property
    def last_commit(self) -> str | None:
        return self.commits[-1] if self.commits else None


def encode_payload(payload: ReviewPayload) -> str:
    data = json.dumps({"commits": list(payload.commits)}, separators=(",", ":"))
    return f"{PAYLOAD_TAG_OPEN}{data}{PAYLOAD_TAG_CLOSE}"


def decode_payload(body: str | None) -> ReviewPayload:
    """Recover the payload from a comment body.

    Never raises: missing markers, malformed JSON or an unexpected shape all
    yield an empty payload, which callers treat as "nothing reviewed yet".
    """
    if not body:
        return ReviewPayload()
    match = _PAYLOAD_RE.search(body)
    if match is None:
        logger.debug("No payload block found in comment body.")
        return ReviewPayload()
    try:
        data = json.loads(match.group("json"))
    except json.JSONDecodeError as e:
        logger.warning("Error parsing overview payload: %s", e)
        return ReviewPayload()

    commits = data.get("commits") if isinstance(data, dict) else None
    if not isinstance(commits, list) or not all(isinstance(c, str) for c in commits):
        logger.warning("Overview payload has an unexpected shape; ignoring it.")
        return ReviewPayload()
    return ReviewPayload(commits=commits)


def is_overview_comment(body: str | None) -> bool:
    return bool(body) and OVERVIEW_MESSAGE_SIGNATURE.strip() in body
