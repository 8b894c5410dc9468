"""Loading GitHub webhook events from the Actions runtime or from the API."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_EVENTS = ("pull_request", "pull_request_target")


@dataclass
class Event:
    name: str
    repository: str
    payload: dict = field(default_factory=dict)

    @property
    def action(self) -> str | None:
        return self.payload.get("action")

    @property
    def pull_request(self) -> dict | None:
        return self.payload.get("pull_request")


def load_event(event_name: str | None = None, event_path: str | None = None, repository: str | None = None) -> Event:
    """Read the triggering event the way GitHub Actions exposes it.

    Arguments default to ``GITHUB_EVENT_NAME``, ``GITHUB_EVENT_PATH`` and
    ``GITHUB_REPOSITORY``.
    """
    name = event_name or os.environ.get("GITHUB_EVENT_NAME", "")
    path = event_path or os.environ.get("GITHUB_EVENT_PATH")
    if not path:
        raise ValueError("No event payload path given and GITHUB_EVENT_PATH is not set.")
    event_file = Path(path)
    if not event_file.exists():
        raise FileNotFoundError(f"Event payload not found: {path}")
    payload = json.loads(event_file.read_text(encoding="utf-8")) or {}

    repo = repository or os.environ.get("GITHUB_REPOSITORY") or payload.get("repository", {}).get("full_name", "")
    return Event(name=name, repository=repo, payload=payload)


def event_from_pull(repo_name: str, pr, action: str = "synchronize") -> Event:
    """Synthesize a ``pull_request`` event for an existing PR object."""
    return Event(
        name="pull_request",
        repository=repo_name,
        payload={
            "action": action,
            "pull_request": {
                "number": pr.number,
                "title": pr.title or "",
                "body": pr.body or "",
                "merged": bool(pr.merged),
                "html_url": pr.html_url,
                "user": {"login": pr.user.login if pr.user else ""},
                "head": {"sha": pr.head.sha, "ref": pr.head.ref},
                "base": {"sha": pr.base.sha, "ref": pr.base.ref},
            },
        },
    )
