"""Tests for loading webhook events."""

import json
import types

import pytest

from presubmit_core.gh.event import event_from_pull, load_event


@pytest.fixture
def event_file(tmp_path):
    path = tmp_path / "event.json"
    path.write_text(
        json.dumps(
            {
                "action": "opened",
                "pull_request": {"number": 7, "title": "t"},
                "repository": {"full_name": "acme/widgets"},
            }
        )
    )
    return path


def test_load_from_environment(event_file, monkeypatch):
    monkeypatch.setenv("GITHUB_EVENT_NAME", "pull_request")
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(event_file))
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/from-env")
    event = load_event()
    assert event.name == "pull_request"
    assert event.repository == "acme/from-env"
    assert event.action == "opened"
    assert event.pull_request["number"] == 7


def test_repository_falls_back_to_payload(event_file, monkeypatch):
    monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)
    assert load_event("pull_request", str(event_file)).repository == "acme/widgets"


def test_missing_path(monkeypatch):
    monkeypatch.delenv("GITHUB_EVENT_PATH", raising=False)
    with pytest.raises(ValueError):
        load_event("pull_request")


def test_nonexistent_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_event("pull_request", str(tmp_path / "missing.json"))


def test_event_from_pull():
    pr = types.SimpleNamespace(
        number=3,
        title="Add widget",
        body=None,
        merged=False,
        html_url="https://github.com/acme/widgets/pull/3",
        user=types.SimpleNamespace(login="octocat"),
        head=types.SimpleNamespace(sha="h" * 40, ref="feature/PROJ-1"),
        base=types.SimpleNamespace(sha="b" * 40, ref="main"),
    )
    event = event_from_pull("acme/widgets", pr, action="opened")
    assert event.name == "pull_request"
    assert event.action == "opened"
    assert event.pull_request["body"] == ""
    assert event.pull_request["head"] == {"sha": "h" * 40, "ref": "feature/PROJ-1"}
