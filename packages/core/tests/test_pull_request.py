"""Tests for the GitHub pull request helpers."""

import types
from unittest.mock import MagicMock

from github import GithubException

from presubmit_core.gh.pull_request import (
    Commit,
    find_latest_review_summary,
    find_overview_comment,
    get_incremental_files,
    get_pull_request_template,
    list_commits,
    list_review_threads,
)
from presubmit_core.messages.payload import OVERVIEW_MESSAGE_SIGNATURE


def review_comment(id, path="a.py", line=10, start_line=None, body="", in_reply_to_id=None, original_line=None):
    return types.SimpleNamespace(
        id=id,
        path=path,
        line=line,
        start_line=start_line,
        original_line=original_line,
        body=body,
        in_reply_to_id=in_reply_to_id,
    )


def test_list_commits():
    pr = MagicMock()
    pr.get_commits.return_value = [
        types.SimpleNamespace(
            sha="a" * 40,
            commit=types.SimpleNamespace(message="Fix bug", author=types.SimpleNamespace(email="dev@acme.io")),
        )
    ]
    assert list_commits(pr) == [Commit(sha="a" * 40, message="Fix bug", author_email="dev@acme.io")]


class TestFindOverviewComment:
    def test_finds_signed_comment(self):
        pr = MagicMock()
        overview = types.SimpleNamespace(body="walkthrough" + OVERVIEW_MESSAGE_SIGNATURE)
        pr.get_issue_comments.return_value = [types.SimpleNamespace(body="thanks!"), overview]
        assert find_overview_comment(pr) is overview

    def test_none_without_signature(self):
        pr = MagicMock()
        pr.get_issue_comments.return_value = [types.SimpleNamespace(body="thanks!"), types.SimpleNamespace(body=None)]
        assert find_overview_comment(pr) is None


class TestFindLatestReviewSummary:
    def test_latest_summary_wins(self):
        pr = MagicMock()
        pr.get_reviews.return_value = [
            types.SimpleNamespace(body="### Review Summary\nfirst"),
            types.SimpleNamespace(body="human review"),
            types.SimpleNamespace(body="### Review Summary\nsecond"),
            types.SimpleNamespace(body=None),
        ]
        assert find_latest_review_summary(pr).endswith("second")

    def test_none_without_summary(self):
        pr = MagicMock()
        pr.get_reviews.return_value = [types.SimpleNamespace(body="LGTM")]
        assert find_latest_review_summary(pr) is None


class TestListReviewThreads:
    def test_groups_replies(self):
        pr = MagicMock()
        pr.get_review_comments.return_value = [
            review_comment(1, line=12, start_line=10, body="root"),
            review_comment(2, body="reply", in_reply_to_id=1),
            review_comment(3, path="b.py", line=None, original_line=4, body="outdated"),
        ]
        threads = list_review_threads(pr)
        assert [(t.file, t.start_line, t.end_line) for t in threads] == [("a.py", 10, 12), ("b.py", 4, 4)]
        assert threads[0].comments == ["root", "reply"]
        assert not any(t.resolved for t in threads)

    def test_comment_without_line_ignored(self):
        pr = MagicMock()
        pr.get_review_comments.return_value = [review_comment(1, line=None)]
        assert list_review_threads(pr) == []


def test_get_incremental_files():
    repo = MagicMock()
    repo.compare.return_value = types.SimpleNamespace(files=["f"])
    assert get_incremental_files(repo, "base", "head") == ["f"]
    repo.compare.assert_called_once_with("base", "head")


class TestPullRequestTemplate:
    def test_first_existing_path(self):
        repo = MagicMock()
        found = types.SimpleNamespace(decoded_content=b"## Checklist")

        def get_contents(path):
            if path == ".github/PULL_REQUEST_TEMPLATE.md":
                return found
            raise GithubException(404, {"message": "Not Found"}, None)

        repo.get_contents.side_effect = get_contents
        assert get_pull_request_template(repo) == "## Checklist"

    def test_missing_template(self):
        repo = MagicMock()
        repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)
        assert get_pull_request_template(repo) is None

    def test_directory_listing_skipped(self):
        repo = MagicMock()
        repo.get_contents.return_value = [types.SimpleNamespace(decoded_content=b"x")]
        assert get_pull_request_template(repo) is None
