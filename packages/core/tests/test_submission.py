"""Tests for posting findings and the review summary."""

import threading
from unittest.mock import MagicMock

import pytest
from github import GithubException

from presubmit_core.diff import FileDiff
from presubmit_core.gh.pull_request import Commit
from presubmit_core.messages.render import ATTENTION_VERDICT, LGTM_VERDICT
from presubmit_core.schemas import AIComment
from presubmit_core.submission import (
    review_comment_payload,
    settle_all,
    should_post,
    split_comments,
    submit_review,
)

REPO = "acme/widgets"
HEAD = "f" * 40
COMMITS = [Commit(sha="c" * 40, message="Add widget")]
FILES = [FileDiff(filename="src/widget.py", status="modified")]


def make_comment(label="possible bug", critical=False, start=10, end=12, header="Overflow", file="src/widget.py"):
    return AIComment(
        file=file,
        start_line=start,
        end_line=end,
        label=label,
        header=header,
        content=f"{header} here",
        critical=critical,
    )


@pytest.fixture(autouse=True)
def no_previous_summary(mocker):
    return mocker.patch("presubmit_core.submission.find_latest_review_summary", return_value=None)


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.get_commit.return_value = MagicMock(sha=HEAD)
    return repo


@pytest.fixture
def pr():
    return MagicMock()


class TestSettleAll:
    def test_collects_failures_without_cancelling(self):
        seen = []
        lock = threading.Lock()

        def fn(item):
            with lock:
                seen.append(item)
            if item == 2:
                raise RuntimeError("boom")

        results = settle_all(fn, [1, 2, 3], max_workers=2)
        assert results[0] is None
        assert isinstance(results[1], RuntimeError)
        assert results[2] is None
        assert sorted(seen) == [1, 2, 3]

    def test_empty(self):
        assert settle_all(lambda item: None, []) == []


class TestPostingPolicy:
    def test_critical_posted(self):
        assert should_post(make_comment(critical=True))

    def test_typo_posted(self):
        assert should_post(make_comment(label="typo"))

    def test_label_match_is_exact(self):
        assert not should_post(make_comment(label="Typo"))

    def test_other_labels_skipped(self):
        assert not should_post(make_comment(label="style"))

    def test_split(self):
        file_comment = AIComment(file="src/widget.py", label="style", header="Module", content="x")
        critical = make_comment(critical=True)
        nit = make_comment(label="style")
        assert split_comments([file_comment, critical, nit]) == ([file_comment], [critical], [nit])


class TestReviewCommentPayload:
    def test_multi_line_range(self):
        data = review_comment_payload(make_comment(start=10, end=12))
        assert data["line"] == 12
        assert data["start_line"] == 10
        assert data["side"] == data["start_side"] == "RIGHT"
        assert data["body"].endswith("<!-- presubmit.ai: comment -->")

    def test_single_line(self):
        data = review_comment_payload(make_comment(start=5, end=5))
        assert data["line"] == 5
        assert "start_line" not in data


class TestSubmitReview:
    def test_single_batch_review(self, repo, pr):
        critical = make_comment(critical=True)
        nit = make_comment(label="style", header="nit")
        result = submit_review(repo, pr, REPO, HEAD, [critical, nit], COMMITS, FILES)

        pr.create_review.assert_called_once()
        kwargs = pr.create_review.call_args.kwargs
        assert kwargs["event"] == "COMMENT"
        assert kwargs["commit"] is repo.get_commit.return_value
        assert [c["path"] for c in kwargs["comments"]] == ["src/widget.py"]
        assert kwargs["body"].startswith(ATTENTION_VERDICT)
        assert "Skipped Comments (1)" in kwargs["body"]
        pr.create_review_comment.assert_not_called()

        assert result.line_comments_posted == 1
        assert len(result.skipped) == 1
        assert result.summary_posted
        assert not result.used_fallback

    def test_lgtm_when_only_skipped(self, repo, pr):
        submit_review(repo, pr, REPO, HEAD, [make_comment(label="style")], COMMITS, FILES)
        body = pr.create_review.call_args.kwargs["body"]
        assert body.startswith(LGTM_VERDICT)
        assert pr.create_review.call_args.kwargs["comments"] == []

    def test_fallback_posts_individually(self, repo, pr):
        pr.create_review.side_effect = [GithubException(422, {"message": "Line must be part of the diff"}, None), None]
        pr.create_review_comment.side_effect = [GithubException(422, {}, None), None]
        comments = [make_comment(critical=True, header="A"), make_comment(label="typo", header="B", start=3, end=3)]

        result = submit_review(repo, pr, REPO, HEAD, comments, COMMITS, FILES)

        assert result.used_fallback
        assert result.line_comments_posted == 1
        assert result.line_comments_failed == 1
        assert pr.create_review_comment.call_count == 2
        assert pr.create_review.call_count == 2
        assert "comments" not in pr.create_review.call_args_list[1].kwargs
        assert "commit" not in pr.create_review.call_args_list[1].kwargs
        assert all(c.kwargs["commit"] == HEAD for c in pr.create_review_comment.call_args_list)
        assert result.summary_posted

    def test_fallback_summary_failure_is_logged(self, repo, pr):
        pr.create_review.side_effect = RuntimeError("down")
        result = submit_review(repo, pr, REPO, HEAD, [make_comment(critical=True)], COMMITS, FILES)
        assert result.used_fallback
        assert not result.summary_posted

    def test_file_comments_posted_with_subject_type(self, repo, pr):
        file_comment = AIComment(file="src/widget.py", header="Module", content="Split this module")
        result = submit_review(repo, pr, REPO, HEAD, [file_comment], COMMITS, FILES)
        pr.create_review_comment.assert_called_once()
        kwargs = pr.create_review_comment.call_args.kwargs
        assert kwargs["subject_type"] == "file"
        assert kwargs["commit"] == HEAD
        assert kwargs["path"] == "src/widget.py"
        assert result.file_comments_posted == 1

    def test_file_comment_failure_does_not_block_review(self, repo, pr):
        pr.create_review_comment.side_effect = GithubException(500, {}, None)
        file_comment = AIComment(file="src/widget.py", header="Module", content="x")
        result = submit_review(repo, pr, REPO, HEAD, [file_comment], COMMITS, FILES)
        assert result.file_comments_failed == 1
        pr.create_review.assert_called_once()

    def test_merges_previous_summary(self, repo, pr, no_previous_summary):
        submit_review(repo, pr, REPO, HEAD, [make_comment(label="style", header="old nit")], COMMITS, FILES)
        no_previous_summary.return_value = pr.create_review.call_args.kwargs["body"]
        pr.reset_mock()

        newer = [Commit(sha="d" * 40, message="Follow up")]
        submit_review(repo, pr, REPO, HEAD, [make_comment(label="style", header="new nit")], newer, FILES)
        body = pr.create_review.call_args.kwargs["body"]
        assert "Commits Considered (2)" in body
        assert "Skipped Comments (2)" in body

    def test_review_listing_failure_renders_fresh_summary(self, repo, pr, no_previous_summary):
        no_previous_summary.side_effect = GithubException(500, {}, None)
        submit_review(repo, pr, REPO, HEAD, [], COMMITS, FILES)
        assert "Commits Considered (1)" in pr.create_review.call_args.kwargs["body"]

    def test_head_commit_lookup_failure_uses_fallback(self, repo, pr):
        repo.get_commit.side_effect = GithubException(502, {"message": "Bad Gateway"}, None)
        file_comment = AIComment(file="src/widget.py", header="Module", content="x")

        result = submit_review(repo, pr, REPO, HEAD, [file_comment, make_comment(critical=True)], COMMITS, FILES)

        assert result.used_fallback
        assert result.file_comments_posted == 1
        assert result.line_comments_posted == 1
        assert result.summary_posted
        pr.create_review.assert_called_once()
        assert "commit" not in pr.create_review.call_args.kwargs
