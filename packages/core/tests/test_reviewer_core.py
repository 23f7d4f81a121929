"""Tests for the batch runner: run_review and its helpers."""

import types
from unittest.mock import MagicMock

import pytest

from passreview_core.errors import HttpStatusError
from passreview_core.gh.pull_request import PASSREVIEW_MARKER
from passreview_core.models import Findings, NoFindings
from passreview_core.reviewer import (
    ReviewSummary,
    comments_from_result,
    post_comments,
    print_shadow_comments,
    run_review,
)
from passreview_core.utils.tokens import estimate_tokens

SHA = "a" * 40
SIMPLE_PATCH = "@@ -1,2 +1,3 @@\n line1\n+new line\n line2\n"


class ScriptedClient:
    def __init__(self, responses, token_limit=100_000):
        self.responses = list(responses)
        self.token_limit = token_limit
        self.calls = []
        self.systems = []

    def exceeds_token_limit(self, text):
        return estimate_tokens(text) > self.token_limit

    def call(self, system_prompt, user_message, model=None):
        self.calls.append(user_message)
        self.systems.append(system_prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _make_config(**overrides):
    config = {
        "github_token": "tok",
        "endpoint": "http://localhost:11434/api/chat",
        "model": "llama3",
        "token_limit": 8192,
        "multipass": False,
        "comment_mode": "summary",
        "include_project_context": False,
        "file_extensions": [],
        "exclude": [],
        "review_draft_prs": False,
    }
    config.update(overrides)
    return config


def _make_repo(filenames=("src/a.py",), draft=False, patch=SIMPLE_PATCH):
    pr = MagicMock()
    pr.draft = draft
    pr.head.sha = SHA
    pr.get_files.return_value = [
        types.SimpleNamespace(filename=name, status="modified", patch=patch) for name in filenames
    ]
    pr.get_review_comments.return_value = []
    pr.get_issue_comments.return_value = []

    repo = MagicMock()
    repo.get_pull.return_value = pr
    content = MagicMock()
    content.decoded_content = b"line1\nnew line\nline2\n"
    repo.get_contents.return_value = content
    return repo, pr


class TestCommentsFromResult:
    def test_no_findings_posts_nothing(self):
        assert comments_from_result("a.py", NoFindings(), "summary") == []

    def test_summary_mode_is_one_file_comment(self):
        assert comments_from_result("a.py", Findings("### Summary"), "summary") == [
            {"path": "a.py", "line": None, "body": "### Summary"}
        ]

    def test_inline_mode_parses_line_comments(self):
        result = Findings('{"comments": [{"lineNumber": 2, "comment": "Rename"}, {"lineNumber": 0, "comment": "x"}]}')
        assert comments_from_result("a.py", result, "inline") == [{"path": "a.py", "line": 2, "body": "Rename"}]


class TestPostComments:
    def test_counts_only_posted(self):
        sink = MagicMock()
        sink.add_comment.side_effect = [True, False]
        comments = [{"path": "a.py", "line": None, "body": "x"}, {"path": "a.py", "line": 3, "body": "y"}]
        assert post_comments(sink, comments) == 1
        sink.add_comment.assert_any_call("a.py", "y", 3)


class TestRunReview:
    def test_draft_pr_skipped(self):
        repo, pr = _make_repo(draft=True)
        client = ScriptedClient([])
        assert run_review("owner/repo", 1, _make_config(), repo_obj=repo, client=client) is None
        assert client.calls == []

    def test_draft_pr_reviewed_when_enabled(self):
        repo, _ = _make_repo(draft=True)
        summary = run_review(
            "owner/repo", 1, _make_config(review_draft_prs=True), repo_obj=repo, client=ScriptedClient(["NO_COMMENT"])
        )
        assert summary.reviewed_files == ["src/a.py"]

    def test_missing_pr_raises_value_error(self):
        from github import GithubException

        repo = MagicMock()
        repo.get_pull.side_effect = GithubException(404, {"message": "Not Found"}, None)
        with pytest.raises(ValueError, match="PR #9 not found"):
            run_review("owner/repo", 9, _make_config(), repo_obj=repo, client=ScriptedClient([]))

    def test_summary_mode_posts_one_comment_per_file(self):
        repo, pr = _make_repo(filenames=("src/a.py", "src/b.py"))
        client = ScriptedClient(["Issue in a", "NO_COMMENT"])

        summary = run_review("owner/repo", 1, _make_config(), repo_obj=repo, client=client)

        assert isinstance(summary, ReviewSummary)
        assert summary.reviewed_files == ["src/a.py", "src/b.py"]
        assert summary.total_comments == 1
        pr.create_issue_comment.assert_called_once_with(f"**`src/a.py`**\n\nIssue in a\n\n{PASSREVIEW_MARKER}")

    def test_failed_file_is_recorded_and_next_file_reviewed(self):
        repo, pr = _make_repo(filenames=("src/a.py", "src/b.py"))
        client = ScriptedClient([HttpStatusError(500, '{"error":"model not found"}'), "Issue in b"])

        summary = run_review("owner/repo", 1, _make_config(), repo_obj=repo, client=client)

        assert list(summary.failed_files) == ["src/a.py"]
        assert "500" in summary.failed_files["src/a.py"]
        assert summary.reviewed_files == ["src/b.py"]
        pr.create_issue_comment.assert_called_once_with(f"**`src/b.py`**\n\nIssue in b\n\n{PASSREVIEW_MARKER}")

    def test_multi_pass_posts_verified_review(self):
        repo, pr = _make_repo()
        client = ScriptedClient(["READY", "raw", "### Summary\nformatted", "### Summary\nverified"])

        summary = run_review("owner/repo", 1, _make_config(multipass=True), repo_obj=repo, client=client)

        assert len(client.calls) == 4
        assert summary.total_comments == 1
        pr.create_issue_comment.assert_called_once_with(
            f"**`src/a.py`**\n\n### Summary\nverified\n\n{PASSREVIEW_MARKER}"
        )

    def test_inline_mode_posts_line_comments(self):
        repo, pr = _make_repo()
        client = ScriptedClient(['{"comments": [{"lineNumber": 2, "comment": "Rename this"}]}'])

        summary = run_review("owner/repo", 1, _make_config(comment_mode="inline"), repo_obj=repo, client=client)

        assert summary.total_comments == 1
        pr.create_review_comment.assert_called_once()
        assert pr.create_review_comment.call_args.kwargs["line"] == 2

    def test_file_without_patch_is_skipped(self):
        repo, _ = _make_repo(patch=None)
        client = ScriptedClient([])

        summary = run_review("owner/repo", 1, _make_config(), repo_obj=repo, client=client)

        assert summary.skipped_files == ["src/a.py"]
        assert client.calls == []

    def test_shadow_mode_does_not_post(self):
        repo, pr = _make_repo()
        summary = run_review(
            "owner/repo", 1, _make_config(), shadow=True, repo_obj=repo, client=ScriptedClient(["Issue"])
        )

        assert summary.total_comments == 1
        assert summary.comments == [{"path": "src/a.py", "line": None, "body": "Issue"}]
        pr.create_issue_comment.assert_not_called()
        pr.create_review_comment.assert_not_called()

    def test_existing_pr_comments_reach_review_prompt(self):
        repo, pr = _make_repo()
        pr.get_issue_comments.return_value = [
            types.SimpleNamespace(
                body=f"**`src/a.py`**\n\nUnchecked None\n\n{PASSREVIEW_MARKER}",
                user=types.SimpleNamespace(login="ci-bot"),
            ),
            types.SimpleNamespace(body="Please add tests", user=types.SimpleNamespace(login="alice")),
        ]
        client = ScriptedClient(["NO_COMMENT"])

        run_review("owner/repo", 1, _make_config(), repo_obj=repo, client=client)

        system = client.systems[0]
        assert "## Existing Pull Request Comments:" in system
        assert "- **[AI - Previous Review]**: **`src/a.py`**\n\nUnchecked None" in system
        assert "- **alice**: Please add tests" in system

    def test_existing_pr_comments_can_be_disabled(self):
        repo, pr = _make_repo()
        pr.get_issue_comments.return_value = [
            types.SimpleNamespace(body="Please add tests", user=types.SimpleNamespace(login="alice"))
        ]
        client = ScriptedClient(["NO_COMMENT"])

        run_review("owner/repo", 1, _make_config(include_pr_comments=False), repo_obj=repo, client=client)

        assert "Existing Pull Request Comments" not in client.systems[0]

    def test_builds_and_closes_own_client(self, mocker):
        repo, _ = _make_repo()
        mock_client = MagicMock()
        mock_client.token_limit = 8192
        mock_client.exceeds_token_limit.return_value = False
        mock_client.call.return_value = "NO_COMMENT"
        client_cls = mocker.patch("passreview_core.reviewer.ChatClient", return_value=mock_client)

        run_review("owner/repo", 1, _make_config(request_timeout=30, bearer_token="b"), repo_obj=repo)

        kwargs = client_cls.call_args.kwargs
        assert kwargs["endpoint"] == "http://localhost:11434/api/chat"
        assert kwargs["token_limit"] == 8192
        assert kwargs["timeout"] == 30
        assert kwargs["bearer_token"] == "b"
        mock_client.close.assert_called_once()


class TestPrintShadowComments:
    def test_no_comments(self, capsys):
        print_shadow_comments([])
        assert "no comments" in capsys.readouterr().out

    def test_prints_path_and_body(self, capsys):
        print_shadow_comments([{"path": "src/a.py", "line": 4, "body": "Rename this"}])
        out = capsys.readouterr().out
        assert "src/a.py" in out
        assert "Rename this" in out
