"""Core PR review orchestration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from github import GithubException
from rich.console import Console

from passreview_core.client import ChatClient
from passreview_core.collaborators import CommentSink, DiffSource
from passreview_core.config import build_review_config
from passreview_core.errors import ReviewError
from passreview_core.gh.pull_request import (
    PullRequestCommentSink,
    PullRequestDiffSource,
    RepoFileFetcher,
    get_pr_comments_context,
    get_pull,
    get_repo,
)
from passreview_core.models import NoFindings, PassResult, ReviewRequest
from passreview_core.parsing import parse_comments
from passreview_core.pipeline import ReviewPipeline
from passreview_core.utils.context import build_project_context
from passreview_core.utils.tokens import truncate_to_tokens

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    """Result returned by run_review."""

    repo: str
    pr_number: int
    head_sha: str
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    # file path -> error message
    failed_files: dict[str, str] = field(default_factory=dict)
    total_comments: int = 0
    comments: list[dict] = field(default_factory=list)
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def comments_from_result(path: str, result: PassResult, comment_mode: str) -> list[dict]:
    """Turn a pipeline result into the comments to post for one file.

    Summary mode posts the final review as one file-level comment; inline
    mode posts one comment per parsed line-pinned entry.
    """
    if isinstance(result, NoFindings):
        return []
    if comment_mode == "inline":
        return [{"path": path, "line": c.line_number, "body": c.comment} for c in parse_comments(result.text)]
    return [{"path": path, "line": None, "body": result.text}]


def review_file(pipeline: ReviewPipeline, source: DiffSource, path: str) -> PassResult | None:
    """Run the pipeline for one changed file; None when the file has no patch."""
    diff = source.diff(path)
    if not diff:
        return None
    request = ReviewRequest(file_name=path, file_content=source.file_content(path), diff=diff)
    return pipeline.review(request)


def post_comments(sink: CommentSink, comments: list[dict]) -> int:
    posted = 0
    for c in comments:
        if sink.add_comment(c["path"], c["body"], c["line"]):
            posted += 1
    return posted


def print_shadow_comments(comments: list[dict]) -> None:
    """Print review comments to the terminal without posting to GitHub."""
    if not comments:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(comments)} comment(s) (not posted)[/bold]\n")
    for c in comments:
        where = f"line [bold]{c['line']}[/bold]" if c["line"] is not None else "[dim]file comment[/dim]"
        console.print(f"[bold cyan]{c['path']}[/bold cyan]  {where}")
        console.print(f"  {c['body']}")
        console.print()


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    shadow: bool = False,
    repo_obj=None,
    client: ChatClient | None = None,
) -> ReviewSummary | None:
    """Review every changed file of a PR and post the results.

    Files are processed one at a time. A failure while reviewing or posting
    one file is recorded in the summary and the run moves on to the next
    file. Returns None when the PR is a draft and drafts are not reviewed.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.get("review_draft_prs", False):
        console.print(
            "[yellow]Skipping draft PR. Set review_draft_prs: true in .passreview.yml to review drafts.[/yellow]"
        )
        return None

    head_sha = this_pr.head.sha
    source = PullRequestDiffSource(this_repo, this_pr)
    fetcher = RepoFileFetcher(this_repo, head_sha)
    sink = PullRequestCommentSink(this_repo, this_pr, source)

    project_context = build_project_context(this_repo, head_sha, config)
    if project_context:
        console.print("[dim]Collected project context.[/dim]")
    existing_comments = ""
    if config.get("include_pr_comments", True):
        existing_comments = truncate_to_tokens(
            get_pr_comments_context(this_pr),
            int(config.get("max_project_context_tokens", 2000)),
            "Existing PR Comments",
        )
    review_config = build_review_config(config, project_context, existing_comments)

    owns_client = client is None
    if owns_client:
        client = ChatClient(
            endpoint=config["endpoint"],
            model=config["model"],
            token_limit=review_config.token_limit,
            bearer_token=config.get("bearer_token"),
            debug=config.get("debug", False),
            timeout=config.get("request_timeout"),
        )
    pipeline = ReviewPipeline(client, review_config, fetcher=fetcher)

    files = source.changed_files(extensions=config.get("file_extensions"), exclude=config.get("exclude"))
    summary = ReviewSummary(repo=repo, pr_number=pr_number, head_sha=head_sha)
    mode = "single-pass" if review_config.runs_single_pass else "multi-pass"
    console.print(f"Reviewing {len(files)} file(s) with {config['model']} ({mode}, {review_config.comment_mode} mode)")
    review_start = time.monotonic()

    try:
        for i, path in enumerate(files, 1):
            console.print(f"\n[[{i}/{len(files)}]] Reviewing: {path}")
            try:
                result = review_file(pipeline, source, path)
                if result is None:
                    console.print("  Skipping: no patch available (binary or too large).")
                    summary.skipped_files.append(path)
                    continue
                comments = comments_from_result(path, result, review_config.comment_mode)
                posted = len(comments) if shadow else post_comments(sink, comments)
            except (ReviewError, GithubException) as e:
                logger.error("Review of %s failed: %s", path, e)
                console.print(f"  [red]Review failed: {e}[/red]")
                summary.failed_files[path] = str(e)
                continue

            summary.reviewed_files.append(path)
            summary.comments.extend(comments)
            summary.total_comments += posted
            console.print(f"  {len(comments)} comment(s) found.")
    finally:
        if owns_client:
            client.close()

    elapsed = time.monotonic() - review_start
    if shadow:
        print_shadow_comments(summary.comments)
        console.print(f"[bold]Shadow review complete. {summary.total_comments} comment(s) would be posted.[/bold]")
    else:
        console.print(
            f"\n[green]Review complete in {elapsed:.0f}s: {summary.total_comments} comment(s) posted across "
            f"{len(summary.reviewed_files)} file(s).[/green]"
        )
    if summary.failed_files:
        console.print(f"[red]{len(summary.failed_files)} file(s) could not be reviewed.[/red]")

    return summary
