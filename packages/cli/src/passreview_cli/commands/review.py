"""review command: run the multi-pass review on a pull request."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from passreview_core.gh.pull_request import get_pull_requests, get_repo
from passreview_core.reviewer import run_review

console = Console()


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
        force=True,
    )
    # PyGithub and httpx log every request at DEBUG/INFO.
    for noisy in ("github", "httpx", "httpcore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option("--endpoint", default=None, help="Chat endpoint URL (Ollama /api/chat or /v1/chat/completions).")
@click.option("--model", default=None, help="Model name. Overrides config file.")
@click.option("--token-limit", "token_limit", type=int, default=None, help="Token budget for each prompt.")
@click.option(
    "--single-pass",
    "single_pass",
    is_flag=True,
    help="Run only the review pass (no context check, format or verify).",
)
@click.option("--inline", is_flag=True, help="Post line-pinned comments instead of one comment per file.")
@click.option(
    "--config",
    "config_path",
    default=".passreview.yml",
    show_default=True,
    envvar="PASSREVIEW_CONFIG",
    help="Path to the configuration file.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting to GitHub.",
)
@click.option("--debug", is_flag=True, help="Log prompt sizes and raw API responses.")
def review_cmd(
    repo: str,
    pr_number: int | None,
    endpoint: str | None,
    model: str | None,
    token_limit: int | None,
    single_pass: bool,
    inline: bool,
    config_path: str,
    shadow: bool,
    debug: bool,
):
    """Review a GitHub pull request with a local or hosted LLM.

    Each changed file goes through a context check, a review, a format and
    a verify pass; the verified review is posted as a PR comment.

    \b
    Environment variables:
      GITHUB_TOKEN              GitHub token (or use the gh CLI session)
      PASSREVIEW_BEARER_TOKEN   Bearer token for the chat endpoint, if it needs one
    """
    from passreview_cli.auth import resolve_github_token
    from passreview_core.config import load_config

    _configure_logging(debug)

    try:
        config = load_config(
            config_path,
            cli_overrides={
                "endpoint": endpoint,
                "model": model,
                "token_limit": token_limit,
                "multipass": False if single_pass else None,
                "comment_mode": "inline" if inline else None,
                "debug": True if debug else None,
            },
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    token = resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        run_review(repo=repo, pr_number=pr_number, config=config, shadow=shadow, repo_obj=this_repo)
    except (ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e))
