"""GitHub implementations of the review pipeline's collaborators.

Every read is pinned to the PR's head SHA so the diff, the reviewed file
and any context file all come from the same commit.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

from github import Github, GithubException

from passreview_core.utils.code import has_extension, is_code_file, is_excluded

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = ("added", "modified")
# Hidden tag appended to every comment this tool posts.
PASSREVIEW_MARKER = "<!-- passreview -->"


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return pr.get_files()


def read_file(repo, path: str, ref: str) -> str | None:
    """Return the decoded file at ref, or None if it does not exist there."""
    try:
        contents = repo.get_contents(path, ref=ref)
    except GithubException:
        return None
    # get_contents returns a list for directories.
    if isinstance(contents, list):
        return None
    return contents.decoded_content.decode("utf-8", errors="replace")


def added_lines(patch_text: str) -> set[int]:
    """New-file line numbers of the lines a patch adds.

    Only these lines accept a review comment on the RIGHT side of the diff.
    """
    lines: set[int] = set()
    file_line: int | None = None

    for line in patch_text.splitlines():
        if line.startswith("@@"):
            try:
                new_file_range = line.split("+")[1].split(" ")[0]
                file_line = int(new_file_range.split(",")[0])
            except (IndexError, ValueError):
                file_line = None
            continue
        # "\ No newline at end of file" is not a file line.
        if file_line is None or line.startswith("\\") or (line.startswith("-") and not line.startswith("---")):
            continue
        if line.startswith("+") and not line.startswith("+++"):
            lines.add(file_line)
        file_line += 1

    return lines


def get_pr_comments_context(pr) -> str:
    """Render the PR's existing comments for the review prompt.

    Conversation comments and line comments are grouped by file. Comments
    carrying PASSREVIEW_MARKER were posted by an earlier run and are tagged
    so the model does not repeat them. Returns "" when there is nothing to
    show or the comments cannot be read.
    """
    try:
        issue_comments = list(pr.get_issue_comments())
        review_comments = list(pr.get_review_comments())
    except GithubException as e:
        logger.warning("Could not read existing PR comments: %s", e)
        return ""

    sections: dict[str, list[str]] = {}
    for c in issue_comments:
        _add_comment_line(sections, "General PR Comment", c)
    for c in review_comments:
        _add_comment_line(sections, c.path or "General PR Comment", c)
    if not sections:
        return ""

    parts = ["\n## Existing Pull Request Comments:\n"]
    for where, entries in sections.items():
        parts.append(f"\n### {where}:\n")
        parts.append("\n".join(entries) + "\n")
    parts.append(
        "\n---\n**IMPORTANT**: Comments marked with [AI - Previous Review] are your own comments from a "
        "previous run. DO NOT repeat or rephrase these comments. Only add NEW insights not already covered.\n"
    )
    return "".join(parts)


def _add_comment_line(sections: dict[str, list[str]], where: str, comment) -> None:
    body = (comment.body or "").strip()
    if not body:
        return
    if PASSREVIEW_MARKER in body:
        line = f"- **[AI - Previous Review]**: {body.replace(PASSREVIEW_MARKER, '').strip()}"
    else:
        author = comment.user.login if comment.user is not None else "unknown"
        line = f"- **{author}**: {body}"
    sections.setdefault(where, []).append(line)


def already_commented(existing_comments, file_path: str, file_line: int, comment_text: str) -> bool:
    """Check whether an identical review comment already exists for this file+line."""
    text = comment_text.strip()
    for c in existing_comments:
        # c.line is None once the line left the diff (e.g. after a force-push).
        comment_line = c.line if c.line is not None else getattr(c, "original_line", None)
        if c.path == file_path and comment_line == file_line and text in (c.body or "").strip():
            return True
    return False


class PullRequestDiffSource:
    """Changed files of one pull request."""

    def __init__(self, repo, pr):
        self.repo = repo
        self.pr = pr
        self.head_sha = pr.head.sha
        self._files: dict | None = None

    def _pr_files(self) -> dict:
        if self._files is None:
            self._files = {f.filename: f for f in get_diff(self.pr)}
        return self._files

    def changed_files(self, extensions: list[str] | None = None, exclude: list[str] | None = None) -> list[str]:
        names = []
        for name, f in sorted(self._pr_files().items()):
            if f.status not in REVIEWABLE_STATUSES:
                logger.debug("Skipping %s (%s)", name, f.status)
                continue
            if not has_extension(name, extensions) or is_excluded(name, exclude) or not is_code_file(name):
                logger.debug("Skipping %s (filtered)", name)
                continue
            names.append(name)
        return names

    def diff(self, path: str) -> str:
        f = self._pr_files().get(path)
        return (f.patch or "") if f is not None else ""

    def file_content(self, path: str) -> str:
        return read_file(self.repo, path, self.head_sha) or ""


class RepoFileFetcher:
    """Fetches files the model asks for during the context check.

    Models often give a path relative to the importing file, or just the
    module name, so when the exact path is missing the repository tree is
    searched for a file with the same basename.
    """

    def __init__(self, repo, ref: str):
        self.repo = repo
        self.ref = ref
        self._paths: list[str] | None = None

    def __call__(self, path: str) -> str:
        path = path.strip().removeprefix("./").lstrip("/")
        content = read_file(self.repo, path, self.ref)
        if content is not None:
            return content

        match = self._find_by_name(path)
        if match:
            content = read_file(self.repo, match, self.ref)
            if content is not None:
                logger.info("Resolved requested file %s to %s", path, match)
                return content
        return f"File not found: {path}"

    def _tree_paths(self) -> list[str]:
        if self._paths is None:
            try:
                tree = self.repo.get_git_tree(self.ref, recursive=True)
                self._paths = [entry.path for entry in tree.tree if entry.type == "blob"]
            except GithubException as e:
                logger.warning("Could not list repository tree: %s", e)
                self._paths = []
        return self._paths

    def _find_by_name(self, path: str) -> str | None:
        name = PurePosixPath(path).name
        if not name:
            return None
        candidates = [p for p in self._tree_paths() if PurePosixPath(p).name == name]
        if not candidates:
            return None
        # Prefer a path that ends with what was asked for, then the shallowest.
        candidates.sort(key=lambda p: (not p.endswith(path), p.count("/"), p))
        return candidates[0]


def format_file_comment(path: str, text: str, line_number: int | None = None) -> str:
    header = f"**`{path}`**" if line_number is None else f"**`{path}`** (line {line_number})"
    return f"{header}\n\n{text}\n\n{PASSREVIEW_MARKER}"


class PullRequestCommentSink:
    """Posts review output to a pull request.

    Line-pinned comments become review comments on that line when the line
    was added in the diff; anything else becomes a conversation comment
    headed by the file path.
    """

    def __init__(self, repo, pr, diff_source):
        self.repo = repo
        self.pr = pr
        self.diff_source = diff_source
        self._commit = None
        self._review_comments: list | None = None
        self._issue_bodies: set[str] | None = None

    def add_comment(self, path: str, text: str, line_number: int | None = None) -> bool:
        text = (text or "").strip()
        if not text:
            return False

        if line_number is not None:
            if line_number in added_lines(self.diff_source.diff(path)):
                return self._add_line_comment(path, text, line_number)
            logger.debug("Line %d of %s is not in the diff, posting as a file comment", line_number, path)

        return self._add_file_comment(format_file_comment(path, text, line_number))

    def _add_line_comment(self, path: str, text: str, line_number: int) -> bool:
        if self._review_comments is None:
            self._review_comments = list(self.pr.get_review_comments())
        if already_commented(self._review_comments, path, line_number, text):
            logger.info("Skipping duplicate comment on %s line %d", path, line_number)
            return False
        try:
            if self._commit is None:
                self._commit = self.repo.get_commit(self.pr.head.sha)
            posted = self.pr.create_review_comment(
                f"{text}\n\n{PASSREVIEW_MARKER}", self._commit, path, line=line_number, side="RIGHT"
            )
        except GithubException as e:
            logger.warning("Failed to post comment on %s line %d: %s", path, line_number, e)
            return False
        self._review_comments.append(posted)
        return True

    def _add_file_comment(self, body: str) -> bool:
        if self._issue_bodies is None:
            self._issue_bodies = {(c.body or "").strip() for c in self.pr.get_issue_comments()}
        if body in self._issue_bodies:
            logger.info("Skipping duplicate comment: %s", body.splitlines()[0])
            return False
        try:
            self.pr.create_issue_comment(body)
        except GithubException as e:
            logger.warning("Failed to post comment: %s", e)
            return False
        self._issue_bodies.add(body)
        return True
