"""Interfaces of the outside systems the review pipeline talks to.

The pipeline and the batch runner depend only on these protocols. The
GitHub implementations live in passreview_core.gh.pull_request; tests use
small in-memory stand-ins.
"""

from __future__ import annotations

from typing import Protocol

FILE_NOT_FOUND_PREFIXES = ("Error:", "File not found")


class FileContentFetcher(Protocol):
    """Return a file's content by repository path.

    An unavailable file yields an empty string or a string starting with
    ``Error:`` / ``File not found``. Implementations must not raise for a
    missing file.
    """

    def __call__(self, path: str) -> str: ...


class DiffSource(Protocol):
    def changed_files(self, extensions: list[str] | None = None, exclude: list[str] | None = None) -> list[str]: ...

    def diff(self, path: str) -> str: ...

    def file_content(self, path: str) -> str: ...


class CommentSink(Protocol):
    def add_comment(self, path: str, text: str, line_number: int | None = None) -> bool: ...


def is_fetch_failure(content: str | None) -> bool:
    return not content or not content.strip() or content.lstrip().startswith(FILE_NOT_FOUND_PREFIXES)
