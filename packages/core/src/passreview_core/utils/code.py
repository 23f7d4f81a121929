"""File filters applied before a changed file is handed to the pipeline."""

from __future__ import annotations

import fnmatch

NON_CODE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".bmp",
    ".pdf",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    ".mp4",
    ".mp3",
    ".wav",
    ".zip",
    ".tar",
    ".gz",
    ".7z",
    ".dll",
    ".exe",
    ".lock",  # yarn.lock, poetry.lock
}


def is_code_file(file_name: str) -> bool:
    return not file_name.lower().endswith(tuple(NON_CODE_EXTENSIONS))


def has_extension(file_name: str, extensions: list[str] | None) -> bool:
    """True when no extension filter is set or the file ends with one of them.

    Extensions may be given with or without the leading dot.
    """
    if not extensions:
        return True
    normalized = tuple(ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions)
    return file_name.lower().endswith(normalized)


def is_excluded(file_name: str, patterns: list[str] | None) -> bool:
    """Return True if file_name matches any exclude pattern.

    Supports:
    - fnmatch globs on the full path: "src/generated/*.cs"
    - fnmatch globs on the basename: "*.min.js"
    - Directory names/prefixes: "migrations/", "bin" (any file within that tree)
    """
    for pattern in patterns or []:
        if fnmatch.fnmatch(file_name, pattern):
            return True
        if fnmatch.fnmatch(file_name.rsplit("/", 1)[-1], pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if file_name.startswith(prefix) or ("/" + prefix) in file_name:
            return True
    return False
