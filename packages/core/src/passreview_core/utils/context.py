"""Project-level context injected into every review prompt.

Everything is read through the GitHub API pinned to the PR's head SHA, so
the context describes the same snapshot of the codebase as the diff. The
build log is the exception: it comes from an earlier CI step on the local
machine.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from github import GithubException

from passreview_core.gh.pull_request import read_file
from passreview_core.utils.tokens import truncate_to_tokens

logger = logging.getLogger(__name__)

_README_FILES = ("README.md", "readme.md", "README.rst", "README.txt")
_MAX_CSPROJ_FILES = 3
_BUILD_LOG_TAIL_CHARS = 20_000


def _root_files(repo, ref: str) -> list[str]:
    try:
        entries = repo.get_contents("", ref=ref)
    except GithubException as e:
        logger.warning("Could not list repository root: %s", e)
        return []
    if not isinstance(entries, list):
        entries = [entries]
    return sorted(e.path for e in entries if e.type == "file")


def _package_json_section(raw: str) -> str:
    try:
        package = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse package.json: %s", e)
        return ""
    if not isinstance(package, dict):
        return ""
    section = "\n## Project Dependencies:\n"
    section += f"Name: {package.get('name') or 'N/A'}\n"
    section += f"Description: {package.get('description') or 'N/A'}\n"
    section += f"Version: {package.get('version') or 'N/A'}\n"
    dependencies = package.get("dependencies")
    if isinstance(dependencies, dict) and dependencies:
        section += f"Dependencies: {', '.join(dependencies)}\n"
    return section


def gather_project_context(repo, head_sha: str) -> str:
    """Describe the project from the well-known files in the repository root.

    Covers the README and the dependency manifests of Python, Node, Java
    and C# projects. Files that are missing or unreadable are skipped.
    """
    files = _root_files(repo, head_sha)
    present = set(files)
    context = ""

    for name in _README_FILES:
        if name in present:
            readme = read_file(repo, name, head_sha)
            if readme is not None:
                context += f"\n## Project README:\n{readme}\n"
                break

    if "package.json" in present:
        raw = read_file(repo, "package.json", head_sha)
        if raw is not None:
            context += _package_json_section(raw)

    if "requirements.txt" in present:
        raw = read_file(repo, "requirements.txt", head_sha)
        if raw is not None:
            context += f"\n## Python Dependencies (requirements.txt):\n{raw}\n"

    if "pyproject.toml" in present:
        raw = read_file(repo, "pyproject.toml", head_sha)
        if raw is not None:
            context += f"\n## Python Project (pyproject.toml):\n```toml\n{raw}\n```\n"

    if "pom.xml" in present:
        context += "\n## Java Project (pom.xml detected)\n"

    csproj_files = [f for f in files if f.endswith(".csproj")][:_MAX_CSPROJ_FILES]
    if csproj_files:
        context += "\n## C# Project Files:\n"
        for name in csproj_files:
            raw = read_file(repo, name, head_sha)
            if raw is not None:
                context += f"\n### {name}:\n```xml\n{raw}\n```\n"

    sln_files = [f for f in files if f.endswith(".sln")]
    if sln_files:
        raw = read_file(repo, sln_files[0], head_sha)
        if raw is not None:
            context += f"\n## C# Solution File ({sln_files[0]}):\n```\n{raw}\n```\n"

    if "packages.config" in present:
        raw = read_file(repo, "packages.config", head_sha)
        if raw is not None:
            context += f"\n## C# Packages (packages.config):\n```xml\n{raw}\n```\n"

    return context


def read_build_log(path: str | None) -> str:
    """Return the tail of a build log left by an earlier pipeline step.

    The end of a log is where compiler errors and test summaries land.
    Returns "" when no path is configured or the file cannot be read.
    """
    if not path:
        return ""
    log_path = Path(path)
    try:
        text = log_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Could not read build log %s: %s", path, e)
        return ""
    if not text.strip():
        return ""
    if len(text) > _BUILD_LOG_TAIL_CHARS:
        text = "... [earlier output omitted]\n" + text[-_BUILD_LOG_TAIL_CHARS:]
    return f"\n## Build Log ({log_path.name}):\n```\n{text}\n```\n"


def build_project_context(repo, head_sha: str, config: dict) -> str:
    """Combine project metadata and build log, truncated to the configured budget."""
    context = ""
    if config.get("include_project_context", True):
        context += gather_project_context(repo, head_sha)
    context += read_build_log(config.get("build_log_path"))
    return truncate_to_tokens(context.strip(), int(config.get("max_project_context_tokens", 2000)), "Project Context")
