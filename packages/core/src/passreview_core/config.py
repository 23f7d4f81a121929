import os
from pathlib import Path
from typing import Optional

import yaml

from passreview_core.models import COMMENT_MODES, PASS_NAMES, PassOverride, ReviewConfig

DEFAULT_CONFIG: dict = {
    "endpoint": "http://localhost:11434/api/chat",
    "model": "llama3.1",
    "token_limit": 8192,
    "max_file_content_tokens": 4000,
    "max_project_context_tokens": 2000,
    "check_bugs": True,
    "check_performance": True,
    "check_best_practices": True,
    "additional_prompts": [],
    "custom_best_practices": "",
    "best_practices_file": None,  # path to a markdown/text file of extra rules, one per line
    "multipass": True,
    "comment_mode": "summary",  # "summary" = one comment per file; "inline" = line-pinned comments
    "passes": {},  # per-pass overrides: {"verify": {"prompt": "...", "model": "..."}}
    "file_extensions": [],  # empty = every code file
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
    "include_project_context": True,
    "include_pr_comments": True,  # feed existing PR comments (ours and reviewers') into the review prompt
    "build_log_path": None,
    "request_timeout": None,  # seconds; None waits for the model indefinitely
    "review_draft_prs": False,
    "debug": False,
}

_LIST_KEYS = ("additional_prompts", "file_extensions", "exclude")


def load_config(config_path: str = ".passreview.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .passreview.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "passes": {}}
    for key in _LIST_KEYS:
        config[key] = list(DEFAULT_CONFIG[key])

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # A single string in YAML is a one-element list.
    for key in _LIST_KEYS:
        if isinstance(config.get(key), str):
            config[key] = [config[key]]
        elif config.get(key) is None:
            config[key] = []

    if config["comment_mode"] not in COMMENT_MODES:
        raise ValueError(f"Unknown comment_mode: {config['comment_mode']!r}. Choose 'summary' or 'inline'.")

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["bearer_token"] = os.environ.get("PASSREVIEW_BEARER_TOKEN")

    return config


def load_best_practices(config: dict) -> str:
    """
    Collect custom best practices.

    Inline ``custom_best_practices`` come first, followed by the contents of
    ``best_practices_file`` (relative to cwd) when one is configured.
    """
    parts = []
    inline = config.get("custom_best_practices")
    if isinstance(inline, list):
        inline = "\n".join(str(line) for line in inline)
    if inline and inline.strip():
        parts.append(inline.strip())

    custom_path = config.get("best_practices_file")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Best practices file not found: {custom_path}")
        parts.append(p.read_text().strip())

    return "\n".join(p for p in parts if p)


def _pass_overrides(raw: dict | None) -> dict[str, PassOverride]:
    overrides = {}
    for name, value in (raw or {}).items():
        if name not in PASS_NAMES:
            raise ValueError(f"Unknown pass {name!r} in passes. Choose from: {', '.join(PASS_NAMES)}.")
        value = value or {}
        if not isinstance(value, dict):
            raise ValueError(f"passes.{name} must be a mapping with optional prompt and model keys.")
        overrides[name] = PassOverride(prompt=value.get("prompt"), model=value.get("model"))
    return overrides


def build_review_config(config: dict, project_context: str = "", existing_comments: str = "") -> ReviewConfig:
    """Freeze the loaded configuration into the ReviewConfig shared by every file of a run."""
    return ReviewConfig(
        check_bugs=bool(config.get("check_bugs", True)),
        check_performance=bool(config.get("check_performance", True)),
        check_best_practices=bool(config.get("check_best_practices", True)),
        additional_prompts=tuple(p for p in config.get("additional_prompts") or [] if p and p.strip()),
        custom_best_practices=load_best_practices(config),
        project_context=project_context,
        existing_comments=existing_comments,
        token_limit=int(config.get("token_limit", 8192)),
        max_file_content_tokens=int(config.get("max_file_content_tokens", 4000)),
        max_project_context_tokens=int(config.get("max_project_context_tokens", 2000)),
        multipass=bool(config.get("multipass", True)),
        comment_mode=config.get("comment_mode", "summary"),
        passes=_pass_overrides(config.get("passes")),
    )
