"""Parsing of semi-structured model output.

Models do not reliably follow output instructions, so nothing here raises:
a response that cannot be parsed degrades to "no context requested" or to a
best-effort comment list, and the failure is logged.
"""

from __future__ import annotations

import json
import logging
import math
import re

from passreview_core.models import CodeReviewComment, is_no_comment

logger = logging.getLogger(__name__)

MAX_CONTEXT_FILES = 3

_CONTEXT_REQUEST_RE = re.compile(r"^\s*REQUEST_CONTEXT:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
_EMPTY_COMMENTS_RE = re.compile(r'\{\s*"comments"\s*:\s*\[\s*\]\s*\}')
_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def is_ready_response(text: str) -> bool:
    return text.strip().upper().startswith("READY")


def parse_context_request(text: str) -> list[str] | None:
    """Return the file paths requested by a context-check response, or None.

    Paths are comma separated after ``REQUEST_CONTEXT:``. At most
    MAX_CONTEXT_FILES are returned however many the model asks for.
    """
    match = _CONTEXT_REQUEST_RE.search(text or "")
    if not match:
        return None
    paths = [p.strip().strip("`'\"").strip() for p in match.group(1).split(",")]
    return [p for p in paths if p][:MAX_CONTEXT_FILES]


def strip_code_fence(text: str) -> str:
    # Strip only the outer ```json ... ``` fence, not backticks inside string values.
    cleaned = re.sub(r"^```(?:json)?\s*", "", text.strip())
    return re.sub(r"\s*```$", "", cleaned.strip())


def _load_json(text: str):
    try:
        return json.loads(strip_code_fence(text))
    except json.JSONDecodeError:
        # Prose around the answer: fall back to the first fenced block.
        match = _FENCED_BLOCK_RE.search(text)
        if match is None:
            raise
        return json.loads(match.group(1))


def parse_comments(text: str) -> list[CodeReviewComment]:
    """Parse a ``{"comments": [{"lineNumber", "comment"}]}`` response.

    The JSON may be the whole response or sit in a fenced block inside
    surrounding prose. Entries without a numeric, positive lineNumber or
    with a blank comment are dropped. A response that is not JSON at all is
    kept as a single comment on line 1, unless it is empty, the NO_COMMENT
    sentinel, or contains the empty-array answer.
    """
    try:
        parsed = _load_json(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Failed to parse model response as JSON: %s. Response: %s", e, (text or "")[:200])
        if is_no_comment(text) or _EMPTY_COMMENTS_RE.search(text):
            return []
        return [CodeReviewComment(line_number=1, comment=text)]

    if not isinstance(parsed, dict) or not isinstance(parsed.get("comments"), list):
        logger.warning("Model response JSON has no comments array: %s", (text or "")[:200])
        return []

    comments: list[CodeReviewComment] = []
    for entry in parsed["comments"]:
        if not isinstance(entry, dict):
            continue
        line = entry.get("lineNumber")
        body = entry.get("comment")
        # bool is a subclass of int; true/false are not line numbers.
        if isinstance(line, bool) or not isinstance(line, (int, float)) or not math.isfinite(line) or line < 1:
            continue
        if not isinstance(body, str) or not body.strip():
            continue
        comments.append(CodeReviewComment(line_number=int(line), comment=body))
    return comments
