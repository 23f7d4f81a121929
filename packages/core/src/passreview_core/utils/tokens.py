"""Token counting and budget-driven truncation.

Counting uses tiktoken's ``cl100k_base`` encoding when it can be loaded. The
encoding is fetched lazily on first use and may be unavailable offline, so
every entry point falls back to the ~4 characters per token heuristic rather
than raising. The heuristic is close enough for budget decisions; the 5%
safety margin in truncate_to_tokens absorbs the difference.
"""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n[... truncated due to token limit ...]"

_CHARS_PER_TOKEN = 4
_SAFETY_MARGIN = 0.95

_ENCODING = None
_ENCODING_LOADED = False


def _encoding():
    """Return the cached tiktoken encoding, or None when it cannot be loaded."""
    global _ENCODING, _ENCODING_LOADED
    if _ENCODING_LOADED:
        return _ENCODING
    _ENCODING_LOADED = True
    try:
        import tiktoken

        _ENCODING = tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        logger.debug("tiktoken unavailable, estimating %d chars per token: %s", _CHARS_PER_TOKEN, e)
        _ENCODING = None
    return _ENCODING


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    encoding = _encoding()
    if encoding is not None:
        try:
            return len(encoding.encode(text, disallowed_special=()))
        except Exception as e:
            logger.debug("Token encoding failed, using heuristic: %s", e)
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


def exceeds_tokens(text: str, limit: int) -> bool:
    return estimate_tokens(text) > limit


def truncate_to_tokens(text: str, max_tokens: int, label: str = "") -> str:
    """Cut text down to roughly max_tokens, appending a visible marker.

    The cut is proportional: the character length is scaled by
    max_tokens / current_tokens, then shrunk by a further 5% because the
    estimate is not exact.
    """
    if max_tokens <= 0:
        return ""

    current = estimate_tokens(text)
    if current <= max_tokens:
        return text

    target_chars = math.floor(len(text) * (max_tokens / current) * _SAFETY_MARGIN)
    truncated = text[:target_chars] + TRUNCATION_MARKER
    logger.info("%s: truncated from %d to ~%d tokens", label or "Text", current, max_tokens)
    return truncated
