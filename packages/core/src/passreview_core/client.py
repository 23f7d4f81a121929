"""HTTP client for chat-completion endpoints.

One client talks to both Ollama's native ``/api/chat`` and any
OpenAI-compatible ``/v1/chat/completions`` server. The request sets the
output limit under both schemas (``max_tokens`` and ``options.num_predict``)
so whichever backend answers honours it; the response is normalised to
plain text by checking the known content locations in a fixed order.
"""

from __future__ import annotations

import json
import logging

import httpx

from passreview_core.errors import ApiError, HttpStatusError, TransportError, UnparsableResponseError
from passreview_core.models import NO_COMMENT
from passreview_core.utils.tokens import exceeds_tokens

logger = logging.getLogger(__name__)

_MISSING = object()
_ERROR_BODY_LIMIT = 500
_PREVIEW_LIMIT = 500

# Ordered by precedence: native first, then OpenAI-compatible, then the
# single-field shapes some gateways return.
CONTENT_PATHS: tuple[tuple[str, tuple], ...] = (
    ("native", ("message", "content")),
    ("openai", ("choices", 0, "message", "content")),
    ("content", ("content",)),
    ("response", ("response",)),
    ("text", ("text",)),
)


def _lookup(payload, path: tuple):
    node = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return _MISSING
        elif not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


def extract_content(payload) -> str:
    """Return the model text from a response payload.

    Empty, whitespace-only or null content becomes NO_COMMENT so downstream
    passes never mistake "the model said nothing" for a failed call.
    """
    for shape, path in CONTENT_PATHS:
        value = _lookup(payload, path)
        if value is _MISSING:
            continue
        logger.debug("Extracted content using the %s response shape", shape)
        if value is None or not str(value).strip():
            logger.warning("API returned empty content")
            return NO_COMMENT
        return str(value)

    if isinstance(payload, dict) and payload.get("error"):
        raise ApiError(f"API returned error: {json.dumps(payload['error'])}")

    keys = ", ".join(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
    raise UnparsableResponseError(f"Unable to extract content from API response. Keys: {keys}")


class ChatClient:
    """Sends one system + user message pair and returns the reply text."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        token_limit: int = 4096,
        bearer_token: str | None = None,
        debug: bool = False,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.endpoint = endpoint
        self.model = model
        self.token_limit = token_limit
        self.debug = debug
        self._bearer_token = bearer_token or None
        self._owns_client = http_client is None
        self._http = http_client if http_client is not None else httpx.Client(timeout=timeout)

    def exceeds_token_limit(self, text: str) -> bool:
        return exceeds_tokens(text, self.token_limit)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._bearer_token:
            headers["Authorization"] = f"Bearer {self._bearer_token}"
        return headers

    def build_request(self, system_prompt: str, user_message: str, model: str | None = None) -> dict:
        return {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "max_tokens": self.token_limit,
            "options": {"num_predict": self.token_limit},
        }

    def call(self, system_prompt: str, user_message: str, model: str | None = None) -> str:
        body = self.build_request(system_prompt, user_message, model)
        logger.debug(
            "Calling %s with model %s (system prompt %d chars, user message %d chars)",
            self.endpoint,
            body["model"],
            len(system_prompt),
            len(user_message),
        )

        try:
            response = self._http.post(self.endpoint, headers=self._headers(), json=body)
        except httpx.TransportError as e:
            logger.error("API call to %s failed: %s", self.endpoint, e)
            raise TransportError(f"Could not reach {self.endpoint}: {e}") from e

        if not response.is_success:
            text = response.text[:_ERROR_BODY_LIMIT]
            logger.error("API error response (%d): %s", response.status_code, text)
            raise HttpStatusError(response.status_code, text)

        try:
            payload = response.json()
        except ValueError as e:
            raise UnparsableResponseError(f"API response is not JSON: {response.text[:200]}") from e

        if self.debug:
            keys = ", ".join(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
            logger.debug("Response data keys: %s", keys)
            logger.debug("Response preview: %s", json.dumps(payload)[:_PREVIEW_LIMIT])

        content = extract_content(payload)
        logger.debug("Response length: %d", len(content))
        return content

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> ChatClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
