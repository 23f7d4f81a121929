"""Error kinds raised by the chat client and the review pipeline.

Every failure that ends a review pass derives from ReviewError, so the batch
runner can isolate one file's failure with a single except clause and move
on to the next file. Parse failures and context-fetch failures are not
represented here: both are recovered where they happen and never raised.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for failures that abort the current review pass."""


class TransportError(ReviewError):
    """The endpoint could not be reached (connection, DNS, TLS, timeout)."""


class HttpStatusError(ReviewError):
    """The endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API returned status code {status_code}: {body}")


class ApiError(ReviewError):
    """The payload carried an explicit ``error`` field."""


class UnparsableResponseError(ApiError):
    """The payload had no recognised content field, or was not JSON at all."""


class PromptTooLargeError(ReviewError):
    """The system prompt alone leaves no room for the file within the token limit."""

    def __init__(self, pass_name: str, token_limit: int):
        self.pass_name = pass_name
        self.token_limit = token_limit
        super().__init__(f"{pass_name} pass exceeds token limit ({token_limit}) even with diff only")
