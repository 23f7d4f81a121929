"""Multi-pass review of a single file.

    ContextCheck → Review → Format → Verify → Done

ContextCheck asks the model which imported files it needs and fetches them.
The remaining passes are described by an ordered list of Stage descriptors
and run strictly in sequence, each consuming the previous pass's text. The
run stops early as soon as a pass answers NO_COMMENT. In single-pass mode
only the Review stage runs, with no additional context.

Every prompt is checked against the token budget before it is sent. A
message that does not fit is rebuilt without the file content and extra
context (diff only), and truncated as a last resort. When the system prompt
alone leaves no room, the file is refused with PromptTooLargeError and no
request is sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Callable

from passreview_core.client import ChatClient
from passreview_core.collaborators import FileContentFetcher, is_fetch_failure
from passreview_core.errors import PromptTooLargeError, ReviewError
from passreview_core.models import NoFindings, PassResult, ReviewConfig, ReviewRequest, pass_result_from_text
from passreview_core.parsing import is_ready_response, parse_context_request
from passreview_core.prompts import (
    build_context_check_system_prompt,
    build_context_check_user_message,
    build_diff_only_user_message,
    build_enriched_user_message,
    build_format_system_prompt,
    build_format_user_message,
    build_inline_review_system_prompt,
    build_review_system_prompt,
    build_review_user_message,
    build_verify_system_prompt,
    build_verify_user_message,
)
from passreview_core.utils.tokens import estimate_tokens, truncate_to_tokens

logger = logging.getLogger(__name__)

# Configuration files rarely import anything worth fetching.
CONFIG_EXTENSIONS = (".json", ".yaml", ".yml", ".xml", ".config", ".csproj", ".sln")


@dataclass
class PassState:
    """Scratch state for one file, discarded once the file is done."""

    request: ReviewRequest
    additional_context: dict[str, str] = field(default_factory=dict)
    previous: str = ""


MessageBuilder = Callable[[PassState], str]


@dataclass(frozen=True)
class Stage:
    name: str
    system_prompt: Callable[[str | None], str]
    user_message: MessageBuilder
    # Smaller message used when the full one is over the token budget.
    diff_only_message: MessageBuilder | None = None


def _review_message(state: PassState) -> str:
    req = state.request
    if state.additional_context:
        return build_enriched_user_message(req.file_name, req.file_content, req.diff, state.additional_context)
    return build_review_user_message(req.file_name, req.file_content, req.diff)


def _review_diff_only_message(state: PassState) -> str:
    return build_diff_only_user_message(state.request.file_name, state.request.diff)


def _format_message(state: PassState) -> str:
    return build_format_user_message(state.previous)


def _verify_message(state: PassState) -> str:
    req = state.request
    return build_verify_user_message(req.file_name, req.file_content, req.diff, state.previous)


def _verify_diff_only_message(state: PassState) -> str:
    return build_verify_user_message(state.request.file_name, "", state.request.diff, state.previous)


class ReviewPipeline:
    def __init__(self, client: ChatClient, config: ReviewConfig, fetcher: FileContentFetcher | None = None):
        self.client = client
        self.config = config
        self.fetcher = fetcher

    def stages(self) -> list[Stage]:
        if self.config.comment_mode == "inline":
            review_prompt = partial(build_inline_review_system_prompt, self.config)
        else:
            review_prompt = partial(build_review_system_prompt, self.config)
        review = Stage("review", review_prompt, _review_message, _review_diff_only_message)

        if self.config.runs_single_pass:
            return [review]
        return [
            review,
            Stage("format", build_format_system_prompt, _format_message),
            Stage("verify", build_verify_system_prompt, _verify_message, _verify_diff_only_message),
        ]

    def review(self, request: ReviewRequest) -> PassResult:
        """Run every enabled pass for one file and return the final result.

        Transport and API errors from the Review, Format and Verify passes
        propagate; the caller decides whether to skip the file.
        """
        request = replace(
            request,
            file_content=truncate_to_tokens(
                request.file_content,
                self.config.max_file_content_tokens,
                f"File Content ({request.file_name})",
            ),
        )
        state = PassState(request=request)
        if not self.config.runs_single_pass:
            state.additional_context = self.discover_context(request)

        result: PassResult = NoFindings()
        for stage in self.stages():
            result = self._run_stage(stage, state)
            if isinstance(result, NoFindings):
                logger.info("%s: %s pass found no issues, stopping early", request.file_name, stage.name)
                return result
            state.previous = result.text
        return result

    def discover_context(self, request: ReviewRequest) -> dict[str, str]:
        """Ask the model which extra files it needs and fetch them.

        This pass never fails the pipeline: any failure here reduces to less
        (or no) context.
        """
        if self.fetcher is None:
            return {}
        if request.file_name.lower().endswith(CONFIG_EXTENSIONS):
            logger.debug("Skipping context check for configuration file %s", request.file_name)
            return {}

        override = self.config.override_for("context")
        system = build_context_check_system_prompt(override.prompt)
        try:
            user = self._fit_budget(
                "context",
                system,
                build_context_check_user_message(request.file_name, request.file_content, request.diff),
                build_context_check_user_message(request.file_name, "", request.diff),
            )
            response = self.client.call(system, user, override.model)
        except ReviewError as e:
            logger.warning("Context check failed for %s, continuing without extra context: %s", request.file_name, e)
            return {}

        if is_ready_response(response):
            return {}
        requested = parse_context_request(response)
        if not requested:
            return {}

        logger.info("%s: model requested context files %s", request.file_name, ", ".join(requested))
        context: dict[str, str] = {}
        for path in requested:
            if path in context:
                continue
            try:
                content = self.fetcher(path)
            except Exception as e:
                logger.warning("Could not fetch context file %s: %s", path, e)
                continue
            if is_fetch_failure(content):
                logger.warning("Requested context file not found: %s", path)
                continue
            context[path] = truncate_to_tokens(content, self.config.max_file_content_tokens, f"Context File ({path})")
        return context

    def _run_stage(self, stage: Stage, state: PassState) -> PassResult:
        override = self.config.override_for(stage.name)
        system = stage.system_prompt(override.prompt)
        fallback = stage.diff_only_message(state) if stage.diff_only_message is not None else None
        user = self._fit_budget(stage.name, system, stage.user_message(state), fallback)

        logger.info("%s: running %s pass", state.request.file_name, stage.name)
        return pass_result_from_text(self.client.call(system, user, override.model))

    def _fit_budget(self, name: str, system: str, user: str, fallback: str | None) -> str:
        if not self.client.exceeds_token_limit(system + user):
            return user

        limit = self.client.token_limit
        remaining = limit - estimate_tokens(system)
        if remaining <= 0:
            logger.warning("%s pass system prompt alone exceeds token limit (%d), refusing file", name, limit)
            raise PromptTooLargeError(name, limit)

        if fallback is None:
            logger.warning("%s pass prompt exceeds token limit (%d), sending it unchanged", name, limit)
            return user

        logger.warning("%s pass prompt exceeds token limit (%d), retrying with diff only", name, limit)
        if self.client.exceeds_token_limit(system + fallback):
            fallback = truncate_to_tokens(fallback, remaining, f"{name} pass diff")
        return fallback
