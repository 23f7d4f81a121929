"""Value types shared by the prompt builder, the pipeline and the runner."""

from __future__ import annotations

from dataclasses import dataclass, field

NO_COMMENT = "NO_COMMENT"

PASS_NAMES = ("context", "review", "format", "verify")

COMMENT_MODES = ("summary", "inline")


@dataclass(frozen=True)
class PassOverride:
    """Optional prompt and model replacing the built-in defaults for one pass."""

    prompt: str | None = None
    model: str | None = None

    def __post_init__(self):
        # Blank overrides mean "use the default", never "send an empty prompt".
        object.__setattr__(self, "prompt", _blank_to_none(self.prompt))
        object.__setattr__(self, "model", _blank_to_none(self.model))


@dataclass(frozen=True)
class ReviewConfig:
    """Immutable snapshot of everything the prompts and the pipeline need for one run."""

    check_bugs: bool = True
    check_performance: bool = True
    check_best_practices: bool = True
    additional_prompts: tuple[str, ...] = ()
    custom_best_practices: str = ""
    project_context: str = ""
    # Rendered comments already on the PR, so the model does not repeat them.
    existing_comments: str = ""
    token_limit: int = 8192
    max_file_content_tokens: int = 4000
    max_project_context_tokens: int = 2000
    multipass: bool = True
    comment_mode: str = "summary"
    passes: dict[str, PassOverride] = field(default_factory=dict)

    def override_for(self, pass_name: str) -> PassOverride:
        return self.passes.get(pass_name) or PassOverride()

    @property
    def runs_single_pass(self) -> bool:
        # The format/verify passes rewrite markdown and would destroy a JSON comment array.
        return not self.multipass or self.comment_mode == "inline"


@dataclass(frozen=True)
class ReviewRequest:
    file_name: str
    file_content: str
    diff: str


@dataclass(frozen=True)
class CodeReviewComment:
    line_number: int
    comment: str


@dataclass(frozen=True)
class Findings:
    """A pass produced review text worth forwarding."""

    text: str


@dataclass(frozen=True)
class NoFindings:
    """The reviewer has nothing to say; distinct from a failed call."""

    @property
    def text(self) -> str:
        return NO_COMMENT


PassResult = Findings | NoFindings


def is_no_comment(text: str | None) -> bool:
    return text is None or not text.strip() or text.strip().upper() == NO_COMMENT


def pass_result_from_text(text: str | None) -> PassResult:
    """Convert raw model text into a PassResult at the model I/O boundary."""
    if is_no_comment(text):
        return NoFindings()
    return Findings(text.strip())


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value)
