"""Prompt construction for every review pass.

All builders are pure functions of their arguments. Each system-prompt
builder accepts an optional custom prompt: when it is non-blank it replaces
the built-in instructions verbatim. Custom prompts are trusted as written and
never merged with the defaults.
"""

from __future__ import annotations

from passreview_core.models import ReviewConfig


def _custom(custom_prompt: str | None) -> str | None:
    if custom_prompt and custom_prompt.strip():
        return custom_prompt
    return None


def build_criteria(config: ReviewConfig) -> str:
    """Render the "Look for:" bullet list from the enabled checks."""
    lines: list[str] = []
    if config.check_bugs:
        lines.append("- Bugs, logic errors, null pointer issues, runtime exceptions")
    if config.check_performance:
        lines.append("- Performance issues (inefficient algorithms, memory leaks)")
    if config.check_best_practices:
        lines.append("- Best practice violations, missing error handling")
    lines.extend(f"- {p.strip()}" for p in config.additional_prompts if p and p.strip())
    if config.custom_best_practices:
        lines.extend(f"- {line.strip()}" for line in config.custom_best_practices.splitlines() if line.strip())
    return "\n".join(lines) if lines else "- Any significant issues"


def simplify_diff(diff: str) -> str:
    """Turn a unified diff into a REMOVED / ADDED view.

    Models routinely confuse '-' and '+' lines and report problems in code
    that was deleted. Splitting the diff into two labelled sections makes it
    explicit which code still exists. Header and hunk lines are dropped.
    Input without any '+'/'-' lines is returned unchanged, so malformed or
    already simplified text passes through untouched.
    """
    removed: list[str] = []
    added: list[str] = []
    context: list[str] = []

    for line in diff.split("\n"):
        if line.startswith(("diff --git", "index ", "---", "+++", "@@")):
            continue
        if line.startswith("-"):
            removed.append(line[1:])
        elif line.startswith("+"):
            added.append(line[1:])
        elif line.startswith(" "):
            context.append(line[1:])

    if not removed and not added:
        return diff

    sections = []
    if removed:
        sections.append("=== REMOVED (no longer exists) ===\n" + "\n".join(removed) + "\n")
    if added:
        sections.append("=== ADDED (review this) ===\n" + "\n".join(added) + "\n")
    return "\n".join(sections)


# --------------------------------------------------------------------------- #
# System prompts                                                              #
# --------------------------------------------------------------------------- #


def build_context_check_system_prompt(custom_prompt: str | None = None) -> str:
    return (
        _custom(custom_prompt)
        or """You are a code review assistant. Your task is to quickly scan a file and determine if you need additional context to review it properly.

Look at the imports/references in the file. Do you need to see any of these files to properly review the changes?

RESPOND WITH ONLY ONE OF:
- READY (if you can review with just this file)
- REQUEST_CONTEXT: path/to/file1.py, path/to/file2.py (if you need to see imported files)

Only request files that are:
- Directly imported in the code
- Necessary to understand the changes (interfaces, base classes, types)
- Maximum 3 files

Do not provide any review yet. Just indicate if you need more context."""
    )


def _project_info(config: ReviewConfig) -> str:
    info = f"\nProject context: {config.project_context}\n" if config.project_context else ""
    if config.existing_comments:
        info += f"{config.existing_comments}\n"
    return info


def build_review_system_prompt(config: ReviewConfig, custom_prompt: str | None = None) -> str:
    custom = _custom(custom_prompt)
    if custom:
        return custom

    return f"""You are a code reviewer. You will review exactly ONE file at a time.
{_project_info(config)}
CRITICAL: You are reviewing ONLY the file provided below. Do NOT reference, assume, or comment on any other files. If you cannot see code in the provided content, do not comment on it.

The changes are provided in two sections:
- "REMOVED" = old code that NO LONGER EXISTS (was deleted)
- "ADDED" = new code that NOW EXISTS (was added) - FOCUS YOUR REVIEW HERE

Only the ADDED code exists in the current file. The REMOVED code is gone.

Look for:
{build_criteria(config)}

Rules:
- Focus on the ADDED code section - this is what's being introduced
- Do not report issues in REMOVED code (it no longer exists)
- Skip config files (JSON/YAML/XML) unless there's a security issue (exposed secrets)
- If you find no real issues in the ADDED code, respond with NO_COMMENT

Response format (if issues found):
### Summary
[1-2 sentences about the changes]

### Issues Found
**[Category]**: [Title]
- Problem: [what's wrong in the new code]
- Fix: [how to fix]

If no issues: respond with only NO_COMMENT"""


def build_inline_review_system_prompt(config: ReviewConfig, custom_prompt: str | None = None) -> str:
    """Review prompt asking for line-pinned comments as a JSON object."""
    custom = _custom(custom_prompt)
    if custom:
        return custom

    return f"""Your task is to act as a code reviewer of a Pull Request.
{_project_info(config)}
Look for:
{build_criteria(config)}

- Do not highlight minor issues and nitpicks.
- Only provide instructions for improvements.
- If you have no comments, respond with exactly: {{"comments": []}}

The changes are provided in two sections: "REMOVED" code no longer exists, "ADDED" code is new.
Focus your review on the ADDED code. Use the full file content to understand the complete context.

**IMPORTANT: Your response MUST be valid JSON in the following format:**
{{
  "comments": [
    {{
      "lineNumber": <number - the line number in the NEW/modified file where this comment applies>,
      "comment": "<string - your review comment in markdown format>"
    }}
  ]
}}

Rules for lineNumber:
- Use the line number from the NEW version of the file (after changes)
- For multi-line issues, use the starting line number
- Only comment on lines that are part of the changes

Do not return any text outside the JSON object."""


def build_format_system_prompt(custom_prompt: str | None = None) -> str:
    return (
        _custom(custom_prompt)
        or """You are a code review formatter. You will receive a code review and must reformat it to match the required structure.

## Required Format
The review MUST follow this exact structure:

### Summary
[1-2 sentences about what the changes do]

### Issues Found
**[Category]**: [Title]
- Problem: [what's wrong]
- Fix: [how to fix]

## Rules
1. Keep all the issues from the original review
2. Reformat each issue to match the structure above
3. Categories should be one of: Bug, Performance, Best Practice, Security, Style
4. Each issue needs Problem and Fix fields
5. Write a concise Summary if missing
6. If the review says NO_COMMENT or has no issues, respond with: NO_COMMENT

Respond with the properly formatted review."""
    )


def build_verify_system_prompt(custom_prompt: str | None = None) -> str:
    return (
        _custom(custom_prompt)
        or """You are a code review validator. You will receive:
1. A file's content and changes
2. A formatted review for this file

Your job: Verify each issue in the review actually exists in the code.

## Validation Checks
For each issue:
- Does the issue actually exist in THIS file's ADDED code?
- Is the problem real (not hallucinated)?
- Is it about code that EXISTS (not removed/deleted code)?

## CRITICAL Rules
1. DO NOT change the wording, structure, or formatting of valid issues
2. DO NOT add new issues or modify existing descriptions
3. DO NOT rephrase the Summary, Problem, or Fix fields
4. ONLY remove issues that are clearly hallucinated or invalid
5. If an issue is valid, copy it EXACTLY as written - character for character
6. Keep the exact same markdown structure and formatting
7. If ALL issues are valid, return the review UNCHANGED
8. If NO valid issues remain, respond with: NO_COMMENT

Your ONLY job is to REMOVE invalid issues. Never edit valid ones.

Respond with the validated review (unchanged except for removed invalid issues)."""
    )


# --------------------------------------------------------------------------- #
# User messages                                                               #
# --------------------------------------------------------------------------- #


def _file_header(file_name: str, file_content: str) -> str:
    message = f"File: {file_name}\n\n"
    if file_content:
        message += f"Current File Content:\n```\n{file_content}\n```\n\n"
    return message


def build_context_check_user_message(file_name: str, file_content: str, diff: str) -> str:
    return (
        _file_header(file_name, file_content)
        + f"Changes Made:\n{simplify_diff(diff)}\n\n"
        + "Do you need any other files to review these changes? Answer READY or REQUEST_CONTEXT."
    )


def build_review_user_message(file_name: str, file_content: str, diff: str) -> str:
    return _file_header(file_name, file_content) + f"Changes Made:\n{simplify_diff(diff)}"


def build_diff_only_user_message(file_name: str, diff: str) -> str:
    """Review message without file content, used when the full message is over budget."""
    return f"File: {file_name}\n\nChanges Made:\n{simplify_diff(diff)}"


def build_enriched_user_message(
    file_name: str,
    file_content: str,
    diff: str,
    additional_context: dict[str, str],
) -> str:
    message = _file_header(file_name, file_content) + f"Changes Made:\n{simplify_diff(diff)}\n\n"
    if additional_context:
        message += "---\n\n## Additional Context (requested files):\n\n"
        for path, content in additional_context.items():
            message += f"### {path}\n```\n{content}\n```\n\n"
    return message


def build_format_user_message(review: str) -> str:
    return f"Review to format:\n\n{review}"


def build_verify_user_message(file_name: str, file_content: str, diff: str, review: str) -> str:
    return (
        _file_header(file_name, file_content)
        + f"Changes Made:\n{simplify_diff(diff)}\n\n"
        + f"---\n\nReview to verify:\n{review}"
    )
