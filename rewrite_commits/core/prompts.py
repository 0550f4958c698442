"""Build the system/user prompt pair for one revision.

Pure functions: nothing here touches the repository, and the same revision
and configuration always produce the same prompt.
"""

from __future__ import annotations

from dataclasses import dataclass

from rewrite_commits.core.classifier import COMMIT_TYPES, MAX_SUBJECT_LENGTH
from rewrite_commits.core.config import Configuration
from rewrite_commits.core.state import Revision

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

EMPTY_DIFF_MARKER = "(no file changes in this commit)"

_TYPE_LINES = "\n".join(f"  - {name}: {desc}" for name, desc in COMMIT_TYPES.items())

DEFAULT_INSTRUCTIONS = f"""You write git commit messages.
Produce a concise, conventional commit message describing the net effect of the diff.

Rules:
- First line: type(scope): description, at most {MAX_SUBJECT_LENGTH} characters, imperative mood, no trailing period.
- Allowed types:
{_TYPE_LINES}
- Add a short body after a blank line only when the change needs explaining.
- Describe what changed and why, not how the diff looks."""

OUTPUT_RULES = "Reply with the commit message only: no quotes, no markdown, no explanations."


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def truncate_diff(diff: str, limit: int) -> str:
    """Keep the head and tail of an oversized diff with an explicit omission marker."""
    if len(diff) <= limit:
        return diff
    half = limit // 2
    omitted = len(diff) - 2 * half
    return (
        diff[:half]
        + f"\n\n... [diff truncated: {omitted} characters omitted] ...\n\n"
        + diff[len(diff) - half:]
    )


def build_system_prompt(config: Configuration) -> str:
    sections = [config.custom_prompt.strip() if config.custom_prompt else DEFAULT_INSTRUCTIONS]

    if config.template:
        sections.append(
            "The first line MUST follow this exact format, with the word 'message' replaced "
            f"by your description and every other character kept as is:\n{config.template}"
        )

    sections.append(f"Write the commit message in {language_name(config.language)}.")
    sections.append(OUTPUT_RULES)
    return "\n\n".join(sections)


def build_user_prompt(diff: str, config: Configuration) -> str:
    if not diff.strip():
        return EMPTY_DIFF_MARKER
    return truncate_diff(diff, config.max_diff_chars)


def build_prompt(revision: Revision, config: Configuration) -> Prompt:
    """Prompt pair for ``revision`` under ``config``."""
    return Prompt(system=build_system_prompt(config), user=build_user_prompt(revision.diff, config))
