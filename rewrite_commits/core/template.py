"""Commit message templates.

A template is a literal string containing the token ``message``, e.g.
``"[JIRA-123] feat: message"`` or ``"🔧 message"``.  The last whole-word
occurrence of the token is replaced by the generated subject line; every
other character is kept verbatim.  Models do not always honour the format,
so generated text is normalised here rather than trusted.
"""

from __future__ import annotations

from rewrite_commits.core.classifier import COMMIT_TYPES, CONVENTIONAL_HEADER_RE
from rewrite_commits.core.config import TEMPLATE_TOKEN_RE
from rewrite_commits.core.errors import ConfigurationError, GenerationError


def split_template(template: str) -> tuple[str, str]:
    """Return the literal ``(prefix, suffix)`` around the substitution token."""
    matches = list(TEMPLATE_TOKEN_RE.finditer(template))
    if not matches:
        raise ConfigurationError(
            f"template {template!r} has no 'message' token",
            hint='Use a template such as "[JIRA-123] feat: message".',
        )
    last = matches[-1]
    return template[: last.start()], template[last.end():]


def _strip_prefix(subject: str, prefix: str) -> str:
    if prefix.strip():
        if subject.startswith(prefix):
            return subject[len(prefix):].strip()
        if subject.startswith(prefix.rstrip()):
            return subject[len(prefix.rstrip()):].strip()
    # The template already supplies a "type:" header; drop the one the model wrote
    if ":" in prefix:
        match = CONVENTIONAL_HEADER_RE.match(subject)
        if match and match.group("type") in COMMIT_TYPES:
            return match.group("description").strip()
    return subject


def _strip_suffix(subject: str, suffix: str) -> str:
    if suffix.strip():
        if subject.endswith(suffix):
            return subject[: -len(suffix)].strip()
        if subject.endswith(suffix.lstrip()):
            return subject[: -len(suffix.lstrip())].strip()
    return subject


def apply_template(text: str, template: str | None) -> str:
    """Force ``text`` into the template's shape. Without a template the text is only trimmed."""
    cleaned = text.strip()
    if not template:
        return cleaned

    prefix, suffix = split_template(template)
    lines = cleaned.splitlines()
    subject = lines[0].strip() if lines else ""
    body = "\n".join(lines[1:]).strip()

    subject = _strip_suffix(_strip_prefix(subject, prefix), suffix)
    if not subject:
        raise GenerationError("generated message is empty once the template is applied")

    final = f"{prefix}{subject}{suffix}"
    if body:
        final += "\n\n" + body
    return final


def matches_template(message: str, template: str) -> bool:
    """True when the subject line is ``prefix + something + suffix``."""
    prefix, suffix = split_template(template)
    subject = message.splitlines()[0] if message else ""
    return (
        len(subject) > len(prefix) + len(suffix)
        and subject.startswith(prefix)
        and subject.endswith(suffix)
    )
