"""Decide whether an existing commit message is already good enough to keep.

Two independent filters, both of which must pass:

1. A deterministic structural check (conventional ``type(scope): subject``
   header, non-empty description, subject length bound).
2. An optional quality score in [1, 10] compared against
   ``Configuration.min_quality_score``.  The score comes from a local
   heuristic, or from the generation backend when ``llm_quality_score`` is set.

Failures while scoring count as "not well-formed": rewriting a decent message
is cheaper than keeping a bad one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rewrite_commits.agents.client import GenerationClient
from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import GenerationError
from rewrite_commits.core.logging import get_logger

logger = get_logger("core.classifier")

COMMIT_TYPES = {
    "feat": "A new feature or capability",
    "fix": "A bug fix",
    "refactor": "Code restructuring without behavior change",
    "chore": "Maintenance tasks, dependencies, tooling",
    "docs": "Documentation only changes",
    "test": "Adding or updating tests",
    "style": "Formatting, whitespace, no code change",
    "perf": "Performance improvement",
    "ci": "CI/CD configuration changes",
    "build": "Build system or external dependency changes",
    "revert": "Reverts a previous commit",
}

MAX_SUBJECT_LENGTH = 72

CONVENTIONAL_HEADER_RE = re.compile(
    r"^(?P<type>[a-z]+)(?:\((?P<scope>[^()\s][^()]*)\))?(?P<breaking>!)?: (?P<description>\S.*)$"
)

# Subjects that say nothing about the change.
_LOW_INFORMATION = {
    "wip", "fix", "fixes", "fixed", "update", "updates", "updated", "change", "changes",
    "misc", "stuff", "tmp", "temp", "test", "asdf", "minor", "cleanup", "commit", "work",
    "more", "done", "save", "edit", "edits", "tweak", "tweaks", "initial commit", "...",
}

_SCORE_PROMPT = (
    "You rate git commit messages. Reply with a single integer from 1 to 10 and nothing else. "
    "10 means a clear, specific, conventional message; 1 means meaningless."
)

_INTEGER_RE = re.compile(r"\b(10|[1-9])(?:\.\d+)?\b")


@dataclass(frozen=True)
class Classification:
    well_formed: bool
    score: float | None = None
    reason: str = ""


def check_structure(message: str) -> tuple[bool, str]:
    """Return ``(passed, reason)`` for the structural well-formedness check."""
    lines = message.strip().splitlines()
    subject = lines[0].strip() if lines else ""
    if not subject:
        return False, "empty subject"
    if len(subject) > MAX_SUBJECT_LENGTH:
        return False, f"subject longer than {MAX_SUBJECT_LENGTH} characters"
    match = CONVENTIONAL_HEADER_RE.match(subject)
    if not match:
        return False, "subject is not 'type(scope): description'"
    if match.group("type") not in COMMIT_TYPES:
        return False, f"unknown commit type {match.group('type')!r}"
    if len(lines) > 1 and lines[1].strip():
        return False, "no blank line between subject and body"
    return True, "conventional"


def heuristic_score(message: str) -> float:
    """Deterministic quality score in [1, 10]."""
    lines = message.strip().splitlines()
    subject = lines[0].strip() if lines else ""
    if not subject:
        return 1.0

    score = 5.0
    match = CONVENTIONAL_HEADER_RE.match(subject)
    description = subject
    if match and match.group("type") in COMMIT_TYPES:
        score += 2
        description = match.group("description")
        if match.group("scope"):
            score += 1

    words = description.split()
    if description.lower().strip(" .!") in _LOW_INFORMATION:
        score -= 4
    if len(description) < 10:
        score -= 2
    elif len(words) >= 3:
        score += 1
    if len(subject) > MAX_SUBJECT_LENGTH:
        score -= 2
    first = words[0].lower() if words else ""
    if first.endswith("ed") or first.endswith("ing"):
        score -= 1
    else:
        score += 0.5
    if not subject.endswith("."):
        score += 0.5
    if len(lines) > 2 and not lines[1].strip() and any(line.strip() for line in lines[2:]):
        score += 0.5

    return max(1.0, min(10.0, score))


def parse_score(text: str) -> float:
    match = _INTEGER_RE.search(text)
    if not match:
        raise GenerationError(f"could not read a 1-10 score from {text[:40]!r}")
    return float(match.group(1))


class MessageQualityClassifier:
    """Applies the structural check and the optional score gate."""

    def __init__(self, config: Configuration, client: GenerationClient | None = None) -> None:
        self.config = config
        self.client = client

    def score(self, message: str) -> float:
        if self.config.llm_quality_score:
            if self.client is None:
                raise GenerationError("no generation client available for quality scoring")
            return parse_score(self.client.generate(_SCORE_PROMPT, message.strip()))
        return heuristic_score(message)

    def classify(self, message: str) -> Classification:
        passed, reason = check_structure(message)
        if not passed:
            return Classification(well_formed=False, reason=reason)

        threshold = self.config.min_quality_score
        if threshold is None:
            return Classification(well_formed=True, reason=reason)

        try:
            score = self.score(message)
        except GenerationError as exc:
            logger.warning("Quality scoring failed, treating message as not well-formed: %s", exc)
            return Classification(well_formed=False, reason="scoring failed")

        if score >= threshold:
            return Classification(well_formed=True, score=score, reason=f"score {score:g} >= {threshold:g}")
        return Classification(well_formed=False, score=score, reason=f"score {score:g} < {threshold:g}")
