"""Exception hierarchy for the rewrite engine.

Every error the CLI reports derives from :class:`RewriteError`; anything else
escaping the engine is a bug.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rewrite_commits.core.state import RewritePlan


class RewriteError(Exception):
    """Base class for all reported failures."""

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.hint = hint
        # Plan built before the failure, if planning got that far
        self.plan: RewritePlan | None = None

    def __repr__(self) -> str:  # pragma: no cover
        return f"{type(self).__name__}({self.args[0]!r}, hint={self.hint!r})"


class ConfigurationError(RewriteError):
    """Missing credentials, invalid options, or an unsupported history shape. Nothing was mutated."""


class GenerationError(RewriteError):
    """The generation backend was unreachable, failed, or returned nothing usable."""

    def __init__(self, message: str, hint: str = "", revision_id: str | None = None) -> None:
        super().__init__(message, hint)
        self.revision_id = revision_id


class MaterializationError(RewriteError):
    """Writing new revision objects or moving a reference failed."""


class ConcurrentUpdateError(MaterializationError):
    """The branch moved underneath the run; the compare-and-swap refused to overwrite it."""


class ConsentDeniedError(RewriteError):
    """The user declined to send revision content to a remote backend."""


class GitCommandError(MaterializationError):
    """A git subprocess exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        command = "git " + " ".join(args)
        detail = stderr.strip() or f"exit {returncode}"
        super().__init__(f"{command} failed: {detail}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
