"""Data model shared by the rewrite engine: revisions, ranges, plans and results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import cached_property
from typing import Callable

from rewrite_commits.core.errors import ConfigurationError


@dataclass(frozen=True)
class AuthorInfo:
    """Opaque identity headers of a revision, copied into rewritten revisions."""

    author: str
    committer: str
    # Remaining headers (encoding, mergetag, ...) in original order; signatures are dropped
    extra_headers: tuple[str, ...] = ()

    def for_new_message(self) -> AuthorInfo:
        """Headers for a replacement message, which is always written as UTF-8."""
        return replace(
            self,
            extra_headers=tuple(h for h in self.extra_headers if not h.startswith("encoding ")),
        )


@dataclass(frozen=True)
class Revision:
    """One immutable commit. ``diff`` is computed on first access."""

    id: str
    parent_id: str | None
    tree_id: str
    message: str
    author: AuthorInfo
    diff_loader: Callable[[], str] | None = field(default=None, compare=False, repr=False)

    @cached_property
    def diff(self) -> str:
        if self.diff_loader is None:
            return ""
        return self.diff_loader()

    @property
    def subject(self) -> str:
        return self.message.strip().splitlines()[0] if self.message.strip() else ""

    @property
    def short_id(self) -> str:
        return self.id[:7]


@dataclass(frozen=True)
class RevisionRange:
    """Linear run of revisions, oldest first, from an exclusive base to an inclusive tip."""

    branch: str
    tip: str | None
    base: str | None
    revisions: tuple[Revision, ...] = ()

    def __len__(self) -> int:
        return len(self.revisions)

    def __iter__(self):
        return iter(self.revisions)

    @property
    def is_empty(self) -> bool:
        return not self.revisions

    def validate_linear(self) -> None:
        """Raise ConfigurationError unless every parent is the previous revision."""
        expected_parent = self.base
        for revision in self.revisions:
            if revision.parent_id != expected_parent:
                raise ConfigurationError(
                    f"revision {revision.short_id} does not follow "
                    f"{(expected_parent or 'the root')[:7]} on branch {self.branch!r}",
                    hint="Only linear history without merges can be rewritten.",
                )
            expected_parent = revision.id
        if self.revisions and self.revisions[-1].id != self.tip:
            raise ConfigurationError(
                f"range for {self.branch!r} does not end at its tip",
                hint="Only linear history without merges can be rewritten.",
            )


class PlanAction(StrEnum):
    KEEP = "keep"
    REWRITE = "rewrite"


@dataclass(frozen=True)
class PlanEntry:
    """The decision for one revision."""

    revision: Revision
    action: PlanAction
    new_message: str | None = None
    score: float | None = None
    reason: str = ""

    @property
    def final_message(self) -> str:
        if self.action is PlanAction.REWRITE and self.new_message is not None:
            return self.new_message
        return self.revision.message


@dataclass(frozen=True)
class RewritePlan:
    """Decisions for a whole range, computed before anything is written."""

    range: RevisionRange
    entries: tuple[PlanEntry, ...] = ()

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def rewrites(self) -> list[PlanEntry]:
        return [e for e in self.entries if e.action is PlanAction.REWRITE]

    @property
    def has_changes(self) -> bool:
        return any(
            e.action is PlanAction.REWRITE and e.new_message != e.revision.message
            for e in self.entries
        )


@dataclass(frozen=True)
class BackupRef:
    """Pointer to the original tip, created before any mutation and never removed automatically."""

    name: str
    target_id: str
    branch: str


@dataclass
class RewriteResult:
    """What a run did (or, for a dry run, would do)."""

    plan: RewritePlan
    dry_run: bool
    old_tip: str | None
    new_tip: str | None
    backup: BackupRef | None = None
    id_map: dict[str, str] = field(default_factory=dict)

    @property
    def rewritten_count(self) -> int:
        return len(self.plan.rewrites)

    @property
    def kept_count(self) -> int:
        return len(self.plan) - self.rewritten_count

    @property
    def changed(self) -> bool:
        return self.old_tip != self.new_tip
