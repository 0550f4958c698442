"""Revision graph rewriter: plan new messages for a linear range and re-create it.

The run has two strictly separated phases:

**Planning** walks the range oldest to newest, asks the classifier whether a
message can stay, and requests new text for the rest.  Generation calls are
independent per revision and run on a small thread pool.  Nothing is written.

**Materialisation** walks the plan oldest to newest and writes one new commit
object per revision from the first changed message onward: same tree, same
author/committer headers, parent = the *new* previous revision.  Only when the
whole chain exists is the branch moved, in a single compare-and-swap
``update-ref`` against the original tip.  Any failure before that point
leaves the branch exactly where it was.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from rewrite_commits.agents.client import GenerationClient
from rewrite_commits.core.classifier import MessageQualityClassifier
from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import (
    ConcurrentUpdateError,
    ConfigurationError,
    GenerationError,
    GitCommandError,
    MaterializationError,
    RewriteError,
)
from rewrite_commits.core.logging import get_logger
from rewrite_commits.core.prompts import build_prompt
from rewrite_commits.core.state import (
    PlanAction,
    PlanEntry,
    Revision,
    RevisionRange,
    RewritePlan,
    RewriteResult,
)
from rewrite_commits.core.template import apply_template
from rewrite_commits.tools.git import GitRepository

logger = get_logger("core.rewriter")


class RevisionGraphRewriter:
    """Owns the range and plan of one run."""

    def __init__(
        self,
        repo: GitRepository,
        config: Configuration,
        client: GenerationClient | None = None,
        classifier: MessageQualityClassifier | None = None,
    ) -> None:
        self.repo = repo
        self.config = config
        self.client = client
        self.classifier = classifier or MessageQualityClassifier(config, client)

    # ------------------------------------------------------------------
    # Step 1: range
    # ------------------------------------------------------------------

    def resolve_range(self) -> RevisionRange:
        """Linear range ending at the branch tip, at most ``max_commits`` long."""
        explicit = self.config.branch is not None
        branch = self.config.branch or self.repo.current_branch()
        tip = self.repo.resolve(self.repo.branch_ref(branch))

        if tip is None:
            if explicit:
                raise ConfigurationError(
                    f"branch {branch!r} does not exist",
                    hint="Check the name passed to --branch.",
                )
            logger.info("Branch %s has no commits yet", branch)
            return RevisionRange(branch=branch, tip=None, base=None)

        commits = self.repo.list_commits(tip, limit=self.config.max_commits)
        for commit_id, parents in commits:
            if len(parents) > 1:
                raise ConfigurationError(
                    f"revision {commit_id[:7]} on {branch!r} is a merge commit",
                    hint="Only linear history can be rewritten; narrow the range with --max-commits.",
                )
        commits.reverse()

        oldest_parents = commits[0][1] if commits else []
        base = oldest_parents[0] if oldest_parents else None
        revisions = tuple(self.repo.read_revision(commit_id) for commit_id, _ in commits)

        revision_range = RevisionRange(branch=branch, tip=tip, base=base, revisions=revisions)
        revision_range.validate_linear()
        logger.info(
            "Range on %s: %d revision(s) after %s",
            branch,
            len(revision_range),
            base[:7] if base else "the root",
        )
        return revision_range

    # ------------------------------------------------------------------
    # Step 2: plan
    # ------------------------------------------------------------------

    def generate_message(self, revision: Revision) -> str:
        """One backend call for ``revision``, shaped by the configured template."""
        if self.client is None:
            raise GenerationError("no generation client configured", revision_id=revision.id)
        prompt = build_prompt(revision, self.config)
        raw = self.client.generate(prompt.system, prompt.user)
        return apply_template(raw, self.config.template)

    def plan_revision(self, revision: Revision) -> PlanEntry:
        score: float | None = None
        reason = "all commits selected"

        if self.config.skip_well_formed:
            verdict = self.classifier.classify(revision.message)
            score, reason = verdict.score, verdict.reason
            if verdict.well_formed:
                return PlanEntry(revision, PlanAction.KEEP, score=score, reason=f"well-formed ({reason})")

        try:
            new_message = self.generate_message(revision)
        except GenerationError as exc:
            if self.config.on_generation_error == "keep":
                logger.warning("Keeping original message of %s: %s", revision.short_id, exc)
                return PlanEntry(revision, PlanAction.KEEP, score=score, reason=f"generation failed: {exc}")
            exc.revision_id = revision.id
            raise

        return PlanEntry(revision, PlanAction.REWRITE, new_message=new_message, score=score, reason=reason)

    def build_plan(self, revision_range: RevisionRange) -> RewritePlan:
        """Decide every revision of the range. Results are in range order."""
        if revision_range.is_empty:
            return RewritePlan(range=revision_range)

        total = len(revision_range)
        workers = min(self.config.concurrency, total)
        entries: list[PlanEntry] = []

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="plan")
        try:
            futures: list[Future[PlanEntry]] = [
                pool.submit(self.plan_revision, revision) for revision in revision_range
            ]
            for index, future in enumerate(futures, start=1):
                entry = future.result()
                logger.info(
                    "[%d/%d] %s %s: %s",
                    index,
                    total,
                    entry.revision.short_id,
                    entry.action,
                    entry.revision.subject[:60],
                )
                entries.append(entry)
        except BaseException as exc:
            pool.shutdown(wait=True, cancel_futures=True)
            if isinstance(exc, RewriteError) and exc.plan is None:
                exc.plan = RewritePlan(range=revision_range, entries=tuple(entries))
            raise
        pool.shutdown(wait=True)

        return RewritePlan(range=revision_range, entries=tuple(entries))

    # ------------------------------------------------------------------
    # Steps 4-5: materialise and move the branch
    # ------------------------------------------------------------------

    def materialize(self, plan: RewritePlan) -> tuple[str | None, dict[str, str]]:
        """Write the new chain. Returns ``(new_tip, {old_id: new_id})``; refs are untouched."""
        new_parent = plan.range.base
        id_map: dict[str, str] = {}
        diverged = False

        for entry in plan:
            revision = entry.revision
            message = entry.final_message
            if not diverged and message == revision.message and revision.parent_id == new_parent:
                new_id = revision.id
            else:
                diverged = True
                # A reused message keeps its original bytes, so its encoding header still holds
                author = revision.author if message == revision.message else revision.author.for_new_message()
                try:
                    new_id = self.repo.write_commit(revision.tree_id, new_parent, author, message)
                except GitCommandError as exc:
                    raise MaterializationError(
                        f"could not re-create revision {revision.short_id}: {exc}",
                        hint="The branch was not modified.",
                    ) from exc
                logger.debug("Re-created %s as %s", revision.short_id, new_id[:7])
            id_map[revision.id] = new_id
            new_parent = new_id

        return new_parent, id_map

    def update_branch(self, revision_range: RevisionRange, new_tip: str) -> None:
        """Compare-and-swap the branch from the original tip to ``new_tip``."""
        ref = self.repo.branch_ref(revision_range.branch)
        try:
            self.repo.update_ref(
                ref,
                new_tip,
                expected_old=revision_range.tip,
                reason=f"rewrite-commits: reword {revision_range.branch}",
            )
        except GitCommandError as exc:
            current = self.repo.resolve(ref)
            if current != revision_range.tip:
                raise ConcurrentUpdateError(
                    f"branch {revision_range.branch!r} moved during the rewrite "
                    f"(expected {(revision_range.tip or '')[:7]}, found {(current or 'nothing')[:7]})",
                    hint="Nothing was overwritten. Re-run once the branch is stable.",
                ) from exc
            raise MaterializationError(f"could not update {ref}: {exc}") from exc
        logger.info("Branch %s moved to %s", revision_range.branch, new_tip[:7])

    def apply(self, plan: RewritePlan) -> RewriteResult:
        revision_range = plan.range
        new_tip, id_map = self.materialize(plan)
        if new_tip is not None and new_tip != revision_range.tip:
            self.update_branch(revision_range, new_tip)
        else:
            logger.info("No message changed; branch %s left as is", revision_range.branch)
        return RewriteResult(
            plan=plan,
            dry_run=False,
            old_tip=revision_range.tip,
            new_tip=new_tip,
            id_map=id_map,
        )

    # ------------------------------------------------------------------
    # Whole run
    # ------------------------------------------------------------------

    def rewrite(
        self,
        revision_range: RevisionRange,
        before_apply: Callable[[RewritePlan], None] | None = None,
    ) -> RewriteResult:
        """Plan, then (unless dry-run) materialise. ``before_apply`` runs between the two."""
        plan = self.build_plan(revision_range)

        if self.config.dry_run or revision_range.is_empty:
            return RewriteResult(
                plan=plan,
                dry_run=self.config.dry_run,
                old_tip=revision_range.tip,
                new_tip=revision_range.tip,
            )

        try:
            if before_apply is not None:
                before_apply(plan)
            return self.apply(plan)
        except RewriteError as exc:
            exc.plan = plan
            raise
