"""Plain-text reports for plans and finished runs."""

from __future__ import annotations

import textwrap

from rewrite_commits.core.state import PlanAction, RewritePlan, RewriteResult


def _indent(message: str) -> str:
    return textwrap.indent(message.strip() or "(empty)", "    ")


def render_plan(plan: RewritePlan, verbose: bool = False) -> str:
    """One line per revision; ``verbose`` adds old and new message bodies."""
    if not len(plan):
        return "No commits to process."

    lines = [f"Plan for {plan.range.branch} ({len(plan)} commit(s)):"]
    for entry in plan:
        revision = entry.revision
        marker = "~" if entry.action is PlanAction.REWRITE else "="
        score = f" [score {entry.score:g}]" if entry.score is not None else ""
        lines.append(f"  {marker} {revision.short_id} {entry.action.value:<7}{score} {revision.subject}")
        if entry.action is PlanAction.REWRITE and entry.new_message is not None:
            new_subject = entry.new_message.strip().splitlines()[0]
            lines.append(f"      -> {new_subject}")
        if verbose:
            lines.append(f"    reason: {entry.reason}")
            lines.append("    old:")
            lines.append(_indent(revision.message))
            if entry.action is PlanAction.REWRITE:
                lines.append("    new:")
                lines.append(_indent(entry.final_message))
    return "\n".join(lines)


def render_result(result: RewriteResult, verbose: bool = False) -> str:
    parts = [render_plan(result.plan, verbose=verbose)]
    summary = f"{result.rewritten_count} to rewrite, {result.kept_count} kept"

    if result.dry_run:
        parts.append(f"Dry run: {summary}. The repository was not modified.")
        return "\n\n".join(parts)

    if not result.changed:
        parts.append(f"Nothing changed ({summary}).")
        return "\n\n".join(parts)

    parts.append(
        f"Rewrote {result.plan.range.branch}: {summary}. "
        f"Tip {(result.old_tip or '')[:7]} -> {(result.new_tip or '')[:7]}."
    )
    if result.backup is not None:
        parts.append(
            f"Backup branch: {result.backup.name}\n"
            f"  Restore with: git update-ref refs/heads/{result.backup.branch} {result.backup.name}"
        )
    parts.append("History was rewritten; push with --force-with-lease if the branch is shared.")
    return "\n\n".join(parts)
