"""Git plumbing used by the rewrite engine.

Every call goes through ``subprocess`` with an argv list (never a shell) inside
the repository root.  Only plumbing commands are used: reading commits,
writing new commit objects with ``hash-object`` and moving refs with
``update-ref``.  The working tree and index are never touched.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from rewrite_commits.core.errors import ConfigurationError, GitCommandError
from rewrite_commits.core.logging import get_logger
from rewrite_commits.core.state import AuthorInfo, Revision

logger = get_logger("tools.git")

GIT_TIMEOUT_SECONDS = 60

# Headers that are regenerated or invalidated by a rewrite.
_STRUCTURAL_HEADERS = {"tree", "parent", "author", "committer"}
_SIGNATURE_HEADERS = {"gpgsig", "gpgsig-sha256"}


def _decode(data: bytes) -> str:
    # surrogateescape keeps non-UTF-8 messages byte-exact when written back
    return data.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def parse_commit_object(commit_id: str, raw: str) -> tuple[str, list[str], AuthorInfo, str]:
    """Split raw ``cat-file commit`` output into ``(tree, parents, author_info, message)``."""
    header_text, sep, message = raw.partition("\n\n")
    if not sep:
        # Commit with an empty message and no trailing blank line
        header_text, message = raw.rstrip("\n"), ""

    headers: list[tuple[str, str]] = []
    for line in header_text.split("\n"):
        if line.startswith(" ") and headers:
            key, value = headers[-1]
            headers[-1] = (key, value + "\n" + line)
            continue
        key, _, value = line.partition(" ")
        headers.append((key, value))

    tree = ""
    parents: list[str] = []
    author = committer = ""
    extra: list[str] = []
    for key, value in headers:
        if key == "tree":
            tree = value
        elif key == "parent":
            parents.append(value)
        elif key == "author":
            author = value
        elif key == "committer":
            committer = value
        elif key in _SIGNATURE_HEADERS:
            continue
        else:
            extra.append(f"{key} {value}")

    if not tree or not author or not committer:
        raise GitCommandError(["cat-file", "commit", commit_id], 0, "malformed commit object")
    return tree, parents, AuthorInfo(author=author, committer=committer, extra_headers=tuple(extra)), message


def format_commit_object(tree_id: str, parent_id: str | None, author: AuthorInfo, message: str) -> str:
    """Inverse of :func:`parse_commit_object` for a single-parent commit."""
    lines = [f"tree {tree_id}"]
    if parent_id:
        lines.append(f"parent {parent_id}")
    lines.append(f"author {author.author}")
    lines.append(f"committer {author.committer}")
    lines.extend(author.extra_headers)
    if message and not message.endswith("\n"):
        message += "\n"
    return "\n".join(lines) + "\n\n" + message


class GitRepository:
    """Thin wrapper around the git CLI for one repository."""

    def __init__(self, path: str | Path = ".") -> None:
        self.path = Path(path).expanduser().resolve()

    # ── Process plumbing ──────────────────────────────────────────────

    def _run_bytes(self, args: list[str], input: bytes | None = None, check: bool = True) -> subprocess.CompletedProcess:
        logger.debug("git | %s", " ".join(args))
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self.path),
                input=input,
                capture_output=True,
                timeout=GIT_TIMEOUT_SECONDS,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except FileNotFoundError as exc:
            raise ConfigurationError(
                "git executable not found",
                hint="Install git and make sure it is on your PATH.",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(args, -1, f"timed out after {GIT_TIMEOUT_SECONDS}s") from exc

        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, _decode(result.stderr))
        return result

    def run(self, args: list[str], input: str | None = None, check: bool = True) -> str:
        """Run a git command and return stdout with the trailing newline stripped."""
        result = self._run_bytes(args, input=_encode(input) if input is not None else None, check=check)
        return _decode(result.stdout).rstrip("\n")

    # ── Repository facts ──────────────────────────────────────────────

    def is_repository(self) -> bool:
        if not self.path.is_dir():
            return False
        result = self._run_bytes(["rev-parse", "--is-inside-work-tree"], check=False)
        return result.returncode == 0 and _decode(result.stdout).strip() == "true"

    def ensure_repository(self) -> None:
        if not self.is_repository():
            raise ConfigurationError(
                f"not a git repository: {self.path}",
                hint="Run this command from within a git repository.",
            )

    def git_dir(self) -> Path:
        return Path(self.run(["rev-parse", "--absolute-git-dir"]))

    def hooks_dir(self) -> Path:
        hooks = Path(self.run(["rev-parse", "--git-path", "hooks"]))
        return hooks if hooks.is_absolute() else (self.path / hooks).resolve()

    def current_branch(self) -> str:
        result = self._run_bytes(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        if result.returncode != 0:
            raise ConfigurationError(
                "HEAD is detached; there is no current branch to rewrite",
                hint="Check out a branch or pass --branch.",
            )
        return _decode(result.stdout).strip()

    def branch_ref(self, branch: str) -> str:
        return branch if branch.startswith("refs/") else f"refs/heads/{branch}"

    def resolve(self, ref: str) -> str | None:
        """Return the commit id ``ref`` points at, or None when it does not exist."""
        result = self._run_bytes(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        if result.returncode != 0:
            return None
        return _decode(result.stdout).strip()

    def ref_exists(self, ref: str) -> bool:
        result = self._run_bytes(["show-ref", "--verify", "--quiet", ref], check=False)
        return result.returncode == 0

    # ── Reading history ───────────────────────────────────────────────

    def list_commits(self, tip: str, limit: int | None = None) -> list[tuple[str, list[str]]]:
        """Return ``(id, parent_ids)`` pairs reachable from ``tip``, newest first."""
        args = ["rev-list", "--parents", "--topo-order"]
        if limit is not None:
            args.append(f"--max-count={limit}")
        args.append(tip)
        out = self.run(args)
        commits: list[tuple[str, list[str]]] = []
        for line in out.splitlines():
            parts = line.split()
            if parts:
                commits.append((parts[0], parts[1:]))
        return commits

    def read_revision(self, commit_id: str) -> Revision:
        raw = _decode(self._run_bytes(["cat-file", "commit", commit_id]).stdout)
        tree, parents, author, message = parse_commit_object(commit_id, raw)
        if len(parents) > 1:
            raise ConfigurationError(
                f"revision {commit_id[:7]} is a merge commit",
                hint="Only linear history without merges can be rewritten.",
            )
        return Revision(
            id=commit_id,
            parent_id=parents[0] if parents else None,
            tree_id=tree,
            message=message,
            author=author,
            diff_loader=lambda: self.diff_for(commit_id),
        )

    def diff_for(self, commit_id: str) -> str:
        return self.run(
            ["show", "--format=", "--patch", "--stat", "--no-color", "--no-ext-diff", commit_id]
        )

    def staged_diff(self) -> str:
        return self.run(["diff", "--cached", "--patch", "--stat", "--no-color", "--no-ext-diff"])

    # ── Writing ───────────────────────────────────────────────────────

    def write_commit(self, tree_id: str, parent_id: str | None, author: AuthorInfo, message: str) -> str:
        """Store a new commit object and return its id. Refs are not touched."""
        body = format_commit_object(tree_id, parent_id, author, message)
        result = self._run_bytes(["hash-object", "-t", "commit", "-w", "--stdin"], input=_encode(body))
        return _decode(result.stdout).strip()

    def update_ref(self, ref: str, new_id: str, expected_old: str | None, reason: str = "") -> None:
        """Move ``ref`` to ``new_id`` only if it currently equals ``expected_old``.

        ``expected_old=None`` means the ref must not exist yet.
        """
        args = ["update-ref"]
        if reason:
            args += ["-m", reason]
        args += [ref, new_id, expected_old or ""]
        self.run(args)

    def set_ref(self, ref: str, new_id: str, reason: str = "") -> None:
        """Point ``ref`` at ``new_id`` whatever it currently holds."""
        args = ["update-ref"]
        if reason:
            args += ["-m", reason]
        self.run(args + [ref, new_id])

    def tree_of(self, commit_id: str) -> str:
        return self.run(["rev-parse", f"{commit_id}^{{tree}}"])
