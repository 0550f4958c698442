"""Safety rails around a history rewrite: backup refs, rollback, consent and branch locking."""

from __future__ import annotations

import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator
from urllib.parse import quote

from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import ConfigurationError, ConsentDeniedError
from rewrite_commits.core.logging import get_logger
from rewrite_commits.core.state import BackupRef, RevisionRange
from rewrite_commits.tools.git import GitRepository

logger = get_logger("core.safety")

CONSENT_QUESTION = (
    "{name} sends the diffs of the selected commits to a remote service. Continue?"
)


def ask_yes_no(question: str) -> bool:
    """Interactive yes/no on stderr. No terminal means no consent."""
    if not sys.stdin or not sys.stdin.isatty():
        logger.warning("No interactive terminal to ask for consent; treating as declined")
        return False
    sys.stderr.write(f"{question} [y/N]: ")
    sys.stderr.flush()
    answer = sys.stdin.readline()
    return answer.strip().lower() in {"y", "yes"}


def _lock_name(branch: str) -> str:
    return quote(branch, safe="") + ".lock"


class SafetyController:
    """Creates and restores backup refs, gates remote calls on consent, and serialises runs per branch."""

    def __init__(
        self,
        repo: GitRepository,
        confirm: Callable[[str], bool] = ask_yes_no,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repo = repo
        self._confirm = confirm
        self._clock = clock

    # ── Backup / restore ──────────────────────────────────────────────

    def backup_name(self, branch: str) -> str:
        stamp = self._clock().strftime("%Y%m%d%H%M%S")
        base = f"{branch}-backup-{stamp}"
        name, n = base, 1
        while self.repo.ref_exists(self.repo.branch_ref(name)):
            n += 1
            name = f"{base}-{n}"
        return name

    def prepare(self, config: Configuration, revision_range: RevisionRange) -> BackupRef | None:
        """Record the original tip under a new branch name unless backups are disabled."""
        if config.skip_backup:
            logger.warning("Backup skipped (--skip-backup); the original history is only in the reflog")
            return None
        if revision_range.tip is None:
            return None

        name = self.backup_name(revision_range.branch)
        self.repo.update_ref(
            self.repo.branch_ref(name),
            revision_range.tip,
            expected_old=None,
            reason=f"rewrite-commits: backup of {revision_range.branch}",
        )
        backup = BackupRef(name=name, target_id=revision_range.tip, branch=revision_range.branch)
        logger.info("Backup branch created: %s -> %s", name, revision_range.tip[:7])
        return backup

    def restore(self, backup: BackupRef) -> None:
        """Reset the branch to the backup's revision. Safe to call more than once."""
        ref = self.repo.branch_ref(backup.branch)
        if self.repo.resolve(ref) == backup.target_id:
            logger.info("Branch %s already at backup %s", backup.branch, backup.target_id[:7])
            return
        self.repo.set_ref(ref, backup.target_id, reason=f"rewrite-commits: restore from {backup.name}")
        logger.warning("Branch %s restored from %s", backup.branch, backup.name)

    # ── Consent ───────────────────────────────────────────────────────

    def confirm_remote_consent(self, config: Configuration, is_remote: bool, client_name: str = "") -> bool:
        """True when revision content may leave the machine."""
        if not is_remote:
            return True
        if config.skip_remote_consent:
            logger.info("Remote consent prompt skipped (--skip-remote-consent)")
            return True
        return self._confirm(CONSENT_QUESTION.format(name=client_name or "The selected provider"))

    def require_remote_consent(self, config: Configuration, is_remote: bool, client_name: str = "") -> None:
        if not self.confirm_remote_consent(config, is_remote, client_name):
            raise ConsentDeniedError(
                "consent to send commit contents to a remote provider was not given",
                hint="Use --provider ollama to keep everything local, or --skip-remote-consent in automation.",
            )

    # ── Branch lock ───────────────────────────────────────────────────

    @contextmanager
    def branch_lock(self, branch: str) -> Iterator[Path]:
        """Advisory lock held for the duration of one run on ``branch``."""
        lock_dir = self.repo.git_dir() / "rewrite-commits"
        lock_dir.mkdir(parents=True, exist_ok=True)
        path = lock_dir / _lock_name(branch)
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise ConfigurationError(
                f"branch {branch!r} is being rewritten by another run",
                hint=f"If no other run is active, delete {path}.",
            ) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(f"{os.getpid()}\n")
        logger.debug("Lock acquired: %s", path)
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)
            logger.debug("Lock released: %s", path)
