"""Tests for backups, rollback, the remote consent gate and the branch lock."""

from datetime import datetime, timezone

import pytest

from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import ConfigurationError, ConsentDeniedError
from rewrite_commits.core.safety import SafetyController
from rewrite_commits.core.state import RevisionRange

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _range(ids):
    return RevisionRange(branch="main", tip=ids[-1], base=None)


class TestBackup:
    def test_prepare_creates_backup_at_tip(self, linear_repo):
        repo, ids = linear_repo
        safety = SafetyController(repo, clock=lambda: FIXED_NOW)
        backup = safety.prepare(Configuration(), _range(ids))
        assert backup.name == "main-backup-20260102030405"
        assert backup.target_id == ids[-1]
        assert repo.resolve("refs/heads/main-backup-20260102030405") == ids[-1]

    def test_backup_name_never_collides(self, linear_repo):
        repo, ids = linear_repo
        safety = SafetyController(repo, clock=lambda: FIXED_NOW)
        first = safety.prepare(Configuration(), _range(ids))
        second = safety.prepare(Configuration(), _range(ids))
        assert first.name != second.name
        assert second.name == "main-backup-20260102030405-2"

    def test_skip_backup(self, linear_repo):
        repo, ids = linear_repo
        assert SafetyController(repo).prepare(Configuration(skip_backup=True), _range(ids)) is None

    def test_restore_is_idempotent(self, linear_repo):
        repo, ids = linear_repo
        safety = SafetyController(repo, clock=lambda: FIXED_NOW)
        backup = safety.prepare(Configuration(), _range(ids))
        repo.set_ref("refs/heads/main", ids[0])

        safety.restore(backup)
        assert repo.resolve("refs/heads/main") == ids[-1]
        safety.restore(backup)
        assert repo.resolve("refs/heads/main") == ids[-1]


class TestConsent:
    def test_local_backend_needs_no_consent(self, linear_repo):
        repo, _ = linear_repo
        asked = []
        safety = SafetyController(repo, confirm=lambda q: asked.append(q) or False)
        assert safety.confirm_remote_consent(Configuration(), is_remote=False) is True
        assert asked == []

    def test_remote_backend_asks(self, linear_repo):
        repo, _ = linear_repo
        asked = []
        safety = SafetyController(repo, confirm=lambda q: asked.append(q) or True)
        assert safety.confirm_remote_consent(Configuration(), is_remote=True, client_name="OpenAI (x)") is True
        assert "OpenAI (x)" in asked[0]

    def test_skip_remote_consent(self, linear_repo):
        repo, _ = linear_repo
        safety = SafetyController(repo, confirm=lambda q: False)
        assert safety.confirm_remote_consent(Configuration(skip_remote_consent=True), is_remote=True)

    def test_denial_raises(self, linear_repo):
        repo, _ = linear_repo
        safety = SafetyController(repo, confirm=lambda q: False)
        with pytest.raises(ConsentDeniedError):
            safety.require_remote_consent(Configuration(), is_remote=True)

    def test_no_terminal_means_no_consent(self, monkeypatch):
        from rewrite_commits.core import safety

        class NotATty:
            def isatty(self):
                return False

        monkeypatch.setattr(safety.sys, "stdin", NotATty())
        assert safety.ask_yes_no("Continue?") is False


class TestBranchLock:
    def test_lock_is_exclusive_and_released(self, linear_repo):
        repo, _ = linear_repo
        safety = SafetyController(repo)
        with safety.branch_lock("main") as path:
            assert path.exists()
            with pytest.raises(ConfigurationError) as exc:
                with safety.branch_lock("main"):
                    pass
            assert str(path) in exc.value.hint
            # other branches are independent
            with safety.branch_lock("feature/x"):
                pass
        assert not path.exists()

    def test_lock_released_on_error(self, linear_repo):
        repo, _ = linear_repo
        safety = SafetyController(repo)
        with pytest.raises(RuntimeError):
            with safety.branch_lock("main"):
                raise RuntimeError("boom")
        with safety.branch_lock("main"):
            pass

    def test_similar_branch_names_do_not_share_a_lock(self, linear_repo):
        repo, _ = linear_repo
        safety = SafetyController(repo)
        with safety.branch_lock("feature/x") as first:
            with safety.branch_lock("feature_x") as second:
                assert first != second
