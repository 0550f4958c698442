"""End-to-end tests for the rewrite and staged-generation workflows."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from conftest import FakeClient, branch_refs, commit_file, git, init_repo

from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import ConfigurationError, ConsentDeniedError, GitCommandError, MaterializationError
from rewrite_commits.core.orchestrator import RewriteOrchestrator, build_configuration
from rewrite_commits.core.safety import SafetyController
from rewrite_commits.core.state import PlanAction
from rewrite_commits.tools.git import GitRepository

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class SpySafety(SafetyController):
    def __init__(self, repo, **kwargs):
        super().__init__(repo, clock=lambda: FIXED_NOW, **kwargs)
        self.restored = []

    def restore(self, backup):
        self.restored.append(backup)
        super().restore(backup)


def _orchestrator(repo, config, client=None, **safety_kwargs):
    return RewriteOrchestrator(
        config,
        repo=repo,
        client=client or FakeClient(),
        safety=SpySafety(repo, **safety_kwargs),
    )


def _backups(repo):
    return [line for line in branch_refs(repo.path).splitlines() if "-backup-" in line]


class TestRewriteWorkflow:
    def test_rewrite_creates_backup_at_original_tip(self, linear_repo, config_factory):
        repo, ids = linear_repo
        orchestrator = _orchestrator(repo, config_factory())
        result = orchestrator.rewrite()

        assert result.backup is not None
        assert result.backup.name == "main-backup-20260102030405"
        assert repo.resolve("refs/heads/main-backup-20260102030405") == ids[-1]
        assert repo.resolve("refs/heads/main") == result.new_tip != ids[-1]
        assert result.rewritten_count == 3
        assert not (repo.git_dir() / "rewrite-commits" / "main.lock").exists()

    def test_dry_run_creates_no_backup(self, linear_repo, config_factory):
        repo, ids = linear_repo
        before = branch_refs(repo.path)
        result = _orchestrator(repo, config_factory(dry_run=True)).rewrite()

        assert [e.action for e in result.plan] == [PlanAction.REWRITE] * 3
        assert result.backup is None
        assert branch_refs(repo.path) == before

    def test_consent_denied_aborts_before_any_call(self, linear_repo, config_factory):
        repo, ids = linear_repo
        before = branch_refs(repo.path)
        client = FakeClient(is_remote=True)
        orchestrator = _orchestrator(repo, config_factory(provider="openai", api_key="sk"), client, confirm=lambda q: False)

        with pytest.raises(ConsentDeniedError):
            orchestrator.rewrite()

        assert client.calls == []
        assert branch_refs(repo.path) == before
        assert _backups(repo) == []

    def test_consent_given_for_remote_backend(self, linear_repo, config_factory):
        repo, ids = linear_repo
        client = FakeClient(is_remote=True)
        orchestrator = _orchestrator(repo, config_factory(provider="openai", api_key="sk"), client, confirm=lambda q: True)
        assert orchestrator.rewrite().changed
        assert len(client.calls) == 3

    def test_failure_after_backup_restores_and_reraises(self, make_repo, config_factory, monkeypatch):
        repo, ids = make_repo(["a", "b", "c"])
        real_write = repo.write_commit
        calls = {"n": 0}

        def flaky_write(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise GitCommandError(["hash-object"], 1, "permission denied")
            return real_write(*args, **kwargs)

        monkeypatch.setattr(repo, "write_commit", flaky_write)
        orchestrator = _orchestrator(repo, config_factory())

        with pytest.raises(MaterializationError):
            orchestrator.rewrite()

        assert repo.resolve("refs/heads/main") == ids[-1]
        assert len(orchestrator.safety.restored) == 1
        assert len(_backups(repo)) == 1

    def test_nothing_to_change_creates_no_backup(self, make_repo, config_factory):
        repo, ids = make_repo(["feat(core): add the initial parser module"])
        result = _orchestrator(repo, config_factory(skip_well_formed=True)).rewrite()
        assert not result.changed
        assert result.backup is None
        assert _backups(repo) == []

    def test_not_a_repository(self, tmp_path, config_factory):
        orchestrator = _orchestrator(GitRepository(tmp_path), config_factory())
        with pytest.raises(ConfigurationError):
            orchestrator.rewrite()

    def test_missing_api_key_fails_before_engine_work(self, linear_repo):
        repo, ids = linear_repo
        orchestrator = RewriteOrchestrator(Configuration(provider="openai"), repo=repo)
        with pytest.raises(ConfigurationError) as exc:
            orchestrator.rewrite()
        assert "API key" in str(exc.value)
        assert _backups(repo) == []


class TestStagedWorkflow:
    def test_generates_message_for_staged_diff(self, tmp_path, config_factory):
        path = init_repo(tmp_path / "staged")
        commit_file(path, "a.txt", "one\n", "init")
        (path / "a.txt").write_text("two\n")
        git(path, "add", "a.txt")
        before = branch_refs(path)
        client = FakeClient(reply="feat: change a")

        repo = GitRepository(path)
        message = _orchestrator(repo, config_factory(template="[T-1] message"), client).generate_for_staged()

        assert message == "[T-1] feat: change a"
        assert len(client.calls) == 1
        assert branch_refs(path) == before
        assert _backups(repo) == []

    def test_staged_prompt_contains_the_staged_diff(self, tmp_path, config_factory):
        path = init_repo(tmp_path / "staged")
        commit_file(path, "a.txt", "one\n", "init")
        (path / "a.txt").write_text("two\n")
        git(path, "add", "a.txt")
        client = FakeClient(reply="fix: tweak a")

        RewriteOrchestrator(config_factory(), repo=GitRepository(path), client=client).generate_for_staged()
        assert "+two" in client.calls[0][1]

    def test_nothing_staged(self, linear_repo, config_factory):
        repo, _ = linear_repo
        with pytest.raises(ConfigurationError) as exc:
            _orchestrator(repo, config_factory()).generate_for_staged()
        assert "no staged changes" in str(exc.value)


class TestBuildConfiguration:
    def _settings(self, **overrides):
        values = {
            "openai_api_key": "env-key",
            "openai_base_url": "",
            "ollama_base_url": "http://localhost:11434",
            "openai_model": "gpt-3.5-turbo",
            "ollama_model": "llama3.2",
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_settings_fill_missing_options(self):
        config = build_configuration(self._settings(), provider="openai", api_key=None, dry_run=True)
        assert config.api_key == "env-key"
        assert config.model == "gpt-3.5-turbo"
        assert config.dry_run is True

    def test_explicit_options_win(self):
        config = build_configuration(self._settings(), provider="ollama", model="qwen2.5", ollama_url="http://box:1")
        assert config.model == "qwen2.5"
        assert config.ollama_url == "http://box:1"

    def test_invalid_options_are_configuration_errors(self):
        with pytest.raises(ConfigurationError) as exc:
            build_configuration(self._settings(), min_quality_score=11)
        assert "min_quality_score" in str(exc.value)

        with pytest.raises(ConfigurationError):
            build_configuration(self._settings(), template="[JIRA-1] fix:")
