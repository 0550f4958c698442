"""Tests for the git hook installer."""

import os

import pytest

from rewrite_commits.core.errors import ConfigurationError
from rewrite_commits.hooks.installer import HOOKS, SCRIPTS_DIR, install_hooks
from rewrite_commits.tools.git import GitRepository


def test_bundled_scripts_exist():
    for name in HOOKS:
        script = SCRIPTS_DIR / name
        assert script.is_file()
        assert script.read_text().startswith("#!/bin/sh")


def test_installs_all_hooks(linear_repo):
    repo, _ = linear_repo
    report = install_hooks(repo)

    assert sorted(report.installed) == sorted(HOOKS)
    assert report.skipped == []
    for name in HOOKS:
        target = repo.hooks_dir() / name
        assert target.read_text() == (SCRIPTS_DIR / name).read_text()
        assert os.access(target, os.X_OK)


def test_existing_hooks_are_not_overwritten(linear_repo):
    repo, _ = linear_repo
    hooks_dir = repo.hooks_dir()
    hooks_dir.mkdir(parents=True, exist_ok=True)
    (hooks_dir / "pre-commit").write_text("#!/bin/sh\necho mine\n")

    report = install_hooks(repo)

    assert report.skipped == ["pre-commit"]
    assert report.installed == ["prepare-commit-msg"]
    assert (hooks_dir / "pre-commit").read_text() == "#!/bin/sh\necho mine\n"


def test_missing_source_is_reported(linear_repo, tmp_path):
    repo, _ = linear_repo
    report = install_hooks(repo, scripts_dir=tmp_path / "empty")
    assert set(report.failed) == set(HOOKS)
    assert report.installed == []


def test_requires_a_repository(tmp_path):
    with pytest.raises(ConfigurationError):
        install_hooks(GitRepository(tmp_path))
