"""Shared fixtures: throwaway git repositories and a scripted generation client."""

from __future__ import annotations

import os
import subprocess
import threading
from pathlib import Path

import pytest

from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import GenerationError
from rewrite_commits.tools.git import GitRepository

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Ada Author",
    "GIT_AUTHOR_EMAIL": "ada@example.com",
    "GIT_COMMITTER_NAME": "Carl Committer",
    "GIT_COMMITTER_EMAIL": "carl@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
    "HOME": os.environ.get("HOME", "/tmp"),
}


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=str(repo),
        capture_output=True,
        text=True,
        env=GIT_ENV,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(path, "config", "user.email", "ada@example.com")
    git(path, "config", "user.name", "Ada Author")
    return path


def branch_refs(repo: Path) -> str:
    """Every ref name and target; used to prove a run left refs byte-identical."""
    return git(repo, "for-each-ref", "--format=%(refname) %(objectname)")


class FakeClient:
    """Deterministic GenerationClient. ``reply`` may be a string or ``f(system, user)``."""

    def __init__(self, reply="fix: X", is_remote: bool = False, fail_when: str | None = None) -> None:
        self.reply = reply
        self.is_remote = is_remote
        self.fail_when = fail_when
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def name(self) -> str:
        return "Fake (test)"

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        with self._lock:
            self.calls.append((system_prompt, user_prompt))
        if self.fail_when is not None and self.fail_when in user_prompt:
            raise GenerationError("backend unavailable")
        if callable(self.reply):
            return self.reply(system_prompt, user_prompt)
        return self.reply


@pytest.fixture
def make_repo(tmp_path):
    """Factory: a repo on ``main`` with one commit per message, each touching its own file."""

    def _make(messages: list[str], name: str = "repo") -> tuple[GitRepository, list[str]]:
        path = init_repo(tmp_path / name)
        ids = [
            commit_file(path, f"file{index}.txt", f"content {index}\n", message)
            for index, message in enumerate(messages)
        ]
        return GitRepository(path), ids

    return _make


@pytest.fixture
def linear_repo(make_repo):
    """Three low-quality commits on main."""
    return make_repo(["wip", "update", "stuff"])


@pytest.fixture
def config_factory():
    def _config(**overrides) -> Configuration:
        values = {"provider": "ollama", "skip_well_formed": False, "concurrency": 2}
        values.update(overrides)
        return Configuration(**values)

    return _config
