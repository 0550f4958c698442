"""Install the bundled git hooks into a repository.

Existing hooks are never overwritten; they are reported as skipped.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rewrite_commits.core.logging import get_logger
from rewrite_commits.tools.git import GitRepository

logger = get_logger("hooks.installer")

SCRIPTS_DIR = Path(__file__).parent / "scripts"

HOOKS: dict[str, str] = {
    "pre-commit": "Preview AI message before committing",
    "prepare-commit-msg": "Generate AI message automatically",
}

SETUP_INSTRUCTIONS = """\
Hooks are opt-in. Enable the ones you want:
  git config hooks.preCommitPreview true    # preview before commit
  git config hooks.prepareCommitMsg true    # fill in the message automatically

Choose a provider:
  export OPENAI_API_KEY="your-api-key"      # OpenAI (sends diffs to a remote API)
  git config hooks.commitProvider ollama    # Ollama (stays on this machine)

Optional:
  git config hooks.commitTemplate "type(scope): message"
  git config hooks.commitLanguage "en"

Enabling a hook counts as consent to send staged diffs to the configured provider."""


@dataclass
class HookInstallReport:
    installed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def install_hooks(repo: GitRepository, scripts_dir: Path = SCRIPTS_DIR) -> HookInstallReport:
    """Copy each bundled hook into the repository's hooks directory."""
    repo.ensure_repository()
    hooks_dir = repo.hooks_dir()
    hooks_dir.mkdir(parents=True, exist_ok=True)

    report = HookInstallReport()
    for name in HOOKS:
        source = scripts_dir / name
        target = hooks_dir / name

        if not source.is_file():
            logger.error("Hook %s: bundled script not found at %s", name, source)
            report.failed[name] = "source not found"
            continue

        if target.exists():
            logger.warning("Hook %s already exists (skipped)", name)
            report.skipped.append(name)
            continue

        try:
            shutil.copyfile(source, target)
            target.chmod(0o755)
        except OSError as exc:
            logger.error("Hook %s: installation failed: %s", name, exc)
            report.failed[name] = str(exc)
            continue

        logger.info("Hook %s installed at %s", name, target)
        report.installed.append(name)

    return report
