"""Top-level workflows: rewrite a branch, or generate a message for staged changes.

This is the only layer that looks at process settings.  It turns them into an
explicit :class:`Configuration` and wires the repository, generation client,
safety controller and rewriter together.
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import ValidationError

from rewrite_commits.agents.client import GenerationClient
from rewrite_commits.agents.models import build_client, validate_credentials
from rewrite_commits.core.config import Configuration, Settings, get_settings
from rewrite_commits.core.errors import ConcurrentUpdateError, ConfigurationError
from rewrite_commits.core.logging import get_logger
from rewrite_commits.core.rewriter import RevisionGraphRewriter
from rewrite_commits.core.safety import SafetyController
from rewrite_commits.core.state import AuthorInfo, BackupRef, Revision, RewritePlan, RewriteResult
from rewrite_commits.tools.git import GitRepository

logger = get_logger("core.orchestrator")


def build_configuration(settings: Settings | None = None, **options: Any) -> Configuration:
    """Merge CLI options over environment settings into a validated Configuration.

    ``None`` options fall back to the settings (API key, URLs, model names).
    """
    settings = settings or get_settings()
    values = {key: value for key, value in options.items() if value is not None}

    provider = values.get("provider", "openai")
    values.setdefault("api_key", settings.openai_api_key or None)
    values.setdefault("openai_base_url", settings.openai_base_url or None)
    values.setdefault("ollama_url", settings.ollama_base_url)
    values.setdefault("model", settings.ollama_model if provider == "ollama" else settings.openai_model)

    try:
        return Configuration(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"invalid options: {problems}", hint="See --help for valid values.") from exc


class RewriteOrchestrator:
    """Wires the engine together for one invocation."""

    def __init__(
        self,
        config: Configuration,
        repo: GitRepository | None = None,
        client: GenerationClient | None = None,
        safety: SafetyController | None = None,
        client_factory: Callable[[Configuration], GenerationClient] = build_client,
    ) -> None:
        self.config = config
        self.repo = repo or GitRepository(config.repo_path)
        self.safety = safety or SafetyController(self.repo)
        self._client = client
        self._client_factory = client_factory

    @property
    def client(self) -> GenerationClient:
        if self._client is None:
            validate_credentials(self.config)
            self._client = self._client_factory(self.config)
        return self._client

    def _require_consent(self) -> None:
        client = self.client
        self.safety.require_remote_consent(self.config, client.is_remote, client.name())

    # ------------------------------------------------------------------
    # Workflow: rewrite a branch
    # ------------------------------------------------------------------

    def rewrite(self) -> RewriteResult:
        self.repo.ensure_repository()
        client = self.client
        logger.info("Using %s", client.name())

        branch = self.config.branch or self.repo.current_branch()
        rewriter = RevisionGraphRewriter(self.repo, self.config, client)

        with self.safety.branch_lock(branch):
            revision_range = rewriter.resolve_range()
            if revision_range.is_empty:
                logger.info("Nothing to rewrite on %s", branch)
                return rewriter.rewrite(revision_range)

            self._require_consent()

            backup: BackupRef | None = None

            def _backup(plan: RewritePlan) -> None:
                nonlocal backup
                if plan.has_changes:
                    backup = self.safety.prepare(self.config, revision_range)

            try:
                result = rewriter.rewrite(revision_range, before_apply=_backup)
            except ConcurrentUpdateError:
                # The branch now belongs to another writer; it is not restored
                raise
            except BaseException:
                if backup is not None:
                    logger.error("Rewrite failed; restoring %s from %s", branch, backup.name)
                    self.safety.restore(backup)
                raise

        result.backup = backup
        return result

    # ------------------------------------------------------------------
    # Workflow: message for the staged change (git hooks)
    # ------------------------------------------------------------------

    def generate_for_staged(self) -> str:
        self.repo.ensure_repository()
        diff = self.repo.staged_diff()
        if not diff.strip():
            raise ConfigurationError("no staged changes", hint="Stage changes with 'git add' first.")

        self._require_consent()
        staged = Revision(
            id="staged",
            parent_id=None,
            tree_id="",
            message="",
            author=AuthorInfo(author="", committer=""),
            diff_loader=lambda: diff,
        )
        rewriter = RevisionGraphRewriter(self.repo, self.config, self.client)
        return rewriter.generate_message(staged)
