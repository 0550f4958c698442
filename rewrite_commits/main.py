"""git-rewrite-commits entry point.

Rewrites the messages of the current branch's commits with a generation
backend, or prints a message for the staged change (``--staged``, used by
the git hooks).
"""

from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version

from rewrite_commits.core.config import get_settings
from rewrite_commits.core.errors import ConsentDeniedError, GenerationError, RewriteError
from rewrite_commits.core.logging import get_logger, setup_logging
from rewrite_commits.core.orchestrator import RewriteOrchestrator, build_configuration
from rewrite_commits.core.report import render_plan, render_result
from rewrite_commits.hooks.installer import HOOKS, SETUP_INSTRUCTIONS, install_hooks
from rewrite_commits.tools.git import GitRepository

EPILOG = """\
examples:
  git-rewrite-commits --dry-run
  git-rewrite-commits --max-commits 10
  git-rewrite-commits --no-skip-well-formed
  git-rewrite-commits --min-quality-score 8
  git-rewrite-commits --template "[JIRA-123] feat: message"
  git-rewrite-commits --language es
  git-rewrite-commits --provider ollama --model llama3.2
  git-rewrite-commits --staged

environment:
  OPENAI_API_KEY    API key for the openai provider
  OPENAI_BASE_URL   OpenAI-compatible endpoint (optional)
  OLLAMA_BASE_URL   Ollama server URL (default http://localhost:11434)

This tool rewrites git history. Work on a separate branch and push with
--force-with-lease."""


def _package_version() -> str:
    try:
        return version("git-rewrite-commits")
    except PackageNotFoundError:
        return "0.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-rewrite-commits",
        description="Rewrite git commit messages with OpenAI or Ollama.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    parser.add_argument("--provider", choices=["openai", "ollama"], default="openai", help="generation backend")
    parser.add_argument("-k", "--api-key", help="OpenAI API key (defaults to OPENAI_API_KEY)")
    parser.add_argument("-m", "--model", help="model name (gpt-3.5-turbo for OpenAI, llama3.2 for Ollama)")
    parser.add_argument("--ollama-url", help="Ollama server URL")
    parser.add_argument("--base-url", dest="openai_base_url", help="OpenAI-compatible API base URL")
    parser.add_argument("-C", "--repo", dest="repo_path", default=".", help="repository path (default: cwd)")
    parser.add_argument("-b", "--branch", help="branch to rewrite (defaults to the current branch)")
    parser.add_argument("-d", "--dry-run", action="store_true", help="show the plan without modifying the repository")
    parser.add_argument("-v", "--verbose", action="store_true", help="show old and new messages and debug logs")
    parser.add_argument("--max-commits", type=int, help="process only the last N commits")
    parser.add_argument("--skip-backup", action="store_true", help="do not create a backup branch (not recommended)")
    parser.add_argument(
        "--no-skip-well-formed",
        dest="skip_well_formed",
        action="store_false",
        help="rewrite every commit, even well-formed ones",
    )
    parser.add_argument("--min-quality-score", type=float, help="score (1-10) a message needs to be kept (default 7)")
    parser.add_argument("--llm-quality-score", action="store_true", help="ask the backend for quality scores")
    parser.add_argument("-t", "--template", help='message template, e.g. "[JIRA-123] feat: message"')
    parser.add_argument("-l", "--language", help='language of generated messages (default "en")')
    parser.add_argument("-p", "--prompt", dest="custom_prompt", help="custom instructions replacing the default prompt")
    parser.add_argument(
        "--on-generation-error",
        choices=["abort", "keep"],
        help="abort the run (default) or keep the original message when generation fails",
    )
    parser.add_argument("--concurrency", type=int, help="parallel generation requests while planning (default 4)")
    parser.add_argument("--staged", action="store_true", help="print a message for the staged changes (for git hooks)")
    parser.add_argument(
        "--skip-remote-consent",
        action="store_true",
        help="do not ask before sending diffs to a remote API (automation only)",
    )
    parser.add_argument("--install-hooks", action="store_true", help="install the pre-commit and prepare-commit-msg hooks")
    return parser


def _install_hooks(repo_path: str) -> int:
    report = install_hooks(GitRepository(repo_path))
    for name, description in HOOKS.items():
        if name in report.installed:
            status = "installed"
        elif name in report.skipped:
            status = "already exists (skipped)"
        else:
            status = f"failed: {report.failed.get(name, 'unknown error')}"
        print(f"  {name} - {description}: {status}")
    print(f"\nInstalled: {len(report.installed)} hook(s), skipped: {len(report.skipped)}")
    if report.installed:
        print()
        print(SETUP_INSTRUCTIONS)
    return 1 if report.failed else 0


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)
    logger = get_logger("main")

    try:
        if args.install_hooks:
            return _install_hooks(args.repo_path)

        options = {
            key: value
            for key, value in vars(args).items()
            if key not in {"staged", "install_hooks"}
        }
        config = build_configuration(get_settings(), **options)
        orchestrator = RewriteOrchestrator(config)

        if args.staged:
            print(orchestrator.generate_for_staged())
            return 0

        result = orchestrator.rewrite()
        print(render_result(result, verbose=config.verbose))
        return 0

    except ConsentDeniedError as exc:
        print(f"Aborted: {exc}", file=sys.stderr)
        if exc.hint:
            print(exc.hint, file=sys.stderr)
        return 1
    except RewriteError as exc:
        if exc.plan is not None and len(exc.plan):
            print(render_plan(exc.plan, verbose=args.verbose))
        if isinstance(exc, GenerationError) and exc.revision_id:
            print(f"Error: revision {exc.revision_id[:7]}: {exc}", file=sys.stderr)
        else:
            print(f"Error: {exc}", file=sys.stderr)
        if exc.hint:
            print(exc.hint, file=sys.stderr)
        logger.debug("Failure details", exc_info=True)
        return 1
    except KeyboardInterrupt:
        print("Interrupted; the branch was not changed.", file=sys.stderr)
        return 1


def main() -> None:
    """Console script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
