"""Centralized logging configuration for git-rewrite-commits."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rewrite_commits.core.config import get_settings

_configured = False


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the package logger with a stderr handler and an optional rotating file. Idempotent.

    stdout is left alone: ``--staged`` prints the generated message there and
    git hooks capture it verbatim.
    """
    global _configured
    logger = logging.getLogger("rewrite_commits")
    if _configured:
        if verbose:
            logger.setLevel(logging.DEBUG)
        return logger

    settings = get_settings()
    level = logging.DEBUG if verbose else getattr(
        logging, settings.rewrite_commits_log_level.upper(), logging.INFO
    )
    logger.setLevel(level)
    logger.propagate = False

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    logger.addHandler(console)

    if settings.rewrite_commits_log_file:
        # Rotating, 5 MB x 3 backups
        log_path = Path(settings.rewrite_commits_log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    _configured = True
    logger.debug(
        "Logging initialised (level=%s, file=%s)",
        logging.getLevelName(level),
        settings.rewrite_commits_log_file or "-",
    )
    return logger


def get_logger(name: str = "rewrite_commits") -> logging.Logger:
    """Get a child logger of the package logger."""
    if name == "rewrite_commits" or name.startswith("rewrite_commits."):
        return logging.getLogger(name)
    return logging.getLogger(f"rewrite_commits.{name}")
