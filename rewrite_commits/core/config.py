"""Process settings and the immutable per-run configuration.

``Settings`` is read from the environment (and ``.env``) exactly once, by the
CLI / orchestrator.  Everything below the orchestrator receives an explicit
``Configuration`` value instead of looking at the environment itself.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

TEMPLATE_TOKEN = "message"
TEMPLATE_TOKEN_RE = re.compile(r"\bmessage\b")

DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_OLLAMA_MODEL = "llama3.2"


class Settings(BaseSettings):
    """Environment-backed settings. Reads from .env automatically."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Only needed for the openai provider
    openai_api_key: str = ""

    # Empty means the official OpenAI endpoint; set for OpenAI-compatible servers
    openai_base_url: str = ""

    ollama_base_url: str = "http://localhost:11434"

    openai_model: str = DEFAULT_OPENAI_MODEL
    ollama_model: str = DEFAULT_OLLAMA_MODEL

    # Logging
    rewrite_commits_log_level: str = "INFO"
    # Empty disables the rotating file handler; we run inside the user's repo
    rewrite_commits_log_file: str = ""


_settings: Settings | None = None


def get_settings() -> Settings:
    """Singleton accessor."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


class Configuration(BaseModel):
    """Immutable options for one rewrite / staged-generation run."""

    model_config = ConfigDict(frozen=True)

    # Backend
    provider: Literal["openai", "ollama"] = "openai"
    model: str | None = None
    api_key: str | None = Field(default=None, repr=False)
    openai_base_url: str | None = None
    ollama_url: str = "http://localhost:11434"

    # Range selection
    repo_path: str = "."
    branch: str | None = None
    max_commits: int | None = None

    # Run mode
    dry_run: bool = False
    verbose: bool = False
    skip_backup: bool = False
    skip_remote_consent: bool = False

    # Classification
    skip_well_formed: bool = True
    min_quality_score: float | None = 7.0
    llm_quality_score: bool = False

    # Prompting
    template: str | None = None
    language: str = "en"
    custom_prompt: str | None = None
    max_diff_chars: int = 12_000

    # Engine policy
    on_generation_error: Literal["abort", "keep"] = "abort"
    concurrency: int = 4

    @field_validator("min_quality_score")
    @classmethod
    def _score_in_range(cls, value: float | None) -> float | None:
        if value is not None and not 1 <= value <= 10:
            raise ValueError("min_quality_score must be between 1 and 10")
        return value

    @field_validator("max_commits")
    @classmethod
    def _positive_max_commits(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("max_commits must be a positive integer")
        return value

    @field_validator("concurrency", "max_diff_chars")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("template", "custom_prompt", "branch", "model", "api_key", "openai_base_url")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("language")
    @classmethod
    def _default_language(cls, value: str) -> str:
        return value.strip() or "en"

    @model_validator(mode="after")
    def _template_has_token(self) -> "Configuration":
        if self.template is not None and not TEMPLATE_TOKEN_RE.search(self.template):
            raise ValueError(
                f"template {self.template!r} must contain the literal token '{TEMPLATE_TOKEN}'"
            )
        return self

    @property
    def resolved_model(self) -> str:
        if self.model:
            return self.model
        return DEFAULT_OLLAMA_MODEL if self.provider == "ollama" else DEFAULT_OPENAI_MODEL
