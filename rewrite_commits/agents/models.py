"""Chat model factory for the two supported providers.

Provider routing is explicit (``Configuration.provider``):
  - "openai" → ``ChatOpenAI`` (official API or any OpenAI-compatible base URL)
  - "ollama" → ``ChatOllama`` served by a local (or remote) Ollama instance

Credentials and URLs arrive through the run configuration; this module
never reads the environment.
"""

from __future__ import annotations

from urllib.parse import urlparse

from langchain_core.language_models import BaseChatModel

from rewrite_commits.agents.client import ChatModelClient, GenerationClient
from rewrite_commits.core.config import Configuration
from rewrite_commits.core.errors import ConfigurationError
from rewrite_commits.core.logging import get_logger

logger = get_logger("agents.models")

TEMPERATURE = 0.3
MAX_TOKENS = 200

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1", "0.0.0.0"}


# ---------------------------------------------------------------------------
# Provider helpers
# ---------------------------------------------------------------------------

def is_loopback_url(url: str) -> bool:
    """True when ``url`` points at this machine."""
    host = (urlparse(url).hostname or "").lower()
    return host in _LOOPBACK_HOSTS or host.startswith("127.")


def _normalized_secret(value: str | None) -> str:
    return (value or "").strip()


def _require_openai_key(model: str, api_key: str | None) -> str:
    key = _normalized_secret(api_key)
    if key:
        return key
    raise ConfigurationError(
        f"OpenAI API key is required for model '{model}'",
        hint=(
            'Set OPENAI_API_KEY="your-api-key", pass --api-key, '
            "or use --provider ollama to run a local model instead."
        ),
    )


# ---------------------------------------------------------------------------
# LLM constructors
# ---------------------------------------------------------------------------

def _make_ollama(model: str, base_url: str, temperature: float = TEMPERATURE) -> BaseChatModel:
    from langchain_ollama import ChatOllama

    logger.info("Using Ollama model '%s' at %s", model, base_url)
    return ChatOllama(model=model, base_url=base_url, temperature=temperature, num_predict=MAX_TOKENS)


def _make_openai(
    model: str,
    api_key: str,
    base_url: str | None = None,
    temperature: float = TEMPERATURE,
    max_tokens: int = MAX_TOKENS,
) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    logger.info("Using OpenAI model '%s'%s", model, f" at {base_url}" if base_url else "")
    kwargs = dict(model=model, api_key=api_key, temperature=temperature, max_tokens=max_tokens)
    if base_url:
        kwargs["base_url"] = base_url
    return ChatOpenAI(**kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_credentials(config: Configuration) -> None:
    """Fail early on missing credentials, before any repository work."""
    if config.provider == "openai":
        _require_openai_key(config.resolved_model, config.api_key)


def build_client(config: Configuration) -> GenerationClient:
    """Create the generation client selected by ``config.provider``."""
    model = config.resolved_model

    if config.provider == "ollama":
        llm = _make_ollama(model, base_url=config.ollama_url)
        return ChatModelClient(
            llm,
            label=f"Ollama ({model})",
            is_remote=not is_loopback_url(config.ollama_url),
        )

    key = _require_openai_key(model, config.api_key)
    llm = _make_openai(model, key, base_url=config.openai_base_url)
    # An OpenAI-compatible server on localhost keeps data on this machine
    is_remote = not (config.openai_base_url and is_loopback_url(config.openai_base_url))
    return ChatModelClient(llm, label=f"OpenAI ({model})", is_remote=is_remote)
