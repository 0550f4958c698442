"""Generation client interface and the LangChain chat-model implementation.

The engine only ever talks to a :class:`GenerationClient`.  Concrete
backends (OpenAI-compatible, Ollama) are built by
:mod:`rewrite_commits.agents.models` and wrapped in :class:`ChatModelClient`.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from rewrite_commits.core.errors import GenerationError
from rewrite_commits.core.logging import get_logger

logger = get_logger("agents.client")

_FENCE_RE = re.compile(r"^```[\w-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)
_LABEL_RE = re.compile(r"^(?:suggested\s+)?commit(?:\s+message)?\s*:\s*", re.IGNORECASE)


@runtime_checkable
class GenerationClient(Protocol):
    """Submit a prompt, receive text, or fail with :class:`GenerationError`.

    Implementations make exactly one backend request per ``generate`` call;
    retry policy, if any, lives inside the implementation.
    """

    is_remote: bool

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Return the generated text, stripped. Raises GenerationError."""
        ...

    def name(self) -> str:
        """Human-readable backend label, e.g. ``OpenAI (gpt-4o-mini)``."""
        ...


def clean_generated_text(text: str) -> str:
    """Strip code fences, wrapping quotes and a leading 'Commit message:' label."""
    cleaned = text.strip()
    fence = _FENCE_RE.match(cleaned)
    if fence:
        cleaned = fence.group("body").strip()
    cleaned = _LABEL_RE.sub("", cleaned, count=1).strip()
    for quote in ('"', "'", "`"):
        if len(cleaned) >= 2 and cleaned.startswith(quote) and cleaned.endswith(quote):
            cleaned = cleaned[1:-1].strip()
    return cleaned


def _content_to_text(content: object) -> str:
    """Flatten a chat message ``content`` (str or list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""


class ChatModelClient:
    """:class:`GenerationClient` backed by any LangChain chat model."""

    def __init__(self, llm: BaseChatModel, label: str, is_remote: bool) -> None:
        self.llm = llm
        self.label = label
        self.is_remote = is_remote

    def name(self) -> str:
        return self.label

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            raise GenerationError(
                f"{self.label} request failed: {exc}",
                hint="Check that the backend is reachable and the model name is correct.",
            ) from exc

        text = clean_generated_text(_content_to_text(getattr(response, "content", "")))
        if not text:
            raise GenerationError(f"{self.label} returned an empty response")
        logger.debug("%s generated %d chars", self.label, len(text))
        return text
