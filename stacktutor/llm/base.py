"""Backend contract shared by every generation adapter."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ..models import AnalysisResult, ChatMessage, ChatResult, Hint, SnapshotFile
from ..prompting.builder import ANALYSIS_SYSTEM_PROMPT, PromptBuilder
from ..validators.technologies import parse_analysis
from .http import HttpTransport, Sender

DEFAULT_MAX_TOKENS = 4096


def token_count(value: Any) -> int:
    """Coerce a reported token count; anything unusable counts as zero."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    return 0


class Backend(ABC):
    """One pluggable generative-model service behind ``analyze`` and ``chat``.

    Adapters only implement :meth:`complete`, which owns the request body
    and reply-shape normalization for their service. Nothing
    service-specific crosses this boundary: callers get ``ChatResult`` or
    ``AnalysisResult`` back and every failure is a ``BackendError`` or a
    ``ResponseParseError``.
    """

    name: str = "backend"
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        timeout: float = 120.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        sender: Optional[Sender] = None,
        prompts: Optional[PromptBuilder] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model or self.default_model
        self.max_tokens = max_tokens
        self.transport = HttpTransport(self.name, timeout=timeout, sender=sender)
        self._prompts = prompts

    @property
    def prompts(self) -> PromptBuilder:
        if self._prompts is None:
            self._prompts = PromptBuilder()
        return self._prompts

    def analyze(
        self,
        files: Sequence[SnapshotFile],
        hints: Sequence[Hint],
        prompt_override: Optional[str] = None,
    ) -> AnalysisResult:
        """Detect technologies; ``prompt_override`` replaces the file-listing prompt."""
        prompt = prompt_override or self.prompts.analysis_prompt(files, hints)
        reply = self.complete(
            [ChatMessage(role="user", content=prompt)],
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            json_mode=True,
        )
        return parse_analysis(reply.content, reply.usage, backend=self.name)

    def chat(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatResult:
        """Run a free-form conversation; a system message in ``messages`` is honoured."""
        system = system_prompt or next((m.content for m in messages if m.role == "system"), None)
        conversation = [m for m in messages if m.role != "system"]
        if not conversation:
            raise ValueError("chat requires at least one user or assistant message")
        return self.complete(
            conversation,
            system_prompt=system,
            max_tokens=max_tokens or self.max_tokens,
            json_mode=False,
        )

    @abstractmethod
    def complete(
        self,
        messages: List[ChatMessage],
        *,
        system_prompt: Optional[str],
        max_tokens: int,
        json_mode: bool,
    ) -> ChatResult:
        """Send one request and return the first text block plus token usage."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, model={self.model!r})"


__all__ = ["Backend", "DEFAULT_MAX_TOKENS", "token_count"]
