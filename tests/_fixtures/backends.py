"""Scripted generation backends for tests."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Sequence, Union

from stacktutor.llm.base import Backend
from stacktutor.models import ChatMessage, ChatResult, TokenUsage

Reply = Union[str, BaseException]
Responder = Callable[[str, Optional[str]], Reply]


class ScriptedBackend(Backend):
    """Backend whose replies come from a list (in order) or a responder function.

    Each call records ``(prompt, system_prompt, max_tokens, json_mode)`` and
    reports 10 input and 5 output tokens.
    """

    name = "scripted"
    default_model = "scripted-model"

    def __init__(self, replies: Union[Sequence[Reply], Responder] = (), **kwargs) -> None:
        super().__init__("test-key", **kwargs)
        self._responder = replies if callable(replies) else None
        self._replies: List[Reply] = [] if callable(replies) else list(replies)
        self._lock = threading.Lock()
        self.calls: List[dict] = []

    def complete(
        self,
        messages: List[ChatMessage],
        *,
        system_prompt: Optional[str],
        max_tokens: int,
        json_mode: bool,
    ) -> ChatResult:
        prompt = messages[-1].content
        with self._lock:
            self.calls.append(
                {
                    "prompt": prompt,
                    "system_prompt": system_prompt,
                    "max_tokens": max_tokens,
                    "json_mode": json_mode,
                }
            )
            if self._responder is not None:
                reply = self._responder(prompt, system_prompt)
            elif self._replies:
                reply = self._replies.pop(0)
            else:
                raise AssertionError("ScriptedBackend ran out of replies")
        if isinstance(reply, BaseException):
            raise reply
        return ChatResult(content=reply, usage=TokenUsage(input_tokens=10, output_tokens=5))


__all__ = ["ScriptedBackend"]
