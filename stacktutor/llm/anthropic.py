"""Adapter for the Anthropic Messages API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import BackendError
from ..models import ChatMessage, ChatResult, TokenUsage
from .base import Backend, token_count

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class AnthropicBackend(Backend):
    name = "anthropic"
    default_model = "claude-sonnet-4-20250514"

    def complete(
        self,
        messages: List[ChatMessage],
        *,
        system_prompt: Optional[str],
        max_tokens: int,
        json_mode: bool,
    ) -> ChatResult:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system_prompt:
            payload["system"] = system_prompt
        headers = {"x-api-key": self.api_key, "anthropic-version": API_VERSION}
        reply = self.transport.post_json(API_URL, payload, headers)
        return ChatResult(content=self._first_text(reply), usage=self._usage(reply))

    def _first_text(self, reply: Dict[str, Any]) -> str:
        blocks = reply.get("content")
        if isinstance(blocks, list):
            for block in blocks:
                if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                    return block["text"]
        raise BackendError(self.name, "No text content in response")

    @staticmethod
    def _usage(reply: Dict[str, Any]) -> TokenUsage:
        usage = reply.get("usage") if isinstance(reply.get("usage"), dict) else {}
        return TokenUsage(
            input_tokens=token_count(usage.get("input_tokens")),
            output_tokens=token_count(usage.get("output_tokens")),
        )


__all__ = ["AnthropicBackend"]
