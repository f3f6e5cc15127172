"""Adapter for the Cohere v2 chat API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import BackendError
from ..models import ChatMessage, ChatResult, TokenUsage
from .base import Backend, token_count

API_URL = "https://api.cohere.com/v2/chat"


class CohereBackend(Backend):
    name = "cohere"
    default_model = "command-r-plus"

    def complete(
        self,
        messages: List[ChatMessage],
        *,
        system_prompt: Optional[str],
        max_tokens: int,
        json_mode: bool,
    ) -> ChatResult:
        chat_messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        chat_messages.extend({"role": m.role, "content": m.content} for m in messages)
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        reply = self.transport.post_json(API_URL, payload, {"Authorization": f"Bearer {self.api_key}"})
        return ChatResult(content=self._first_text(reply), usage=self._usage(reply))

    def _first_text(self, reply: Dict[str, Any]) -> str:
        message = reply.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                    return block["text"]
        raise BackendError(self.name, "No text content in response")

    @staticmethod
    def _usage(reply: Dict[str, Any]) -> TokenUsage:
        usage = reply.get("usage") if isinstance(reply.get("usage"), dict) else {}
        tokens = usage.get("tokens") if isinstance(usage.get("tokens"), dict) else {}
        return TokenUsage(
            input_tokens=token_count(tokens.get("input_tokens")),
            output_tokens=token_count(tokens.get("output_tokens")),
        )


__all__ = ["CohereBackend"]
