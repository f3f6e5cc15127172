"""Adapter for the Gemini generateContent API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import BackendError
from ..models import ChatMessage, ChatResult, TokenUsage
from .base import Backend, token_count

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"


class GoogleBackend(Backend):
    name = "google"
    default_model = "gemini-2.0-flash"

    def complete(
        self,
        messages: List[ChatMessage],
        *,
        system_prompt: Optional[str],
        max_tokens: int,
        json_mode: bool,
    ) -> ChatResult:
        generation: Dict[str, Any] = {"maxOutputTokens": max_tokens}
        if json_mode:
            generation["responseMimeType"] = "application/json"
        payload: Dict[str, Any] = {
            "contents": [
                {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
                for m in messages
            ],
            "generationConfig": generation,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        url = f"{API_ROOT}/{self.model}:generateContent"
        reply = self.transport.post_json(url, payload, {"x-goog-api-key": self.api_key})
        return ChatResult(content=self._first_text(reply), usage=self._usage(reply))

    def _first_text(self, reply: Dict[str, Any]) -> str:
        candidates = reply.get("candidates")
        if isinstance(candidates, list):
            for candidate in candidates:
                content = candidate.get("content") if isinstance(candidate, dict) else None
                parts = content.get("parts") if isinstance(content, dict) else None
                if not isinstance(parts, list):
                    continue
                texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
                if texts:
                    return "".join(texts)
        raise BackendError(self.name, "No text content in response")

    @staticmethod
    def _usage(reply: Dict[str, Any]) -> TokenUsage:
        usage = reply.get("usageMetadata") if isinstance(reply.get("usageMetadata"), dict) else {}
        return TokenUsage(
            input_tokens=token_count(usage.get("promptTokenCount")),
            output_tokens=token_count(usage.get("candidatesTokenCount")),
        )


__all__ = ["GoogleBackend"]
