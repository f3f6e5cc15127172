"""Adapter for services exposing the OpenAI chat-completions shape."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import BackendError
from ..models import ChatMessage, ChatResult, TokenUsage
from .base import Backend, token_count


@dataclass(frozen=True)
class CompatService:
    base_url: str
    default_model: str
    supports_json_mode: bool = True


COMPAT_SERVICES: Dict[str, CompatService] = {
    "openai": CompatService("https://api.openai.com/v1", "gpt-4o-mini"),
    "groq": CompatService("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
    "mistral": CompatService("https://api.mistral.ai/v1", "mistral-small-latest"),
    "deepseek": CompatService("https://api.deepseek.com/v1", "deepseek-chat"),
    "together": CompatService("https://api.together.xyz/v1", "meta-llama/Llama-3.3-70B-Instruct-Turbo"),
    "fireworks": CompatService(
        "https://api.fireworks.ai/inference/v1", "accounts/fireworks/models/llama-v3p3-70b-instruct"
    ),
    "xai": CompatService("https://api.x.ai/v1", "grok-2-latest"),
    "openrouter": CompatService("https://openrouter.ai/api/v1", "meta-llama/llama-3.3-70b-instruct"),
}


class OpenAICompatibleBackend(Backend):
    """One adapter for every chat-completions compatible service."""

    def __init__(self, service: str, api_key: str, **kwargs: Any) -> None:
        if service not in COMPAT_SERVICES:
            raise ValueError(f"Unknown OpenAI-compatible service: {service}")
        self.name = service
        self.service = COMPAT_SERVICES[service]
        self.default_model = self.service.default_model
        super().__init__(api_key, **kwargs)

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
        if json_mode and self.service.supports_json_mode:
            payload["response_format"] = {"type": "json_object"}

        url = f"{self.service.base_url.rstrip('/')}/chat/completions"
        reply = self.transport.post_json(url, payload, {"Authorization": f"Bearer {self.api_key}"})
        return ChatResult(content=self._first_text(reply), usage=self._usage(reply))

    def _first_text(self, reply: Dict[str, Any]) -> str:
        choices = reply.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(choices[0].get("text"), str):
                return choices[0]["text"]
        raise BackendError(self.name, "No content in response")

    @staticmethod
    def _usage(reply: Dict[str, Any]) -> TokenUsage:
        usage = reply.get("usage") if isinstance(reply.get("usage"), dict) else {}
        return TokenUsage(
            input_tokens=token_count(usage.get("prompt_tokens")),
            output_tokens=token_count(usage.get("completion_tokens")),
        )


__all__ = ["COMPAT_SERVICES", "CompatService", "OpenAICompatibleBackend"]
