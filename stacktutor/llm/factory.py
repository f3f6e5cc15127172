"""Backend construction by name."""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Type

from ..errors import ConfigError
from ..prompting.builder import PromptBuilder
from .anthropic import AnthropicBackend
from .base import DEFAULT_MAX_TOKENS, Backend
from .cohere import CohereBackend
from .google import GoogleBackend
from .http import Sender
from .openai_compat import COMPAT_SERVICES, OpenAICompatibleBackend

NATIVE_BACKENDS: Dict[str, Type[Backend]] = {
    "anthropic": AnthropicBackend,
    "google": GoogleBackend,
    "cohere": CohereBackend,
}

SUPPORTED_BACKENDS: Tuple[str, ...] = tuple(sorted([*NATIVE_BACKENDS, *COMPAT_SERVICES]))


def create_backend(
    name: str,
    api_key: str,
    model: Optional[str] = None,
    *,
    timeout: float = 120.0,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    sender: Optional[Sender] = None,
    prompts: Optional[PromptBuilder] = None,
) -> Backend:
    """Return the adapter registered under ``name``."""
    key = (name or "").strip().lower()
    options = dict(model=model, timeout=timeout, max_tokens=max_tokens, sender=sender, prompts=prompts)
    if key in NATIVE_BACKENDS:
        return NATIVE_BACKENDS[key](api_key, **options)
    if key in COMPAT_SERVICES:
        return OpenAICompatibleBackend(key, api_key, **options)
    raise ConfigError(f"Unknown backend '{name}'. Supported: {', '.join(SUPPORTED_BACKENDS)}")


def default_model_for(name: str) -> str:
    key = (name or "").strip().lower()
    if key in NATIVE_BACKENDS:
        return NATIVE_BACKENDS[key].default_model
    if key in COMPAT_SERVICES:
        return COMPAT_SERVICES[key].default_model
    raise ConfigError(f"Unknown backend '{name}'")


__all__ = ["NATIVE_BACKENDS", "SUPPORTED_BACKENDS", "create_backend", "default_model_for"]
