"""Tests for backend construction by name."""

from __future__ import annotations

import pytest

from stacktutor.errors import ConfigError
from stacktutor.llm.anthropic import AnthropicBackend
from stacktutor.llm.factory import SUPPORTED_BACKENDS, create_backend, default_model_for
from stacktutor.llm.openai_compat import OpenAICompatibleBackend


def test_native_and_compatible_backends() -> None:
    anthropic = create_backend(" Anthropic ", "key", max_tokens=1024)
    assert isinstance(anthropic, AnthropicBackend)
    assert anthropic.max_tokens == 1024

    mistral = create_backend("mistral", "key", "mistral-large-latest")
    assert isinstance(mistral, OpenAICompatibleBackend)
    assert mistral.name == "mistral"
    assert mistral.model == "mistral-large-latest"


def test_unknown_backend_lists_supported_names() -> None:
    with pytest.raises(ConfigError) as excinfo:
        create_backend("llamacpp", "key")
    assert "anthropic" in str(excinfo.value)


def test_supported_backends_cover_every_service() -> None:
    assert SUPPORTED_BACKENDS == tuple(sorted(SUPPORTED_BACKENDS))
    assert {"anthropic", "google", "cohere", "openai", "groq", "openrouter"} <= set(SUPPORTED_BACKENDS)
    for name in SUPPORTED_BACKENDS:
        assert default_model_for(name)
