"""Generative backends behind the ``analyze``/``chat`` contract."""

from .anthropic import AnthropicBackend
from .base import Backend
from .cohere import CohereBackend
from .factory import SUPPORTED_BACKENDS, create_backend, default_model_for
from .google import GoogleBackend
from .http import HttpRequest, HttpTransport
from .openai_compat import COMPAT_SERVICES, OpenAICompatibleBackend
from .parsing import clean_payload, load_payload

__all__ = [
    "AnthropicBackend",
    "Backend",
    "COMPAT_SERVICES",
    "CohereBackend",
    "GoogleBackend",
    "HttpRequest",
    "HttpTransport",
    "OpenAICompatibleBackend",
    "SUPPORTED_BACKENDS",
    "clean_payload",
    "create_backend",
    "default_model_for",
    "load_payload",
]
