"""Credential lookup at the boundary with the key store."""

from __future__ import annotations

import os
from typing import Mapping, Optional, Protocol

ENV_API_KEY = "STACKTUTOR_API_KEY"


class CredentialStore(Protocol):
    def get_api_key(self, backend: str) -> Optional[str]: ...


class EnvCredentialStore:
    """Reads API keys from the environment.

    Lookup order: the variable named by ``api_key_env``, then
    ``STACKTUTOR_API_KEY``, then ``<BACKEND>_API_KEY`` (``GOOGLE`` also
    accepts ``GEMINI_API_KEY``).
    """

    def __init__(self, environ: Mapping[str, str] | None = None, *, api_key_env: Optional[str] = None) -> None:
        self._environ = os.environ if environ is None else environ
        self._api_key_env = api_key_env

    def get_api_key(self, backend: str) -> Optional[str]:
        for name in self._candidates(backend):
            value = self._environ.get(name)
            if value and value.strip():
                return value.strip()
        return None

    def _candidates(self, backend: str):
        if self._api_key_env:
            yield self._api_key_env
        yield ENV_API_KEY
        prefix = backend.strip().upper().replace("-", "_")
        yield f"{prefix}_API_KEY"
        if prefix == "GOOGLE":
            yield "GEMINI_API_KEY"


class StaticCredentialStore:
    """Fixed mapping of backend name to key."""

    def __init__(self, keys: Mapping[str, str]) -> None:
        self._keys = {name.lower(): key for name, key in keys.items()}

    def get_api_key(self, backend: str) -> Optional[str]:
        return self._keys.get(backend.lower())


__all__ = ["CredentialStore", "ENV_API_KEY", "EnvCredentialStore", "StaticCredentialStore"]
