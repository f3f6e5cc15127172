"""Storage collaborators: durable records, caches and credentials."""

from .credentials import CredentialStore, EnvCredentialStore, StaticCredentialStore
from .digest_cache import DigestCache
from .knowledge_cache import KnowledgeCache
from .memory import InMemoryStore, JsonFileStore, Store

__all__ = [
    "CredentialStore",
    "DigestCache",
    "EnvCredentialStore",
    "InMemoryStore",
    "JsonFileStore",
    "KnowledgeCache",
    "StaticCredentialStore",
    "Store",
]
