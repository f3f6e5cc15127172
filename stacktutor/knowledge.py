"""Reference concepts per technology: lookup chain and background generation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from .llm.base import Backend
from .logging import get_logger
from .models import ChatMessage, ConceptHint, TokenUsage
from .stores.knowledge_cache import KnowledgeCache
from .stores.memory import Store
from .validators.curriculum import parse_concepts, validate_concepts

logger = get_logger("knowledge")

STATIC_KNOWLEDGE_PATH = Path(__file__).parent / "data" / "knowledge.yml"

STATUS_GENERATING = "generating"
STATUS_READY = "ready"
STATUS_FAILED = "failed"

GENERATION_MAX_TOKENS = 8192


def normalize_tech_name(name: str) -> str:
    return name.strip().lower()


@lru_cache(maxsize=1)
def load_static_knowledge(path: Path = STATIC_KNOWLEDGE_PATH) -> Dict[str, Tuple[ConceptHint, ...]]:
    """Return the built-in concepts keyed by normalized technology name."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    table: Dict[str, Tuple[ConceptHint, ...]] = {}
    for entry in data:
        if not isinstance(entry, dict) or not isinstance(entry.get("technology_name"), str):
            continue
        table[normalize_tech_name(entry["technology_name"])] = tuple(validate_concepts(entry.get("concepts") or []))
    return table


def static_concepts(tech_name: str) -> List[ConceptHint]:
    return list(load_static_knowledge().get(normalize_tech_name(tech_name), ()))


class KnowledgeBase:
    """Looks up and generates reference concepts for detected technologies.

    Lookup order is cache, then the persistent store (entries marked
    ready), then the built-in defaults. Generation is enrichment only:
    failures are recorded on the store entry and logged, never raised.
    """

    def __init__(
        self,
        store: Store,
        *,
        cache: Optional[KnowledgeCache[List[ConceptHint]]] = None,
        max_tokens: int = GENERATION_MAX_TOKENS,
    ) -> None:
        self.store = store
        self.cache = cache or KnowledgeCache()
        self.max_tokens = max_tokens

    def lookup(self, tech_name: str) -> List[ConceptHint]:
        key = normalize_tech_name(tech_name)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        concepts: List[ConceptHint] = []
        if self.store.knowledge_status(key) == STATUS_READY:
            concepts = self.store.get_concepts(key)
        if not concepts:
            concepts = static_concepts(key)
        if concepts:
            self.cache.put(key, list(concepts))
        return concepts

    def concepts_for(self, tech_names: Iterable[str]) -> Dict[str, List[ConceptHint]]:
        """Map each technology with known concepts to its concept list."""
        found: Dict[str, List[ConceptHint]] = {}
        for name in tech_names:
            concepts = self.lookup(name)
            if concepts:
                found[name] = concepts
        return found

    def generate(self, tech_name: str, version: Optional[str], backend: Backend) -> Tuple[List[ConceptHint], TokenUsage]:
        """Generate and persist concepts for one technology.

        Returns an empty list when the entry is already being generated or
        the reply is unusable.
        """
        key = normalize_tech_name(tech_name)
        status = self.store.knowledge_status(key)
        if status == STATUS_READY:
            return self.store.get_concepts(key), TokenUsage()
        if status == STATUS_GENERATING:
            return [], TokenUsage()

        self.store.set_knowledge_status(key, STATUS_GENERATING)
        try:
            prompt = backend.prompts.knowledge_prompt(tech_name, version)
            reply = backend.chat([ChatMessage(role="user", content=prompt)], max_tokens=self.max_tokens)
            concepts = parse_concepts(reply.content, backend=backend.name)
            if not concepts:
                raise ValueError("reply contained no usable concepts")
        except Exception as exc:
            self.store.set_knowledge_status(key, STATUS_FAILED)
            logger.warning("Knowledge generation failed for %s: %s", tech_name, exc)
            return [], TokenUsage()

        self.store.save_concepts(key, concepts)
        self.store.set_knowledge_status(key, STATUS_READY)
        self.cache.invalidate(key)
        logger.info("Generated %d concepts for %s (%s/%s)", len(concepts), tech_name, backend.name, backend.model)
        return concepts, reply.usage

    def enrich(self, technologies: Sequence[Tuple[str, Optional[str]]], backend: Backend) -> TokenUsage:
        """Generate concepts for technologies with no ready or in-flight entry.

        Technologies are handled one at a time to keep backend usage
        predictable.
        """
        usage = TokenUsage()
        missing = [
            (name, version)
            for name, version in technologies
            if self.store.knowledge_status(name) not in (STATUS_READY, STATUS_GENERATING)
        ]
        for name, version in missing:
            logger.debug("Generating knowledge for %s", name)
            _, spent = self.generate(name, version, backend)
            usage = usage + spent
        return usage


__all__ = [
    "KnowledgeBase",
    "STATUS_FAILED",
    "STATUS_GENERATING",
    "STATUS_READY",
    "load_static_knowledge",
    "normalize_tech_name",
    "static_concepts",
]
