"""Phase 2: per-technology content batches."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..errors import BackendError, ResponseParseError
from ..knowledge import KnowledgeBase
from ..llm.base import Backend
from ..logging import get_logger
from ..models import ChatMessage, ContentBatchItem, OutlineModule, Snapshot, TokenUsage
from ..prompting.builder import CURRICULUM_SYSTEM_PROMPT, CodeExcerpt, truncate
from ..validators.curriculum import parse_content_batch

logger = get_logger("curriculum.batching")

CONTENT_MAX_TOKENS = 16384
MAX_EXCERPT_CHARS = 6000
MAX_BATCH_WORKERS = 5


@dataclass
class ModuleBatch:
    """Outline modules bound to one technology, in outline order."""

    tech_name: str
    modules: List[OutlineModule] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.tech_name.strip().lower()


@dataclass
class BatchResult:
    batch: ModuleBatch
    items: List[ContentBatchItem]
    usage: TokenUsage = field(default_factory=TokenUsage)
    error: Optional[str] = None


def group_by_technology(modules: Sequence[OutlineModule]) -> List[ModuleBatch]:
    """Group modules by case-normalized technology, keeping first-seen order."""
    batches: Dict[str, ModuleBatch] = {}
    for module in modules:
        key = module.tech_name.strip().lower()
        if key not in batches:
            batches[key] = ModuleBatch(tech_name=module.tech_name.strip())
        batches[key].modules.append(module)
    return list(batches.values())


def collect_excerpts(
    snapshot: Optional[Snapshot],
    modules: Sequence[OutlineModule],
    *,
    max_chars: int = MAX_EXCERPT_CHARS,
) -> List[CodeExcerpt]:
    """Return capped contents of every file the modules reference.

    A reference matches a snapshot path exactly or as a path suffix, since
    generated outlines sometimes drop leading directories.
    """
    if snapshot is None:
        return []
    wanted: List[str] = []
    for module in modules:
        for path in module.relevant_files:
            cleaned = path.strip().removeprefix("./").lstrip("/")
            if cleaned and cleaned not in wanted:
                wanted.append(cleaned)

    by_path = {item.path: item for item in snapshot.files if item.content}
    excerpts: List[CodeExcerpt] = []
    seen: set[str] = set()
    for reference in wanted:
        match = by_path.get(reference)
        if match is None:
            match = next(
                (item for path, item in by_path.items() if path.endswith("/" + reference)),
                None,
            )
        if match is None or match.path in seen:
            continue
        seen.add(match.path)
        excerpts.append(CodeExcerpt(path=match.path, content=truncate(match.content or "", max_chars)))
    return excerpts


class BatchGenerator:
    """Issues one content call per batch.

    Batches run one after another unless ``workers`` is above one, in which
    case they share a bounded thread pool. A batch whose call or reply
    fails yields no items; its modules are left for reconciliation to flag.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        snapshot: Optional[Snapshot] = None,
        level: str = "beginner",
        knowledge: Optional[KnowledgeBase] = None,
        max_tokens: int = CONTENT_MAX_TOKENS,
        max_excerpt_chars: int = MAX_EXCERPT_CHARS,
        workers: int = 1,
    ) -> None:
        self.backend = backend
        self.snapshot = snapshot
        self.level = level
        self.knowledge = knowledge
        self.max_tokens = max_tokens
        self.max_excerpt_chars = max_excerpt_chars
        self.workers = max(1, min(workers, MAX_BATCH_WORKERS))

    def run(self, batches: Sequence[ModuleBatch]) -> List[BatchResult]:
        if self.workers == 1 or len(batches) <= 1:
            return [self.generate(batch) for batch in batches]
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="stacktutor-batch") as pool:
            return list(pool.map(self.generate, batches))

    def generate(self, batch: ModuleBatch) -> BatchResult:
        concepts = self.knowledge.lookup(batch.tech_name) if self.knowledge else []
        prompt = self.backend.prompts.content_batch_prompt(
            batch.tech_name,
            batch.modules,
            collect_excerpts(self.snapshot, batch.modules, max_chars=self.max_excerpt_chars),
            level=self.level,
            concepts=concepts,
        )
        try:
            reply = self.backend.chat(
                [ChatMessage(role="user", content=prompt)],
                system_prompt=CURRICULUM_SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
            )
        except BackendError as exc:
            logger.warning("Content batch for %s failed: %s", batch.tech_name, exc)
            return BatchResult(batch=batch, items=[], error=str(exc))

        try:
            items = parse_content_batch(reply.content, backend=self.backend.name)
        except ResponseParseError as exc:
            logger.warning("Content batch for %s was unparseable: %s", batch.tech_name, exc)
            return BatchResult(batch=batch, items=[], usage=reply.usage, error=str(exc))

        logger.debug(
            "Content batch for %s returned %d items for %d modules",
            batch.tech_name,
            len(items),
            len(batch.modules),
        )
        return BatchResult(batch=batch, items=items, usage=reply.usage)


__all__ = [
    "BatchGenerator",
    "BatchResult",
    "CONTENT_MAX_TOKENS",
    "MAX_EXCERPT_CHARS",
    "ModuleBatch",
    "collect_excerpts",
    "group_by_technology",
]
