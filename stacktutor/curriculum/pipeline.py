"""Two-phase curriculum generation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import CurriculumSettings
from ..digest import digest_document
from ..errors import MissingTechnologiesError
from ..knowledge import KnowledgeBase
from ..llm.base import Backend
from ..logging import get_logger
from ..models import DIFFICULTIES, LearningModule, LearningPath, Snapshot, TechnologyRecord, TokenUsage
from ..stores.digest_cache import DigestCache
from .batching import BatchGenerator, group_by_technology
from .reconcile import DEFAULT_MATCHERS, Matcher, MatchRecord, reconcile
from .structure import generate_structure

logger = get_logger("curriculum.pipeline")


@dataclass
class CurriculumOutcome:
    path: LearningPath
    usage: TokenUsage
    records: List[MatchRecord] = field(default_factory=list)

    @property
    def empty_modules(self) -> List[str]:
        return [module.title for module in self.path.modules if not module.sections]


class CurriculumPipeline:
    """Outline, per-technology content, reconciliation, assembly."""

    def __init__(
        self,
        backend: Backend,
        *,
        settings: Optional[CurriculumSettings] = None,
        knowledge: Optional[KnowledgeBase] = None,
        digest_cache: Optional[DigestCache] = None,
        top_imports: int = 20,
        matchers: Sequence[Matcher] = DEFAULT_MATCHERS,
    ) -> None:
        self.backend = backend
        self.settings = settings or CurriculumSettings()
        self.knowledge = knowledge
        self.digest_cache = digest_cache
        self.top_imports = top_imports
        self.matchers = matchers

    def run(
        self,
        project_id: str,
        technologies: Sequence[TechnologyRecord],
        snapshot: Optional[Snapshot],
        *,
        difficulty: Optional[str] = None,
    ) -> CurriculumOutcome:
        if not technologies:
            raise MissingTechnologiesError()
        level = difficulty if difficulty in DIFFICULTIES else self.settings.difficulty
        if level not in DIFFICULTIES:
            level = "beginner"

        digest = ""
        if snapshot is not None:
            digest = digest_document(snapshot, top_imports=self.top_imports, cache=self.digest_cache)
        knowledge = self.knowledge.concepts_for(record.name for record in technologies) if self.knowledge else {}

        structure, usage = generate_structure(
            self.backend,
            technologies,
            digest,
            level=level,
            knowledge=knowledge,
            max_tokens=self.settings.structure_max_tokens,
        )

        batches = group_by_technology(structure.modules)
        generator = BatchGenerator(
            self.backend,
            snapshot=snapshot,
            level=structure.difficulty,
            knowledge=self.knowledge,
            max_tokens=self.settings.content_max_tokens,
            max_excerpt_chars=self.settings.max_excerpt_chars,
            workers=self.settings.batch_workers,
        )
        results = generator.run(batches)

        matched = {}
        records: List[MatchRecord] = []
        for batch_result in results:
            usage = usage + batch_result.usage
            reconciled = reconcile(batch_result.batch.modules, batch_result.items, self.matchers)
            records.extend(reconciled.records)
            for module, item, record in zip(batch_result.batch.modules, reconciled.matches, reconciled.records):
                matched[id(module)] = (item, record.tier)

        modules: List[LearningModule] = []
        for order, outline in enumerate(structure.modules, start=1):
            item, tier = matched.get(id(outline), (None, None))
            modules.append(
                LearningModule(
                    title=outline.title,
                    description=outline.description,
                    module_type=outline.module_type,
                    order=order,
                    tech_name=outline.tech_name,
                    sections=list(item.sections) if item else [],
                    estimated_minutes=outline.estimated_minutes,
                    match_tier=tier,
                )
            )

        path = LearningPath(
            id=uuid.uuid4().hex,
            project_id=project_id,
            title=structure.title,
            description=structure.description,
            difficulty=structure.difficulty,
            modules=modules,
            estimated_hours=structure.estimated_hours,
            backend_name=self.backend.name,
        )
        outcome = CurriculumOutcome(path=path, usage=usage, records=records)
        if outcome.empty_modules:
            logger.warning(
                "%d of %d modules have no content: %s",
                len(outcome.empty_modules),
                len(modules),
                ", ".join(outcome.empty_modules),
            )
        logger.info(
            "Curriculum '%s' assembled with %d modules (%d tokens)",
            path.title,
            len(modules),
            usage.total,
        )
        return outcome


__all__ = ["CurriculumOutcome", "CurriculumPipeline"]
