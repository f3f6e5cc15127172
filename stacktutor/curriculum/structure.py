"""Phase 1: one call returning the ordered module outline."""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Tuple

from ..llm.base import Backend
from ..logging import get_logger
from ..models import ChatMessage, ConceptHint, CurriculumStructure, TechnologyRecord, TokenUsage
from ..prompting.builder import CURRICULUM_SYSTEM_PROMPT
from ..validators.curriculum import parse_structure

logger = get_logger("curriculum.structure")

STRUCTURE_MAX_TOKENS = 16384


def order_technologies(technologies: Sequence[TechnologyRecord]) -> List[TechnologyRecord]:
    """Most confident technologies first; ties keep their stored order."""
    return sorted(technologies, key=lambda record: -record.confidence)


def generate_structure(
    backend: Backend,
    technologies: Sequence[TechnologyRecord],
    digest: str,
    *,
    level: str = "beginner",
    knowledge: Optional[Mapping[str, Sequence[ConceptHint]]] = None,
    max_tokens: int = STRUCTURE_MAX_TOKENS,
) -> Tuple[CurriculumStructure, TokenUsage]:
    """Request the outline; raises ``ResponseParseError`` when it is unusable."""
    prompt = backend.prompts.structure_prompt(
        order_technologies(technologies),
        digest,
        level=level,
        knowledge=knowledge,
    )
    reply = backend.chat(
        [ChatMessage(role="user", content=prompt)],
        system_prompt=CURRICULUM_SYSTEM_PROMPT,
        max_tokens=max_tokens,
    )
    structure = parse_structure(reply.content, requested_difficulty=level, backend=backend.name)
    logger.info(
        "Outline '%s' has %d modules (%d input / %d output tokens)",
        structure.title,
        len(structure.modules),
        reply.usage.input_tokens,
        reply.usage.output_tokens,
    )
    return structure, reply.usage


__all__ = ["STRUCTURE_MAX_TOKENS", "generate_structure", "order_technologies"]
