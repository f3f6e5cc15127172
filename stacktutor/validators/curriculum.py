"""Lenient validation of curriculum and knowledge replies."""

from __future__ import annotations

import math
import re
from typing import Any, List, Mapping, Optional

from ..errors import ResponseParseError
from ..llm.parsing import load_payload
from ..logging import get_logger
from ..models import (
    DIFFICULTIES,
    MODULE_TYPES,
    SECTION_TYPES,
    ConceptHint,
    ContentBatchItem,
    ContentSection,
    CurriculumStructure,
    OutlineModule,
)

logger = get_logger("validators.curriculum")

DEFAULT_MODULE_TYPE = "concept"
DEFAULT_DIFFICULTY = "beginner"

_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Trim, lowercase and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", title.strip().lower())


def _str(value: Any, default: str = "") -> str:
    return value.strip() if isinstance(value, str) else default


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    number = int(value)
    return number if number > 0 else None


def _positive_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) and number > 0 else None


def validate_structure(
    payload: Any,
    *,
    requested_difficulty: Optional[str] = None,
    backend: Optional[str] = None,
) -> CurriculumStructure:
    """Map a Phase 1 payload into a CurriculumStructure.

    Modules without a title are dropped. An unknown module type becomes
    ``concept``; an unknown difficulty falls back to the requested one.
    """
    if not isinstance(payload, Mapping):
        raise ResponseParseError("structure reply is not a JSON object", excerpt=str(payload), backend=backend)
    raw_modules = payload.get("modules")
    if not isinstance(raw_modules, list):
        raise ResponseParseError("structure reply is missing the 'modules' array", excerpt=str(payload), backend=backend)

    modules: List[OutlineModule] = []
    for raw in raw_modules:
        if not isinstance(raw, Mapping):
            continue
        title = _str(raw.get("title"))
        if not title:
            continue
        module_type = raw.get("module_type")
        if module_type not in MODULE_TYPES:
            module_type = DEFAULT_MODULE_TYPE
        modules.append(
            OutlineModule(
                title=title,
                description=_str(raw.get("description")),
                module_type=module_type,
                tech_name=_str(raw.get("tech_name")),
                relevant_files=_str_list(raw.get("relevant_files")),
                objectives=_str_list(raw.get("learning_objectives")),
                estimated_minutes=_positive_int(raw.get("estimated_minutes")),
            )
        )
    if not modules:
        raise ResponseParseError("structure reply contains no usable modules", excerpt=str(payload), backend=backend)

    difficulty = payload.get("difficulty")
    if difficulty not in DIFFICULTIES:
        difficulty = requested_difficulty if requested_difficulty in DIFFICULTIES else DEFAULT_DIFFICULTY

    return CurriculumStructure(
        title=_str(payload.get("title"), "Learning path"),
        description=_str(payload.get("description")),
        difficulty=difficulty,
        modules=modules,
        estimated_hours=_positive_float(payload.get("estimated_hours")),
    )


def parse_structure(
    text: str,
    *,
    requested_difficulty: Optional[str] = None,
    backend: Optional[str] = None,
) -> CurriculumStructure:
    return validate_structure(
        load_payload(text, backend=backend),
        requested_difficulty=requested_difficulty,
        backend=backend,
    )


def extract_item_array(payload: Any) -> Optional[List[Any]]:
    """Return a bare array, or the first array value of a wrapper object."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for value in payload.values():
            if isinstance(value, list):
                return value
    return None


def validate_section(raw: Any) -> Optional[ContentSection]:
    if not isinstance(raw, Mapping):
        return None
    section_type = raw.get("type")
    if section_type not in SECTION_TYPES:
        section_type = "explanation"
    body = _str(raw.get("body"))
    title = _str(raw.get("title"))
    if not body and not title:
        return None

    options = _str_list(raw.get("quiz_options")) or None
    answer = raw.get("quiz_answer")
    if isinstance(answer, bool) or not isinstance(answer, int) or options is None or not 0 <= answer < len(options):
        answer = None
    code = raw.get("code") if isinstance(raw.get("code"), str) and raw.get("code") else None

    return ContentSection(
        type=section_type,
        title=title,
        body=body,
        code=code,
        quiz_options=options,
        quiz_answer=answer,
    )


def validate_content_batch(payload: Any, *, backend: Optional[str] = None) -> List[ContentBatchItem]:
    """Map a Phase 2 payload into content items, skipping unusable entries."""
    items = extract_item_array(payload)
    if items is None:
        raise ResponseParseError(
            "content reply is neither an array nor an object containing an array",
            excerpt=str(payload),
            backend=backend,
        )

    results: List[ContentBatchItem] = []
    for raw in items:
        if not isinstance(raw, Mapping):
            continue
        content = raw.get("content")
        raw_sections = content.get("sections") if isinstance(content, Mapping) else raw.get("sections")
        sections = [
            section
            for section in (validate_section(entry) for entry in (raw_sections if isinstance(raw_sections, list) else []))
            if section is not None
        ]
        results.append(ContentBatchItem(module_title=_str(raw.get("module_title")), sections=sections))
    return results


def parse_content_batch(text: str, *, backend: Optional[str] = None) -> List[ContentBatchItem]:
    return validate_content_batch(load_payload(text, backend=backend), backend=backend)


def validate_concepts(payload: Any) -> List[ConceptHint]:
    """Map a knowledge reply into concept hints; unusable entries are skipped."""
    items = extract_item_array(payload) or []
    concepts: List[ConceptHint] = []
    seen: set[str] = set()
    for raw in items:
        if not isinstance(raw, Mapping):
            continue
        key = _str(raw.get("concept_key")).lower()
        name = _str(raw.get("concept_name"))
        key_points = _str_list(raw.get("key_points"))
        if not key or not name or not key_points or key in seen:
            continue
        seen.add(key)
        concepts.append(
            ConceptHint(
                concept_key=key,
                concept_name=name,
                key_points=key_points,
                common_quiz_topics=_str_list(raw.get("common_quiz_topics")),
                prerequisite_concepts=_str_list(raw.get("prerequisite_concepts")),
                tags=[tag.lower() for tag in _str_list(raw.get("tags"))],
            )
        )
    return concepts


def parse_concepts(text: str, *, backend: Optional[str] = None) -> List[ConceptHint]:
    return validate_concepts(load_payload(text, backend=backend))


__all__ = [
    "extract_item_array",
    "normalize_title",
    "parse_concepts",
    "parse_content_batch",
    "parse_structure",
    "validate_concepts",
    "validate_content_batch",
    "validate_section",
    "validate_structure",
]
