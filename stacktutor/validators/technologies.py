"""Strict mapping of untrusted analysis replies into technology results."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ResponseParseError
from ..llm.parsing import load_payload
from ..logging import get_logger
from ..models import IMPORTANCE_LEVELS, TECH_CATEGORIES, AnalysisResult, TechnologyResult, TokenUsage

logger = get_logger("validators.technologies")

DEFAULT_CATEGORY = "other"
DEFAULT_IMPORTANCE = "supporting"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_SUMMARY = "No architecture summary provided."
RELATIONSHIP_KEYS = ("depends_on", "used_with")


def clamp_confidence(value: Any) -> float:
    """Clamp numeric confidence into [0, 1]; anything else becomes the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if math.isnan(value):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def validate_technology(raw: Any) -> Optional[TechnologyResult]:
    """Map one raw entry, or return None when it has no usable name."""
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    name = name.strip()

    category = raw.get("category")
    if not isinstance(category, str) or category not in TECH_CATEGORIES:
        category = DEFAULT_CATEGORY

    importance = raw.get("importance")
    if not isinstance(importance, str) or importance not in IMPORTANCE_LEVELS:
        importance = DEFAULT_IMPORTANCE

    description = raw.get("description")
    if not isinstance(description, str):
        description = f"{name} technology detected in the project."

    version = raw.get("version")
    if not isinstance(version, str) or not version.strip():
        version = None

    return TechnologyResult(
        name=name,
        category=category,
        confidence=clamp_confidence(raw.get("confidence")),
        description=description,
        importance=importance,
        version=version,
        relationships=_relationships(raw.get("relationships")),
    )


def _relationships(raw: Any) -> Optional[Dict[str, List[str]]]:
    if not isinstance(raw, Mapping):
        return None
    relationships: Dict[str, List[str]] = {}
    for key in RELATIONSHIP_KEYS:
        values = raw.get(key)
        if isinstance(values, list):
            kept = [item for item in values if isinstance(item, str)]
            if kept:
                relationships[key] = kept
    return relationships or None


def validate_analysis(payload: Any, usage: TokenUsage, *, backend: Optional[str] = None) -> AnalysisResult:
    """Validate a decoded analysis payload entry by entry."""
    if not isinstance(payload, Mapping):
        raise ResponseParseError("reply is not a JSON object", excerpt=str(payload), backend=backend)
    entries = payload.get("technologies")
    if not isinstance(entries, list):
        raise ResponseParseError("reply is missing the 'technologies' array", excerpt=str(payload), backend=backend)

    technologies: List[TechnologyResult] = []
    dropped = 0
    for raw in entries:
        result = validate_technology(raw)
        if result is None:
            dropped += 1
            continue
        technologies.append(result)
    if dropped:
        logger.warning("Dropped %d technology entries without a usable name", dropped)

    summary = payload.get("architecture_summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    return AnalysisResult(technologies=technologies, architecture_summary=summary, usage=usage)


def parse_analysis(text: str, usage: TokenUsage, *, backend: Optional[str] = None) -> AnalysisResult:
    """Clean, decode and validate a raw analysis reply."""
    return validate_analysis(load_payload(text, backend=backend), usage, backend=backend)


__all__ = [
    "DEFAULT_SUMMARY",
    "clamp_confidence",
    "parse_analysis",
    "validate_analysis",
    "validate_technology",
]
