"""Validation of untrusted generative output into domain records."""

from .curriculum import (
    normalize_title,
    parse_concepts,
    parse_content_batch,
    parse_structure,
    validate_content_batch,
    validate_structure,
)
from .technologies import DEFAULT_SUMMARY, parse_analysis, validate_analysis, validate_technology

__all__ = [
    "DEFAULT_SUMMARY",
    "normalize_title",
    "parse_analysis",
    "parse_concepts",
    "parse_content_batch",
    "parse_structure",
    "validate_analysis",
    "validate_content_batch",
    "validate_structure",
    "validate_technology",
]
