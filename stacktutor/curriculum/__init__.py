"""Two-phase curriculum generation and reconciliation."""

from .batching import BatchGenerator, BatchResult, ModuleBatch, collect_excerpts, group_by_technology
from .pipeline import CurriculumOutcome, CurriculumPipeline
from .reconcile import (
    DEFAULT_MATCHERS,
    ExactTitleMatcher,
    MatchRecord,
    Matcher,
    NormalizedTitleMatcher,
    PositionalMatcher,
    Reconciliation,
    reconcile,
)
from .structure import generate_structure

__all__ = [
    "BatchGenerator",
    "BatchResult",
    "CurriculumOutcome",
    "CurriculumPipeline",
    "DEFAULT_MATCHERS",
    "ExactTitleMatcher",
    "MatchRecord",
    "Matcher",
    "ModuleBatch",
    "NormalizedTitleMatcher",
    "PositionalMatcher",
    "Reconciliation",
    "collect_excerpts",
    "generate_structure",
    "group_by_technology",
    "reconcile",
]
