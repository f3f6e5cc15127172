"""Pairs Phase 2 content items back to Phase 1 outline modules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from ..logging import get_logger
from ..models import ContentBatchItem, OutlineModule
from ..validators.curriculum import normalize_title

logger = get_logger("curriculum.reconcile")

Pairs = Dict[int, int]


class Matcher(ABC):
    """One reconciliation tier.

    ``match`` receives the module indexes still unresolved and the item
    indexes still unconsumed, and returns new ``module -> item`` pairs.
    """

    tier: str = ""

    @abstractmethod
    def match(
        self,
        modules: Sequence[OutlineModule],
        items: Sequence[ContentBatchItem],
        open_modules: Sequence[int],
        open_items: Set[int],
    ) -> Pairs:
        raise NotImplementedError


class _KeyedTitleMatcher(Matcher):
    def key(self, title: str) -> str:
        return title

    def match(self, modules, items, open_modules, open_items) -> Pairs:
        pairs: Pairs = {}
        available = set(open_items)
        for module_index in open_modules:
            wanted = self.key(modules[module_index].title)
            for item_index in sorted(available):
                if self.key(items[item_index].module_title) == wanted:
                    pairs[module_index] = item_index
                    available.discard(item_index)
                    break
        return pairs


class ExactTitleMatcher(_KeyedTitleMatcher):
    tier = "exact"


class NormalizedTitleMatcher(_KeyedTitleMatcher):
    tier = "normalized"

    def key(self, title: str) -> str:
        return normalize_title(title)


class PositionalMatcher(Matcher):
    """Pairs the i-th module with the i-th item for i < min(modules, items).

    With ``require_equal_counts`` (the default) nothing is paired when the
    batch returned a different number of items than it had modules.
    """

    tier = "positional"

    def __init__(self, *, require_equal_counts: bool = True) -> None:
        self.require_equal_counts = require_equal_counts

    def match(self, modules, items, open_modules, open_items) -> Pairs:
        if self.require_equal_counts and len(modules) != len(items):
            return {}
        limit = min(len(modules), len(items))
        return {index: index for index in open_modules if index < limit and index in open_items}


DEFAULT_MATCHERS: Sequence[Matcher] = (
    ExactTitleMatcher(),
    NormalizedTitleMatcher(),
    PositionalMatcher(),
)


@dataclass(frozen=True)
class MatchRecord:
    """Audit entry: which tier resolved a module, if any."""

    module_title: str
    tier: Optional[str]
    item_title: Optional[str] = None


@dataclass
class Reconciliation:
    matches: List[Optional[ContentBatchItem]]
    records: List[MatchRecord]
    unused_items: List[ContentBatchItem] = field(default_factory=list)

    def tier_counts(self) -> Counter:
        return Counter(record.tier for record in self.records)

    @property
    def unmatched(self) -> List[str]:
        return [record.module_title for record in self.records if record.tier is None]


def reconcile(
    modules: Sequence[OutlineModule],
    items: Sequence[ContentBatchItem],
    matchers: Sequence[Matcher] = DEFAULT_MATCHERS,
) -> Reconciliation:
    """Resolve each module to at most one item, trying tiers in order.

    Every tier runs over all still-open modules before the next tier
    starts, and each item is consumed at most once.
    """
    resolved: Dict[int, int] = {}
    tiers: Dict[int, str] = {}
    open_items: Set[int] = set(range(len(items)))

    for matcher in matchers:
        open_modules = [index for index in range(len(modules)) if index not in resolved]
        if not open_modules or not open_items:
            break
        for module_index, item_index in matcher.match(modules, items, open_modules, set(open_items)).items():
            if module_index in resolved or item_index not in open_items:
                continue
            resolved[module_index] = item_index
            tiers[module_index] = matcher.tier
            open_items.discard(item_index)

    matches: List[Optional[ContentBatchItem]] = []
    records: List[MatchRecord] = []
    for index, module in enumerate(modules):
        item_index = resolved.get(index)
        item = items[item_index] if item_index is not None else None
        matches.append(item)
        records.append(
            MatchRecord(
                module_title=module.title,
                tier=tiers.get(index),
                item_title=item.module_title if item else None,
            )
        )
        if item is None:
            logger.warning("No content matched module '%s'; it will be stored empty", module.title)

    return Reconciliation(
        matches=matches,
        records=records,
        unused_items=[items[index] for index in sorted(open_items)],
    )


__all__ = [
    "DEFAULT_MATCHERS",
    "ExactTitleMatcher",
    "MatchRecord",
    "Matcher",
    "NormalizedTitleMatcher",
    "PositionalMatcher",
    "Reconciliation",
    "reconcile",
]
