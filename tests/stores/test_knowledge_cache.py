"""Tests for the bounded, time-boxed knowledge cache."""

from __future__ import annotations

import pytest

from stacktutor.stores.knowledge_cache import KnowledgeCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: KnowledgeCache[list] = KnowledgeCache(ttl_seconds=60, clock=clock)
    cache.put("react", ["hooks"])

    clock.now += 59
    assert cache.get("react") == ["hooks"]

    clock.now += 1
    assert cache.get("react") is None
    assert len(cache) == 0


def test_least_recently_used_entry_is_evicted() -> None:
    cache: KnowledgeCache[int] = KnowledgeCache(max_size=2, clock=FakeClock())
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1

    cache.put("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_invalidate_and_validation() -> None:
    cache: KnowledgeCache[int] = KnowledgeCache()
    cache.put("a", 1)
    cache.invalidate("a")
    cache.invalidate("missing")
    assert cache.get("a") is None

    with pytest.raises(ValueError):
        KnowledgeCache(ttl_seconds=0)
    with pytest.raises(ValueError):
        KnowledgeCache(max_size=0)
