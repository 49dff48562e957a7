# tests/test_cache_layer.py

from __future__ import annotations

from taskboard.cache.layer import DocumentCache
from taskboard.models import TasksDocument

from .fakes import FakeClock


def test_empty_cache_is_a_miss() -> None:
    cache = DocumentCache(ttl=5.0)

    assert cache.get() is None
    assert cache.get_stats()["misses"] == 1


def test_entry_is_served_until_ttl_elapses() -> None:
    clock = FakeClock()
    cache = DocumentCache(ttl=5.0, timer=clock)
    document = TasksDocument()
    cache.set(document)

    clock.advance(4.5)
    assert cache.get() is document

    clock.advance(0.5)
    assert cache.get() is None


def test_invalidate_drops_entry() -> None:
    cache = DocumentCache(ttl=5.0)
    cache.set(TasksDocument())

    cache.invalidate()

    assert cache.get() is None
    stats = cache.get_stats()
    assert stats["invalidations"] == 1
    assert stats["cached"] is False


def test_set_restarts_ttl() -> None:
    clock = FakeClock()
    cache = DocumentCache(ttl=5.0, timer=clock)
    cache.set(TasksDocument())
    clock.advance(4.0)

    fresh = TasksDocument()
    cache.set(fresh)
    clock.advance(4.0)

    assert cache.get() is fresh


def test_hit_rate() -> None:
    cache = DocumentCache(ttl=5.0)
    cache.get()
    cache.set(TasksDocument())
    cache.get()
    cache.get()

    assert cache.get_stats()["hit_rate"] == 2 / 3
