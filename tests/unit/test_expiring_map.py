"""
Unit Tests for ExpiringMap
"""

import os
import sys

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "conversation_tutor", "src"))

from conversation_tutor.expiring_map import ExpiringMap


class TestExpiringMap:

    def test_entries_expire_after_ttl(self, clock):
        m = ExpiringMap(ttl_seconds=60, max_size=10, clock=clock)
        m.set("a", 1)

        clock.advance(59)
        assert m.get("a") == 1

        clock.advance(61)
        assert m.get("a") is None
        assert "a" not in m
        assert len(m) == 0

    def test_access_refreshes_ttl(self, clock):
        m = ExpiringMap(ttl_seconds=60, max_size=10, clock=clock)
        m.set("a", 1)

        for _ in range(5):
            clock.advance(50)
            assert m.get("a") == 1

    def test_peek_returns_expired_value(self, clock):
        m = ExpiringMap(ttl_seconds=60, max_size=10, clock=clock)
        m.set("a", "old")
        clock.advance(120)

        assert m.get("a") is None
        assert m.peek("a") == "old"

    def test_least_recently_used_is_evicted(self, clock):
        evicted = []
        m = ExpiringMap(ttl_seconds=600, max_size=2, clock=clock, on_evict=lambda k, v: evicted.append(k))
        m.set("a", 1)
        m.set("b", 2)
        m.get("a")
        m.set("c", 3)

        assert evicted == ["b"]
        assert "a" in m and "c" in m and "b" not in m
        assert m.get_stats()["evictions"] == 1

    def test_expired_entries_are_cleaned_on_write(self, clock):
        evicted = []
        m = ExpiringMap(ttl_seconds=60, max_size=10, clock=clock, on_evict=lambda k, v: evicted.append(k))
        m.set("a", 1)
        clock.advance(61)
        m.set("b", 2)

        assert evicted == ["a"]
        assert m.get_stats()["stored"] == 1

    def test_updating_existing_key_does_not_evict(self, clock):
        m = ExpiringMap(ttl_seconds=600, max_size=1, clock=clock)
        m.set("a", 1)
        m.set("a", 2)

        assert m.get("a") == 2
        assert m.evictions == 0

    def test_pop_removes_without_eviction_callback(self, clock):
        evicted = []
        m = ExpiringMap(clock=clock, on_evict=lambda k, v: evicted.append(k))
        m.set("a", 1)

        assert m.pop("a") == 1
        assert m.pop("a") is None
        assert evicted == []

    def test_pinned_entry_survives_capacity_eviction(self, clock):
        pinned = {"a"}
        m = ExpiringMap(ttl_seconds=600, max_size=2, clock=clock, is_pinned=lambda k: k in pinned)
        m.set("a", 1)
        m.set("b", 2)
        m.set("c", 3)

        assert m.get("a") == 1
        assert "b" not in m
        assert "c" in m

    def test_all_pinned_grows_past_capacity(self, clock):
        m = ExpiringMap(ttl_seconds=600, max_size=1, clock=clock, is_pinned=lambda k: True)
        m.set("a", 1)
        m.set("b", 2)

        assert len(m) == 2
        assert m.evictions == 0

    def test_pinned_entry_is_not_cleaned_when_expired(self, clock):
        pinned = {"a"}
        m = ExpiringMap(ttl_seconds=60, max_size=10, clock=clock, is_pinned=lambda k: k in pinned)
        m.set("a", 1)
        clock.advance(61)
        m.set("b", 2)
        assert m.peek("a") == 1

        pinned.clear()
        m.set("c", 3)
        assert m.peek("a") is None

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ExpiringMap(max_size=0)
