"""
Unit Tests for SessionStore

Tests lazy creation, anti-repetition across cycles, identity carry-over,
expiry and per-key locks.
"""

import asyncio
import os
import random
import sys

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "conversation_tutor", "src"))

from conversation_tutor.curriculum import Curriculum
from conversation_tutor.session_manager import SessionStore
from conversation_tutor.session_state import Phase


class TestSessionStore:

    @pytest.fixture
    def store(self, curriculum, clock):
        return SessionStore(curriculum, ttl_seconds=600, max_sessions=3, rng=random.Random(42), clock=clock)

    def test_new_session_starts_in_warmup(self, store):
        session = store.get_or_create("1.2.3.4")

        assert session.phase == Phase.WARMUP
        assert session.topic in ("travel", "food")
        assert session.subtopic is not None
        assert session.last_topic == session.topic
        assert (session.guided_count, session.question_index, session.expansion_count) == (0, 0, 0)

    def test_get_or_create_returns_same_session(self, store):
        first = store.get_or_create("k")
        assert store.get_or_create("k") is first
        assert store.get("k") is first
        assert "k" in store

    def test_reset_rotates_topic_and_subtopic(self, store):
        previous = store.get_or_create("k")
        for _ in range(10):
            fresh = store.reset("k")
            assert fresh.topic != previous.topic
            assert fresh.phase == Phase.WARMUP
            assert fresh.cycle == previous.cycle + 1
            previous = fresh

    def test_reset_keeps_identity(self, store):
        store.attach_user("k", "user-1", "Ana")
        fresh = store.reset("k")

        assert fresh.user_id == "user-1"
        assert fresh.learner_name == "Ana"

    def test_first_user_id_wins(self, store):
        store.attach_user("k", "user-1")
        session = store.attach_user("k", "user-2", "Bob")

        assert session.user_id == "user-1"
        assert session.learner_name == "Bob"

    def test_expired_session_is_replaced_avoiding_its_topic(self, store, clock):
        old = store.get_or_create("k")
        old.user_id = "user-1"
        clock.advance(601)

        assert store.get("k") is None
        fresh = store.get_or_create("k")

        assert fresh is not old
        assert fresh.topic != old.topic
        assert fresh.user_id == "user-1"

    def test_capacity_evicts_least_recently_used(self, store):
        for key in ("a", "b", "c"):
            store.get_or_create(key)
        store.get("a")
        store.get_or_create("d")

        assert "b" not in store
        assert len(store) == 3

    def test_empty_curriculum_session_has_no_topic(self, clock):
        store = SessionStore(Curriculum.empty(), clock=clock)
        session = store.get_or_create("k")

        assert session.topic is None
        assert session.subtopic is None

    def test_lock_is_per_key(self, store):
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")

    def test_evicted_session_drops_its_idle_lock(self, store):
        store.get_or_create("a")
        store.lock("a")
        for key in ("b", "c", "d"):
            store.get_or_create(key)

        assert store.get_stats()["locks"] == 0

    @pytest.mark.asyncio
    async def test_lock_serializes_turns_for_one_key(self, store):
        order = []

        async def turn(name):
            async with store.lock("k"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(turn("first"), turn("second"))

        assert order == ["first-start", "first-end", "second-start", "second-end"]

    @pytest.mark.asyncio
    async def test_session_in_use_survives_capacity_eviction(self, store):
        async with store.lock("busy"):
            busy = store.get_or_create("busy")
            busy.guided_count = 2
            for key in ("b", "c", "d", "e"):
                store.get_or_create(key)

            assert store.get("busy") is busy
            assert "b" not in store

        assert store.get("busy").guided_count == 2
