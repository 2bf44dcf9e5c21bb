"""
Session Store

Keeps one ConversationSession per session key in a bounded, expiring map
and hands out a per-key asyncio.Lock so a turn's read-modify-write of the
session counters cannot interleave with another turn for the same key.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from conversation_tutor.curriculum import Curriculum
from conversation_tutor.expiring_map import ExpiringMap
from conversation_tutor.rotation import pick_subtopic, pick_topic
from conversation_tutor.session_state import ConversationSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Process-wide store of conversation sessions.

    Sessions are created lazily on first use, re-created when a cycle
    finishes, and evicted after `ttl_seconds` of inactivity or when more
    than `max_sessions` are live.
    """

    def __init__(
        self,
        curriculum: Curriculum,
        ttl_seconds: int = 7200,
        max_sessions: int = 1000,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize SessionStore.

        Args:
            curriculum: Loaded curriculum used to pick topics
            ttl_seconds: Idle time before a session is forgotten
            max_sessions: Maximum number of live sessions
            rng: Random source for topic rotation (optional)
            clock: Time source (optional, for tests)
        """
        self.curriculum = curriculum
        self.rng = rng or random.Random()
        self._sessions: ExpiringMap[ConversationSession] = ExpiringMap(
            ttl_seconds=ttl_seconds,
            max_size=max_sessions,
            clock=clock,
            on_evict=self._on_evict,
            is_pinned=self._is_busy,
        )
        self._locks: Dict[str, asyncio.Lock] = {}

    def _is_busy(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def _on_evict(self, key: str, session: ConversationSession) -> None:
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
        logger.debug(f"🗑️ [Session] Evicted session {key} (phase={session.phase.value})")

    def _build_session(
        self,
        key: str,
        previous: Optional[ConversationSession],
        cycle: int = 0,
    ) -> ConversationSession:
        previous_topic = None
        previous_subtopic = None
        if previous is not None:
            previous_topic = previous.topic or previous.last_topic
            previous_subtopic = previous.subtopic or previous.last_subtopic

        topic = pick_topic(self.curriculum, previous_topic, self.rng)
        subtopic = pick_subtopic(self.curriculum, topic, previous_subtopic, self.rng)

        session = ConversationSession(
            session_key=key,
            topic=topic,
            subtopic=subtopic,
            last_topic=topic,
            last_subtopic=subtopic,
            user_id=previous.user_id if previous else None,
            learner_name=previous.learner_name if previous else None,
            cycle=cycle,
        )
        self._sessions.set(key, session)
        logger.info(f"🆕 [Session] New session for {key} → topic: {topic}, subtopic: {subtopic}")
        return session

    def get(self, key: str) -> Optional[ConversationSession]:
        """Return the live session for a key, or None."""
        return self._sessions.get(key)

    def get_or_create(self, key: str) -> ConversationSession:
        """
        Get the session for a key, creating one on a miss.

        A new session avoids the topic/subtopic of an expired session that
        was still remembered for the same key and keeps its identity fields.
        """
        session = self._sessions.get(key)
        if session is not None:
            return session
        return self._build_session(key, self._sessions.peek(key))

    def reset(self, key: str) -> ConversationSession:
        """Start a fresh cycle for a key, rotating away from the finished topic."""
        previous = self._sessions.peek(key)
        cycle = previous.cycle + 1 if previous else 0
        return self._build_session(key, previous, cycle=cycle)

    def attach_user(self, key: str, user_id: Optional[str], learner_name: Optional[str] = None) -> ConversationSession:
        """
        Attach identity to a session.

        The first user id seen for a session wins; later ids are ignored.
        """
        session = self.get_or_create(key)
        if user_id and not session.user_id:
            session.user_id = user_id
        if learner_name and not session.learner_name:
            session.learner_name = learner_name
        return session

    def lock(self, key: str) -> asyncio.Lock:
        """Get or create the lock serializing turns for a key."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get_stats(self) -> Dict[str, Any]:
        stats = self._sessions.get_stats()
        stats["locks"] = len(self._locks)
        return stats
