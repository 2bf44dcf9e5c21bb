"""
Session State Data Model

Defines the Phase enum and the ConversationSession dataclass holding one
learner's progress through the conversation cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Phase(str, Enum):
    """Stages of the guided-conversation cycle."""
    WARMUP = "warmup"
    TOPIC_INTRO = "topic_intro"
    GUIDED_QUESTIONS = "guided_questions"
    CORRECTION = "correction"  # Only set explicitly; never reached by advancing
    EXPANSION = "expansion"
    WRAPUP = "wrapup"


@dataclass
class ConversationSession:
    """Per-learner state for the phase engine."""
    session_key: str
    phase: Phase = Phase.WARMUP
    topic: Optional[str] = None
    subtopic: Optional[str] = None
    question_index: int = 0
    guided_count: int = 0
    expansion_count: int = 0
    # Remembered for anti-repetition on the next cycle
    last_topic: Optional[str] = None
    last_subtopic: Optional[str] = None
    # Identity, attached once known and carried across cycles
    user_id: Optional[str] = None
    learner_name: Optional[str] = None
    cycle: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    def enter_phase(self, phase: Phase) -> None:
        """Move to a new phase and reset the counters that phase starts from."""
        if phase == Phase.GUIDED_QUESTIONS:
            self.guided_count = 0
            self.question_index = 0
        elif phase == Phase.EXPANSION:
            self.expansion_count = 0
        self.phase = phase
        self.touch()

    def touch(self) -> None:
        self.last_updated = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the session to a plain dictionary.

        Returns:
            Dictionary representation suitable for JSON responses
        """
        return {
            "session_key": self.session_key,
            "phase": self.phase.value,
            "topic": self.topic,
            "subtopic": self.subtopic,
            "question_index": self.question_index,
            "guided_count": self.guided_count,
            "expansion_count": self.expansion_count,
            "last_topic": self.last_topic,
            "last_subtopic": self.last_subtopic,
            "user_id": self.user_id,
            "learner_name": self.learner_name,
            "cycle": self.cycle,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
