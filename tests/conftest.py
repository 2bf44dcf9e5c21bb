"""
Shared fixtures: a small curriculum, a controllable clock and fake services.
"""

import os
import sys
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
sys.path.insert(0, os.path.join(project_root, "conversation_tutor", "src"))

from conversation_tutor.curriculum import Curriculum


def make_script(
    topics: Optional[Dict] = None,
    min_questions: int = 3,
    max_questions: int = 6,
    max_expansion: int = 2,
) -> Dict:
    """Curriculum script with prompts and rotation rules, as stored on disk."""
    if topics is None:
        topics = {
            "travel": {
                "intro": "Travelling and holidays",
                "expansion": ["Does travelling change people?", "Is tourism always good?"],
                "rotation": {"subtopics": ["best_trip", "plans"], "avoid_repeating_last_subtopic": True},
                "subtopics": {
                    "best_trip": {"questions": [{"q": "Best trip?"}, {"q": "Who with?"}, {"q": "Surprises?"}, {"q": "Go back?"}]},
                    "plans": {"questions": [{"q": "Next trip?"}, {"q": "How do you plan?"}, {"q": "Beach or city?"}, {"q": "What to pack?"}]},
                },
            },
            "food": {
                "intro": "Food and cooking",
                "expansion": ["Is fast food a problem?"],
                "rotation": {"subtopics": ["favourite", "cooking"], "avoid_repeating_last_subtopic": True},
                "subtopics": {
                    "favourite": {"questions": [{"q": "Favourite dish?"}, {"q": "Why?"}, {"q": "Who cooks it?"}, {"q": "Since when?"}]},
                    "cooking": {"questions": ["Do you cook?", "What can you make?", "Who taught you?", "Hardest dish?"]},
                },
            },
        }
    return {
        "flow": {"rotation": {"avoid_repeating_last_topic": True, "avoid_repeating_last_subtopic": True}},
        "phases": {
            "guided_questions": {"min_questions": min_questions, "max_questions": max_questions},
            "expansion": {"rules": {"max_questions": max_expansion}},
        },
        "prompts": {
            "warmup": "Ask a warm-up question.",
            "topic_intro": "Introduce the topic.",
            "guided_question": "Ask a guided question.",
            "correction": "Correct the mistake.",
            "expansion": "Ask a deeper question.",
            "wrapup": "Wrap up with praise.",
        },
        "topics": topics,
    }


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeLanguageModel:
    """Records every call and answers with a fixed reply."""

    def __init__(self, reply: str = "Nice! What else?"):
        self.reply = reply
        self.calls: List[Dict] = []

    async def complete(self, system_directive, history, user_message):
        self.calls.append({
            "system": system_directive,
            "history": list(history),
            "message": user_message,
        })
        return self.reply


class FakeSynthesizer:
    def __init__(self, audio: Optional[bytes] = b"mp3-bytes"):
        self.audio = audio
        self.texts: List[str] = []

    async def synthesize(self, text):
        self.texts.append(text)
        return self.audio


class FakeTranscriber:
    def __init__(self, text: str = "good morning"):
        self.text = text
        self.calls = 0

    async def transcribe(self, audio_bytes, filename="audio.webm"):
        self.calls += 1
        return self.text


@pytest.fixture
def script():
    return make_script()


@pytest.fixture
def curriculum(script):
    return Curriculum.from_dict(script)


@pytest.fixture
def clock():
    return FakeClock()
