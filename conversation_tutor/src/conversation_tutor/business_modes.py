"""
Business Mode Overlay

Professional role-play scenarios (negotiation, job interview, sales, ...)
that replace the guided conversation cycle while active. A learner enters a
scenario with `set_mode`, and leaves it by setting the mode to "exit".

While a scenario is active the phase engine is not consulted or advanced,
and no conversation history is sent to the model: each turn is the scenario
directive plus the current message only.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional, Union

from conversation_tutor.exceptions import InvalidModeError
from conversation_tutor.expiring_map import ExpiringMap

logger = logging.getLogger(__name__)

EXIT_MODE = "exit"

# Control message sent by the client to have the tutor open the scenario
START_SENTINEL = "start the interview"
# What the model sees instead of the control message
SENTINEL_REPLACEMENT = "Please begin the scenario."


class BusinessMode(str, Enum):
    """Supported professional scenarios."""
    NEGOTIATION = "negotiation"
    JOB_INTERVIEW = "job_interview"
    SALES = "sales"
    CLIENT_MEETING = "client_meeting"
    PRESENTATION = "presentation"
    CONFLICT_RESOLUTION = "conflict_resolution"


SCENARIOS: Dict[BusinessMode, Dict[str, object]] = {
    BusinessMode.NEGOTIATION: {
        "name": "Contract negotiation",
        "ai_role": "procurement manager at a mid-sized logistics company",
        "setting": "a video call to agree the price and terms of a one-year supply contract",
        "tone": "firm but polite",
        "goal": "push back on price and delivery terms so the learner practises making offers and concessions",
        "questions": [
            "Thanks for joining. Before we start, what price per unit are you proposing for the first year?",
            "That's above our budget. What could you offer if we commit to a larger volume?",
            "How flexible can you be on delivery times?",
        ],
    },
    BusinessMode.JOB_INTERVIEW: {
        "name": "Job interview",
        "ai_role": "hiring manager interviewing candidates for a position on your team",
        "setting": "a formal first-round interview",
        "tone": "professional, encouraging",
        "goal": "ask typical interview questions one at a time and follow up on vague answers",
        "questions": [
            "Could you start by telling me a little about yourself and your background?",
            "Why are you interested in this position?",
            "Tell me about a challenge you faced at work and how you handled it.",
        ],
    },
    BusinessMode.SALES: {
        "name": "Sales call",
        "ai_role": "potential customer who is interested but not yet convinced",
        "setting": "a first sales call about the learner's product or service",
        "tone": "curious, slightly sceptical",
        "goal": "raise realistic objections so the learner practises presenting benefits and handling doubts",
        "questions": [
            "So, what exactly are you selling, and why should I care?",
            "How is this different from what I'm already using?",
            "What would it cost me to get started?",
        ],
    },
    BusinessMode.CLIENT_MEETING: {
        "name": "Client meeting",
        "ai_role": "long-standing client reviewing an ongoing project",
        "setting": "a status meeting about a project that is slightly behind schedule",
        "tone": "friendly but demanding",
        "goal": "ask for updates, timelines and next steps so the learner practises reporting and reassuring",
        "questions": [
            "Good to see you. Can you give me a quick update on where the project stands?",
            "When do you expect the next milestone to be delivered?",
            "What do you need from our side to keep things moving?",
        ],
    },
    BusinessMode.PRESENTATION: {
        "name": "Presentation Q&A",
        "ai_role": "senior manager in the audience of the learner's presentation",
        "setting": "the question-and-answer part after a short business presentation",
        "tone": "attentive, analytical",
        "goal": "ask clarifying and challenging questions so the learner practises explaining ideas clearly",
        "questions": [
            "Thanks for the presentation. Could you summarise your main point in one or two sentences?",
            "What data supports that conclusion?",
            "What are the biggest risks of your proposal?",
        ],
    },
    BusinessMode.CONFLICT_RESOLUTION: {
        "name": "Conflict resolution",
        "ai_role": "colleague who is frustrated about how work is being shared in the team",
        "setting": "a one-to-one conversation to sort out a disagreement",
        "tone": "tense at first, open to compromise",
        "goal": "express the problem so the learner practises listening, acknowledging feelings and proposing solutions",
        "questions": [
            "Do you have a minute? I feel like I've been doing most of the work on this project lately.",
            "I don't think that's fair. How do you see it?",
            "What do you suggest we change from now on?",
        ],
    },
}

_COMMON_RULES = (
    "Stay in character for the whole conversation and never mention that you are an AI or a tutor. "
    "Use natural business English suited to a B1-B2 learner. "
    "Keep each turn short (max 3 sentences) and ask only one question at a time. "
    "If the learner makes an important language mistake, model the correct phrase naturally in your reply."
)


def parse_mode(mode: Union[str, BusinessMode, None]) -> Optional[BusinessMode]:
    """
    Validate a requested mode.

    Returns None for "exit" (or None), the BusinessMode otherwise.

    Raises:
        InvalidModeError: If the value is not a supported scenario.
    """
    if isinstance(mode, BusinessMode):
        return mode
    if mode is None:
        return None
    normalized = str(mode).strip().lower()
    if normalized == EXIT_MODE:
        return None
    try:
        return BusinessMode(normalized)
    except ValueError:
        raise InvalidModeError(str(mode), [m.value for m in BusinessMode]) from None


def is_start_sentinel(message: Optional[str]) -> bool:
    """True when the message is the control text asking the tutor to open the scenario."""
    if not message:
        return False
    return message.strip().strip(".!").lower() == START_SENTINEL


def business_directive(mode: BusinessMode, auto_start: bool = False) -> str:
    """
    Build the persona-and-instructions block for a scenario.

    Args:
        mode: Active scenario
        auto_start: If True, tell the model to open the scenario itself
            instead of answering the learner's message

    Returns:
        Directive text for the model call
    """
    scenario = SCENARIOS[mode]
    questions = scenario["questions"]
    script = "\n".join(f"{i}. {q}" for i, q in enumerate(questions, start=1))

    directive = (
        f"BUSINESS ENGLISH ROLE-PLAY: {scenario['name']}\n"
        f"You are a {scenario['ai_role']}. Setting: {scenario['setting']}. "
        f"Tone: {scenario['tone']}. Your goal: {scenario['goal']}.\n"
        f"{_COMMON_RULES}\n"
        f"Questions you can use, in order:\n{script}"
    )

    if auto_start:
        directive += (
            "\n\nSTART NOW: the learner has just joined. Briefly introduce yourself in your role, "
            "set the context in one sentence, and ask the first question above. "
            "Do not respond to or comment on the learner's message."
        )
    else:
        directive += (
            "\n\nReply to the learner's last message in character, then continue with the next "
            "appropriate question."
        )
    return directive


class BusinessModeRegistry:
    """
    Active business mode per learner identity.

    Entries expire after a period of inactivity, like sessions.
    """

    def __init__(
        self,
        ttl_seconds: int = 7200,
        max_entries: int = 1000,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._modes: ExpiringMap[BusinessMode] = ExpiringMap(
            ttl_seconds=ttl_seconds,
            max_size=max_entries,
            clock=clock,
        )

    def set_mode(self, user_id: str, mode: Union[str, BusinessMode, None]) -> Optional[BusinessMode]:
        """
        Set or clear the business mode for a learner.

        Args:
            user_id: External user identity
            mode: Scenario name, or "exit" to return to the guided conversation

        Returns:
            The active mode after the change (None when cleared)

        Raises:
            InvalidModeError: If the mode is not a supported scenario.
        """
        parsed = parse_mode(mode)
        if parsed is None:
            self._modes.pop(user_id)
            logger.info(f"💼 [BusinessMode] {user_id} left business mode")
            return None

        self._modes.set(user_id, parsed)
        logger.info(f"💼 [BusinessMode] {user_id} entered business mode: {parsed.value}")
        return parsed

    def get_mode(self, user_id: Optional[str]) -> Optional[BusinessMode]:
        if not user_id:
            return None
        return self._modes.get(user_id)

    def __len__(self) -> int:
        return len(self._modes)

    def get_stats(self) -> Dict:
        return self._modes.get_stats()
