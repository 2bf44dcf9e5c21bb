"""
Phase Engine

Turns a session's current phase into the instruction handed to the
language model, and moves the session through the conversation cycle:

    warmup → topic_intro → guided_questions → expansion → wrapup → warmup …

`advance` is called once per turn, after the reply has been generated, and
only when no business mode is active for the learner.
"""

import logging
from typing import Optional

from conversation_tutor.curriculum import Curriculum
from conversation_tutor.session_manager import SessionStore
from conversation_tutor.session_state import ConversationSession, Phase

logger = logging.getLogger(__name__)

GENERIC_DIRECTIVE = "Continue the conversation in a simple, friendly way."
FALLBACK_DIRECTIVE = "Continue the conversation naturally."

DEFAULT_PROMPTS = {
    "warmup": "Ask a simple warm-up question.",
    "topic_intro": "Introduce the topic naturally.",
    "guided_question": "Ask an open-ended question.",
    "correction": "Correct the student's message briefly.",
    "expansion": "Ask a deeper follow-up question.",
    "wrapup": "Give positive feedback and summarize.",
}


def directive_for(
    curriculum: Curriculum,
    session: ConversationSession,
    last_user_message: Optional[str] = None,
) -> str:
    """
    Build the instructional directive for the session's current phase.

    Args:
        curriculum: Loaded curriculum
        session: Session whose phase decides the directive
        last_user_message: Learner's message, quoted by the correction phase

    Returns:
        Directive text for the model call
    """
    if not curriculum.is_loaded:
        return GENERIC_DIRECTIVE

    phase = session.phase
    topic = curriculum.get_topic(session.topic)

    if phase == Phase.WARMUP:
        return curriculum.prompt("warmup", DEFAULT_PROMPTS["warmup"])

    if phase == Phase.TOPIC_INTRO:
        intro = topic.intro if topic else ""
        base = curriculum.prompt("topic_intro", DEFAULT_PROMPTS["topic_intro"])
        return f'{base} Topic: "{intro}"'

    if phase == Phase.GUIDED_QUESTIONS:
        questions = topic.questions_for(session.subtopic) if topic else ()
        idx = session.question_index or 0
        if 0 <= idx < len(questions):
            question = questions[idx]
        elif questions:
            question = questions[0]
        else:
            question = DEFAULT_PROMPTS["guided_question"]
        base = curriculum.prompt("guided_question", DEFAULT_PROMPTS["guided_question"])
        return f'{base} Use this idea: "{question}"'

    if phase == Phase.CORRECTION:
        base = curriculum.prompt("correction", DEFAULT_PROMPTS["correction"])
        return f'{base} Student said: "{last_user_message or ""}"'

    if phase == Phase.EXPANSION:
        example = topic.expansion[0] if topic and topic.expansion else DEFAULT_PROMPTS["expansion"]
        base = curriculum.prompt("expansion", DEFAULT_PROMPTS["expansion"])
        return f'{base} For example: "{example}"'

    if phase == Phase.WRAPUP:
        return curriculum.prompt("wrapup", DEFAULT_PROMPTS["wrapup"])

    return FALLBACK_DIRECTIVE


def advance(
    curriculum: Curriculum,
    session: ConversationSession,
    store: SessionStore,
) -> ConversationSession:
    """
    Advance a session by one turn.

    Returns the session now stored for the key: the same object in every
    phase except wrapup, which starts a new cycle with a fresh session.
    """
    phase = session.phase

    if phase == Phase.WARMUP:
        session.enter_phase(Phase.TOPIC_INTRO)

    elif phase == Phase.TOPIC_INTRO:
        session.enter_phase(Phase.GUIDED_QUESTIONS)

    elif phase == Phase.GUIDED_QUESTIONS:
        topic = curriculum.get_topic(session.topic)
        total = len(topic.questions_for(session.subtopic)) if topic else 0

        session.guided_count += 1
        session.question_index += 1
        session.touch()

        enough = session.guided_count >= curriculum.min_guided_questions
        end = session.question_index >= total
        maxed = session.guided_count >= curriculum.max_guided_questions

        if maxed or (enough and end):
            session.enter_phase(Phase.EXPANSION)

    elif phase == Phase.EXPANSION:
        session.expansion_count += 1
        session.touch()
        if session.expansion_count >= curriculum.max_expansion_questions:
            session.enter_phase(Phase.WRAPUP)

    elif phase == Phase.WRAPUP:
        session = store.reset(session.session_key)

    elif phase == Phase.CORRECTION:
        # Resume the guided questions where they were left
        session.phase = Phase.GUIDED_QUESTIONS
        session.touch()

    logger.info(f"➡️ [PhaseEngine] {session.session_key} advances to phase: {session.phase.value}")
    return session
