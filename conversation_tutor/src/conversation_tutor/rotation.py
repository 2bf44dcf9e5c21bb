"""
Topic Rotation

Picks the topic and subtopic for a new conversation cycle at random,
avoiding an immediate repeat of the previous cycle when the curriculum asks
for it.
"""

import random
from typing import Optional, Sequence

from conversation_tutor.curriculum import Curriculum


def _choose(
    keys: Sequence[str],
    previous: Optional[str],
    avoid_repeat: bool,
    rng: random.Random,
) -> Optional[str]:
    if not keys:
        return None

    candidates = list(keys)
    if avoid_repeat and previous and len(keys) > 1:
        candidates = [k for k in keys if k != previous]
        # previous might not even be in keys; filtering then leaves everything
        if not candidates:
            candidates = list(keys)

    return rng.choice(candidates)


def pick_topic(
    curriculum: Curriculum,
    previous_topic: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """
    Pick a random topic key.

    Returns None when the curriculum defines no topics.
    """
    return _choose(
        curriculum.topic_keys(),
        previous_topic,
        curriculum.avoid_repeating_last_topic,
        rng or random,
    )


def pick_subtopic(
    curriculum: Curriculum,
    topic_key: Optional[str],
    previous_subtopic: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """
    Pick a random subtopic from the topic's rotation list.

    Returns None when the topic is unknown or has no rotation list.
    """
    topic = curriculum.get_topic(topic_key)
    if topic is None or not topic.rotation_subtopics:
        return None

    avoid_repeat = topic.avoid_repeating_last_subtopic or curriculum.avoid_repeating_last_subtopic
    return _choose(topic.rotation_subtopics, previous_subtopic, avoid_repeat, rng or random)
