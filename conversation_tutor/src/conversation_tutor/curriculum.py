"""
Curriculum Store

Loads the pedagogical script (topics, subtopics, per-phase prompts and
rotation rules) once and exposes it read-only.

The script is a JSON document with this shape:

    {
      "flow":    {"rotation": {"avoid_repeating_last_topic": true,
                               "avoid_repeating_last_subtopic": true}},
      "phases":  {"guided_questions": {"min_questions": 3, "max_questions": 6},
                  "expansion": {"rules": {"max_questions": 2}}},
      "prompts": {"warmup": "...", "topic_intro": "...", "guided_question": "...",
                  "correction": "...", "expansion": "...", "wrapup": "..."},
      "topics":  {"travel": {"intro": "...",
                             "expansion": ["..."],
                             "rotation": {"subtopics": ["best_trip"],
                                          "avoid_repeating_last_subtopic": true},
                             "subtopics": {"best_trip": {"questions": [{"q": "..."}]}}}}
    }

Nothing in the tutor mutates a Curriculum after it has been loaded; all
nested containers are tuples or read-only mapping proxies.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from conversation_tutor.exceptions import CurriculumError

logger = logging.getLogger(__name__)

DEFAULT_MIN_GUIDED_QUESTIONS = 3
DEFAULT_MAX_GUIDED_QUESTIONS = 6
DEFAULT_MAX_EXPANSION_QUESTIONS = 2

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class Subtopic:
    """A narrower focus inside a topic with its ordered guided questions."""
    key: str
    questions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Topic:
    """A conversation subject."""
    key: str
    intro: str = ""
    expansion: Tuple[str, ...] = ()
    rotation_subtopics: Tuple[str, ...] = ()
    avoid_repeating_last_subtopic: bool = False
    subtopics: Mapping[str, Subtopic] = field(default_factory=lambda: _EMPTY)

    def questions_for(self, subtopic_key: Optional[str]) -> Tuple[str, ...]:
        """Guided questions of a subtopic, empty when the subtopic is unknown."""
        if not subtopic_key:
            return ()
        subtopic = self.subtopics.get(subtopic_key)
        return subtopic.questions if subtopic else ()


@dataclass(frozen=True)
class Curriculum:
    """Immutable pedagogical script."""
    topics: Mapping[str, Topic] = field(default_factory=lambda: _EMPTY)
    prompts: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    phases: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    avoid_repeating_last_topic: bool = False
    avoid_repeating_last_subtopic: bool = False
    has_phases: bool = False
    source: Optional[str] = None

    @classmethod
    def empty(cls) -> "Curriculum":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "Curriculum":
        """
        Build a Curriculum from a parsed script.

        Raises:
            CurriculumError: If a section has the wrong type.
        """
        if not isinstance(data, dict):
            raise CurriculumError("Curriculum script must be a JSON object")

        raw_topics = _section(data, "topics")
        raw_prompts = _section(data, "prompts")
        raw_phases = data.get("phases")
        rotation = _section(_section(data, "flow"), "rotation")

        topics = {key: _parse_topic(key, value) for key, value in raw_topics.items()}
        prompts = {str(k): str(v) for k, v in raw_prompts.items() if v}

        return cls(
            topics=MappingProxyType(topics),
            prompts=MappingProxyType(prompts),
            phases=_freeze(raw_phases) if isinstance(raw_phases, dict) else _EMPTY,
            avoid_repeating_last_topic=bool(rotation.get("avoid_repeating_last_topic")),
            avoid_repeating_last_subtopic=bool(rotation.get("avoid_repeating_last_subtopic")),
            has_phases=isinstance(raw_phases, dict),
            source=source,
        )

    @property
    def is_loaded(self) -> bool:
        """True when the script defines phases; otherwise directives fall back to generic text."""
        return self.has_phases

    def topic_keys(self) -> Tuple[str, ...]:
        return tuple(self.topics.keys())

    def get_topic(self, topic_key: Optional[str]) -> Optional[Topic]:
        if not topic_key:
            return None
        return self.topics.get(topic_key)

    def prompt(self, name: str, default: str) -> str:
        return self.prompts.get(name) or default

    @property
    def min_guided_questions(self) -> int:
        return _threshold(self.phases, ("guided_questions", "min_questions"), DEFAULT_MIN_GUIDED_QUESTIONS)

    @property
    def max_guided_questions(self) -> int:
        return _threshold(self.phases, ("guided_questions", "max_questions"), DEFAULT_MAX_GUIDED_QUESTIONS)

    @property
    def max_expansion_questions(self) -> int:
        return _threshold(self.phases, ("expansion", "rules", "max_questions"), DEFAULT_MAX_EXPANSION_QUESTIONS)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) if isinstance(data, Mapping) else None
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise CurriculumError(f"Curriculum section '{name}' must be an object")
    return value


def _parse_question(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and item.get("q"):
        return str(item["q"])
    return None


def _parse_topic(key: str, raw: Any) -> Topic:
    if not isinstance(raw, dict):
        raise CurriculumError(f"Topic '{key}' must be an object")

    subtopics = {}
    for sub_key, sub_raw in _section(raw, "subtopics").items():
        questions = sub_raw.get("questions", []) if isinstance(sub_raw, dict) else []
        parsed = tuple(q for q in (_parse_question(item) for item in questions) if q)
        subtopics[sub_key] = Subtopic(key=sub_key, questions=parsed)

    rotation = _section(raw, "rotation")
    return Topic(
        key=key,
        intro=str(raw.get("intro") or ""),
        expansion=tuple(str(e) for e in raw.get("expansion") or [] if e),
        rotation_subtopics=tuple(str(s) for s in rotation.get("subtopics") or []),
        avoid_repeating_last_subtopic=bool(rotation.get("avoid_repeating_last_subtopic")),
        subtopics=MappingProxyType(subtopics),
    )


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _threshold(phases: Mapping[str, Any], path: Tuple[str, ...], default: int) -> int:
    node: Any = phases
    for part in path:
        if not isinstance(node, Mapping):
            return default
        node = node.get(part)
    # Zero or missing means "use the default", matching the script format
    if isinstance(node, bool) or not isinstance(node, int) or node <= 0:
        return default
    return node


def load_curriculum(path: Union[str, Path]) -> Curriculum:
    """
    Load a curriculum script from disk.

    A missing file yields an empty Curriculum so the tutor can still run
    with the generic fallback directive.

    Raises:
        CurriculumError: If the file exists but is not a valid script.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"⚠️ [Curriculum] Script not found at {path}, using generic directives")
        return Curriculum.empty()

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CurriculumError(f"Invalid curriculum JSON in {path}: {e}") from e

    curriculum = Curriculum.from_dict(data, source=str(path))
    logger.info(f"📚 [Curriculum] Loaded {len(curriculum.topics)} topics from {path.name}")
    return curriculum
