"""
Tutor Configuration

Reads runtime settings from the environment (and a local .env file).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CURRICULUM_PATH = Path(__file__).resolve().parent / "data" / "script_b1_b2.json"

# 5 minutes of tutoring per learner per day
DAILY_LIMIT_SECONDS = 300


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class TutorConfig:
    """Settings shared by the tutor and its service adapters."""
    openai_api_key: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    chat_max_tokens: int = 120
    stt_model: str = "whisper-1"
    stt_language: str = "en"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    openai_timeout_seconds: int = 30
    curriculum_path: Path = DEFAULT_CURRICULUM_PATH
    daily_limit_seconds: int = DAILY_LIMIT_SECONDS
    session_ttl_seconds: int = 2 * 60 * 60
    max_sessions: int = 1000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "TutorConfig":
        """Build a config from environment variables, keeping defaults for anything unset."""
        curriculum_path = os.getenv("CURRICULUM_PATH")
        cors = os.getenv("CORS_ORIGINS")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            chat_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            chat_max_tokens=_int_env("OPENAI_MAX_TOKENS", 120),
            stt_model=os.getenv("OPENAI_STT_MODEL", "whisper-1"),
            tts_model=os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
            tts_voice=os.getenv("OPENAI_TTS_VOICE", "alloy"),
            openai_timeout_seconds=_int_env("OPENAI_TIMEOUT_SECONDS", 30),
            curriculum_path=Path(curriculum_path) if curriculum_path else DEFAULT_CURRICULUM_PATH,
            daily_limit_seconds=_int_env("DAILY_LIMIT_SECONDS", DAILY_LIMIT_SECONDS),
            session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 2 * 60 * 60),
            max_sessions=_int_env("MAX_SESSIONS", 1000),
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()] if cors else ["*"],
        )
