"""
Speech and Language Services

Contracts for the external services a turn depends on, and their OpenAI
implementations. Every implementation absorbs its own failures so a turn
always completes:

- transcription failure → empty text
- model failure → the literal reply "Error"
- speech synthesis failure → no audio
"""

import logging
from typing import Dict, List, Optional, Protocol

from openai import AsyncOpenAI

from conversation_tutor.config import TutorConfig

logger = logging.getLogger(__name__)

MODEL_ERROR_REPLY = "Error"


class Transcriber(Protocol):
    """Converts recorded audio into text."""

    async def transcribe(self, audio_bytes: bytes, filename: str = "audio.webm") -> str:
        """Return recognized text, or "" if recognition failed."""


class LanguageModel(Protocol):
    """Produces the tutor's reply."""

    async def complete(
        self,
        system_directive: str,
        history: List[Dict[str, str]],
        user_message: str,
    ) -> str:
        """Return the reply text, or "Error" if the call failed."""


class SpeechSynthesizer(Protocol):
    """Converts reply text into audio."""

    async def synthesize(self, text: str) -> Optional[bytes]:
        """Return playable audio bytes, or None if synthesis failed."""


def build_openai_client(config: TutorConfig) -> AsyncOpenAI:
    """
    Create the shared AsyncOpenAI client.

    Raises:
        ValueError: If OPENAI_API_KEY is not configured.
    """
    if not config.openai_api_key:
        raise ValueError("OPENAI_API_KEY not found in environment variables")
    return AsyncOpenAI(api_key=config.openai_api_key, timeout=config.openai_timeout_seconds)


class OpenAITranscriber:
    """Whisper transcription."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1", language: str = "en"):
        self.client = client
        self.model = model
        self.language = language

    async def transcribe(self, audio_bytes: bytes, filename: str = "audio.webm") -> str:
        if not audio_bytes:
            return ""
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio_bytes),
                language=self.language,
            )
            return (transcript.text or "").strip()
        except Exception as e:
            logger.error(f"❌ [STT] Transcription failed: {e}")
            return ""


class OpenAIChatModel:
    """Chat completion for tutor replies."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini", max_tokens: int = 120):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete(
        self,
        system_directive: str,
        history: List[Dict[str, str]],
        user_message: str,
    ) -> str:
        messages = [{"role": "system", "content": system_directive}]
        messages.extend(history)
        messages.append({"role": "user", "content": user_message})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=messages,
            )
            content = response.choices[0].message.content
            return content or MODEL_ERROR_REPLY
        except Exception as e:
            logger.error(f"❌ [LLM] Chat completion failed: {e}")
            return MODEL_ERROR_REPLY


class OpenAISpeechSynthesizer:
    """Text-to-speech for tutor replies."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini-tts", voice: str = "alloy"):
        self.client = client
        self.model = model
        self.voice = voice

    async def synthesize(self, text: str) -> Optional[bytes]:
        if not text:
            return None
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
            )
            return response.content
        except Exception as e:
            logger.error(f"❌ [TTS] Speech synthesis failed: {e}")
            return None
