"""
Unit Tests for the OpenAI service adapters

The AsyncOpenAI client is replaced by simple namespaces exposing the same
attribute paths, so no network calls are made.
"""

import os
import sys
from types import SimpleNamespace

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "conversation_tutor", "src"))

from conversation_tutor.config import TutorConfig
from conversation_tutor.speech_services import (
    MODEL_ERROR_REPLY,
    OpenAIChatModel,
    OpenAISpeechSynthesizer,
    OpenAITranscriber,
    build_openai_client,
)


class _Endpoint:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.result


def _client(chat=None, transcriptions=None, speech=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=chat or _Endpoint()),
        audio=SimpleNamespace(
            transcriptions=transcriptions or _Endpoint(),
            speech=speech or _Endpoint(),
        ),
    )


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestChatModel:

    @pytest.mark.asyncio
    async def test_sends_system_history_and_message(self):
        endpoint = _Endpoint(result=_completion("Great answer! Why?"))
        model = OpenAIChatModel(_client(chat=endpoint), model="gpt-4o-mini", max_tokens=120)
        history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

        reply = await model.complete("be nice", history, "I like pizza")

        assert reply == "Great answer! Why?"
        assert endpoint.kwargs["model"] == "gpt-4o-mini"
        assert endpoint.kwargs["max_tokens"] == 120
        assert endpoint.kwargs["messages"] == [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "I like pizza"},
        ]

    @pytest.mark.asyncio
    async def test_failure_yields_error_reply(self):
        model = OpenAIChatModel(_client(chat=_Endpoint(error=RuntimeError("timeout"))))
        assert await model.complete("x", [], "y") == MODEL_ERROR_REPLY == "Error"

    @pytest.mark.asyncio
    async def test_empty_content_yields_error_reply(self):
        model = OpenAIChatModel(_client(chat=_Endpoint(result=_completion(None))))
        assert await model.complete("x", [], "y") == "Error"


class TestTranscriber:

    @pytest.mark.asyncio
    async def test_transcribes_english(self):
        endpoint = _Endpoint(result=SimpleNamespace(text=" I went to Rome. "))
        transcriber = OpenAITranscriber(_client(transcriptions=endpoint))

        assert await transcriber.transcribe(b"webm", "clip.webm") == "I went to Rome."
        assert endpoint.kwargs["model"] == "whisper-1"
        assert endpoint.kwargs["language"] == "en"
        assert endpoint.kwargs["file"] == ("clip.webm", b"webm")

    @pytest.mark.asyncio
    async def test_failure_and_empty_audio_yield_empty_text(self):
        failing = OpenAITranscriber(_client(transcriptions=_Endpoint(error=RuntimeError("bad audio"))))

        assert await failing.transcribe(b"webm") == ""
        assert await failing.transcribe(b"") == ""


class TestSpeechSynthesizer:

    @pytest.mark.asyncio
    async def test_returns_audio_bytes(self):
        endpoint = _Endpoint(result=SimpleNamespace(content=b"mp3"))
        synthesizer = OpenAISpeechSynthesizer(_client(speech=endpoint))

        assert await synthesizer.synthesize("Hello!") == b"mp3"
        assert endpoint.kwargs == {"model": "gpt-4o-mini-tts", "voice": "alloy", "input": "Hello!"}

    @pytest.mark.asyncio
    async def test_failure_yields_no_audio(self):
        synthesizer = OpenAISpeechSynthesizer(_client(speech=_Endpoint(error=RuntimeError("down"))))
        assert await synthesizer.synthesize("Hello!") is None


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        build_openai_client(TutorConfig(openai_api_key=None))
