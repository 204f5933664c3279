"""
Shared fakes for the interview tests.

No network, no audio devices: LLM, TTS, STT, speaker, microphone and
email are replaced with in-process doubles that record their calls.
"""

import asyncio
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from undercurrent.agents.coaching import CoachingResponseGenerator
from undercurrent.llm.base import LLMResponse
from undercurrent.storage.session_store import InMemorySessionStore
from undercurrent.voice.speech_to_text import TranscriptionResult


class FakeLLM:
    """Stands in for LLMManager: chat() and chat_json()."""

    def __init__(self, reply="You light up when you talk about teaching.", json_reply=None,
                 error=None, delay=0.0):
        self.reply = reply
        self.json_reply = json_reply or {}
        self.error = error
        self.delay = delay
        self.calls = []
        self.options = []

    def chat(self, messages, max_tokens=None, **kwargs):
        self.calls.append(messages)
        self.options.append(kwargs)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.reply, model="fake-model", provider="fake")

    def chat_json(self, messages, **kwargs):
        self.calls.append(messages)
        self.options.append(kwargs)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return dict(self.json_reply)


class FakeSynthesizer:
    def __init__(self, audio=b"ID3-fake-mp3"):
        self.audio = audio
        self.calls = []

    @property
    def is_configured(self):
        return self.audio is not None

    def synthesize(self, text, voice_id):
        self.calls.append((text, voice_id))
        return self.audio


class FakeTranscriber:
    def __init__(self, text="I want to build things", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, audio_bytes, mime_type="audio/m4a"):
        self.calls.append((audio_bytes, mime_type))
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text)


class FakePlayer:
    """Plays until finish() or stop() is called."""

    def __init__(self):
        self.played = []
        self.stopped = 0
        self._release = None
        self._finish_early = False

    async def play(self, audio_bytes):
        self.played.append(audio_bytes)
        if self._finish_early:
            self._finish_early = False
            return
        release = self._release = asyncio.Event()
        try:
            await release.wait()
        finally:
            if self._release is release:
                self._release = None

    def finish(self):
        """End the current (or the next) playback."""
        if self._release is not None:
            self._release.set()
        else:
            self._finish_early = True

    def stop(self):
        self.stopped += 1
        if self._release is not None:
            self._release.set()


class FakeRecorder:
    mime_type = "audio/wav"

    def __init__(self, audio=b"RIFF-fake-wav", fail=False):
        self.audio = audio
        self.fail = fail
        self.started = 0
        self.stopped = 0

    def start(self):
        if self.fail:
            raise RuntimeError("No microphone found")
        self.started += 1

    def stop(self):
        self.stopped += 1
        return self.audio


class FakeEmailSender:
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send(self, to, subject, html, text):
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return self.result


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def coach(llm):
    return CoachingResponseGenerator(llm, timeout=2.0)
