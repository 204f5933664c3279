"""
Tests for the voice interaction state machine (no audio devices).
"""

import asyncio

import pytest

from conftest import FakePlayer, FakeRecorder, FakeSynthesizer, FakeTranscriber
from undercurrent.exceptions import TranscriptionError, VoiceBusyError
from undercurrent.voice.controller import SpeakOutcome, VoiceController, VoiceState


def make_voice(**kwargs):
    params = {
        "synthesizer": FakeSynthesizer(),
        "transcriber": FakeTranscriber(),
        "player": FakePlayer(),
        "recorder": FakeRecorder(),
    }
    params.update(kwargs)
    return VoiceController(**params)


class TestSpeaking:
    def test_speak_until_playback_ends(self):
        voice = make_voice()
        states = []
        voice.on_state_change = states.append

        async def scenario():
            outcome = await voice.speak("Hello there")
            assert outcome == SpeakOutcome.PLAYING
            assert voice.state == VoiceState.SPEAKING
            voice.player.finish()
            await voice.wait_until_done()

        asyncio.run(scenario())
        assert voice.state == VoiceState.IDLE
        assert states == [VoiceState.THINKING, VoiceState.SPEAKING, VoiceState.IDLE]
        assert voice.player.played == [b"ID3-fake-mp3"]

    def test_no_audio_goes_idle_with_warning(self):
        warnings = []
        voice = make_voice(synthesizer=FakeSynthesizer(audio=None), on_warning=warnings.append)

        outcome = asyncio.run(voice.speak("Hello"))
        assert outcome == SpeakOutcome.NO_AUDIO
        assert voice.state == VoiceState.IDLE
        assert warnings == ["Voice unavailable, showing text only"]

    def test_stop_is_synchronous(self):
        voice = make_voice()

        async def scenario():
            await voice.speak("Long monologue")
            assert voice.stop_speaking() is True
            assert voice.state == VoiceState.IDLE
            await voice.wait_until_done()

        asyncio.run(scenario())
        assert voice.player.stopped == 1
        assert voice.state == VoiceState.IDLE

    def test_new_utterance_replaces_current(self):
        voice = make_voice()

        async def scenario():
            await voice.speak("First")
            await asyncio.sleep(0)
            outcome = await voice.speak("Second")
            assert outcome == SpeakOutcome.PLAYING
            assert voice.state == VoiceState.SPEAKING
            voice.player.finish()
            await voice.wait_until_done()

        asyncio.run(scenario())
        assert voice.player.stopped == 1
        assert len(voice.player.played) == 2
        assert voice.state == VoiceState.IDLE

    def test_empty_text_skipped(self):
        voice = make_voice()
        assert asyncio.run(voice.speak("  ")) == SpeakOutcome.SKIPPED
        assert voice.synthesizer.calls == []

    def test_voice_id_is_per_controller(self):
        synthesizer = FakeSynthesizer(audio=None)
        first = make_voice(synthesizer=synthesizer, voice_id="voice-a")
        second = make_voice(synthesizer=synthesizer, voice_id="voice-b")
        asyncio.run(first.speak("one"))
        asyncio.run(second.speak("two"))
        assert synthesizer.calls == [("one", "voice-a"), ("two", "voice-b")]


class TestDeferredFirstUtterance:
    def test_queued_until_unlock(self):
        voice = make_voice(defer_until_interaction=True)

        async def scenario():
            outcome = await voice.speak("Welcome")
            assert outcome == SpeakOutcome.QUEUED
            assert voice.state == VoiceState.IDLE
            assert voice.queued_text == "Welcome"
            assert voice.synthesizer.calls == []

            outcome = await voice.unlock_and_speak()
            assert outcome == SpeakOutcome.PLAYING
            voice.player.finish()
            await voice.wait_until_done()

        asyncio.run(scenario())
        assert voice.synthesizer.calls[0][0] == "Welcome"
        assert not voice.awaiting_interaction


class TestRecording:
    def test_record_and_transcribe(self):
        heard = []
        states = []
        voice = make_voice(on_transcription=heard.append, on_state_change=states.append)

        assert voice.start_recording() is True
        assert voice.state == VoiceState.LISTENING

        text = asyncio.run(voice.stop_recording())
        assert text == "I want to build things"
        assert heard == ["I want to build things"]
        assert voice.state == VoiceState.IDLE
        assert states == [VoiceState.LISTENING, VoiceState.THINKING, VoiceState.IDLE]
        assert voice.transcriber.calls == [(b"RIFF-fake-wav", "audio/wav")]

    def test_transcription_failure_reports_error(self):
        errors = []
        voice = make_voice(
            transcriber=FakeTranscriber(error=TranscriptionError("garbled")),
            on_error=errors.append,
        )
        voice.start_recording()
        assert asyncio.run(voice.stop_recording()) is None
        assert voice.state == VoiceState.IDLE
        assert isinstance(errors[0], TranscriptionError)

    def test_empty_recording_reports_error(self):
        errors = []
        voice = make_voice(recorder=FakeRecorder(audio=b""), on_error=errors.append)
        voice.start_recording()
        assert asyncio.run(voice.stop_recording()) is None
        assert voice.transcriber.calls == []
        assert len(errors) == 1

    def test_microphone_failure(self):
        errors = []
        voice = make_voice(recorder=FakeRecorder(fail=True), on_error=errors.append)
        assert voice.start_recording() is False
        assert voice.state == VoiceState.IDLE
        assert len(errors) == 1

    def test_recording_stops_playback_first(self):
        voice = make_voice()

        async def scenario():
            await voice.speak("Talking")
            assert voice.start_recording() is True
            assert voice.player.stopped == 1
            assert voice.state == VoiceState.LISTENING
            return await voice.stop_recording()

        assert asyncio.run(scenario()) == "I want to build things"

    def test_speak_while_listening_rejected(self):
        voice = make_voice()
        voice.start_recording()
        with pytest.raises(VoiceBusyError):
            asyncio.run(voice.speak("Hello"))
        assert voice.state == VoiceState.LISTENING

    def test_double_start_rejected(self):
        voice = make_voice()
        voice.start_recording()
        with pytest.raises(VoiceBusyError):
            voice.start_recording()


class TestStop:
    def test_stop_from_listening_transcribes(self):
        heard = []
        voice = make_voice(on_transcription=heard.append)
        voice.start_recording()
        asyncio.run(voice.stop())
        assert heard == ["I want to build things"]
        assert voice.state == VoiceState.IDLE

    def test_stop_from_idle_is_noop(self):
        voice = make_voice()
        asyncio.run(voice.stop())
        assert voice.state == VoiceState.IDLE
        assert voice.player.stopped == 0
