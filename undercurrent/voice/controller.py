"""
Voice Interaction Controller.

A single state machine mediating microphone capture, transcription and
audio playback:

    idle --speak--> thinking --audio--> speaking --end/stop--> idle
    idle --record--> listening --stop--> thinking --transcript--> idle

Speaker and microphone are never active at the same time. Stopping
updates the state synchronously; device teardown may finish later.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import structlog

from ..exceptions import TranscriptionError, VoiceBusyError
from .voices import DEFAULT_VOICE

logger = structlog.get_logger(__name__)


class VoiceState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


class SpeakOutcome(str, Enum):
    """What happened to a speak() request."""
    PLAYING = "playing"      # audio is playing
    QUEUED = "queued"        # held until the first user interaction
    NO_AUDIO = "no_audio"    # TTS produced nothing, text only
    SKIPPED = "skipped"      # empty text, or superseded before playback


async def _emit(callback: Optional[Callable], *args: Any):
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class VoiceController:
    """
    Owns the voice state for one interview session.

    Collaborators:
        synthesizer: synthesize(text, voice_id) -> bytes | None
        transcriber: transcribe(audio_bytes, mime_type) -> TranscriptionResult
        player: async play(audio_bytes), stop()
        recorder: start(), stop() -> bytes, mime_type

    Callbacks (sync or async):
        on_transcription(text): a recording was transcribed
        on_error(exc): transcription failed; fall back to typed input
        on_warning(message): no audio for a speak request
        on_state_change(state): every transition
    """

    def __init__(
        self,
        synthesizer,
        transcriber=None,
        player=None,
        recorder=None,
        voice_id: str = DEFAULT_VOICE.voice_id,
        on_transcription: Optional[Callable] = None,
        on_error: Optional[Callable] = None,
        on_warning: Optional[Callable] = None,
        on_state_change: Optional[Callable] = None,
        defer_until_interaction: bool = False,
    ):
        self.synthesizer = synthesizer
        self.transcriber = transcriber
        self.player = player
        self.recorder = recorder
        self.voice_id = voice_id
        self.on_transcription = on_transcription
        self.on_error = on_error
        self.on_warning = on_warning
        self.on_state_change = on_state_change

        self._state = VoiceState.IDLE
        self._locked = defer_until_interaction
        self._queued: Optional[Tuple[str, Optional[bytes]]] = None
        self._playback: Optional[asyncio.Task] = None
        # Bumped on every new utterance or stop, so stale playback never touches state
        self._generation = 0

    @property
    def state(self) -> VoiceState:
        return self._state

    @property
    def is_speaking(self) -> bool:
        return self._state == VoiceState.SPEAKING

    @property
    def is_recording(self) -> bool:
        return self._state == VoiceState.LISTENING

    @property
    def awaiting_interaction(self) -> bool:
        """True while speech is held back until the user interacts."""
        return self._locked

    @property
    def queued_text(self) -> Optional[str]:
        return self._queued[0] if self._queued else None

    def _set_state(self, state: VoiceState):
        if state == self._state:
            return
        logger.debug("voice_state", previous=self._state.value, state=state.value)
        self._state = state
        if self.on_state_change is not None:
            self.on_state_change(state)

    # ── Speaking ────────────────────────────────────────────────

    async def speak(self, text: str, audio: Optional[bytes] = None) -> SpeakOutcome:
        """
        Speak text with the current voice.

        Args:
            text: Text to speak
            audio: Pre-synthesized audio; skips the TTS call when given

        Returns:
            SpeakOutcome describing what happened

        Raises:
            VoiceBusyError: If the controller is listening or thinking
        """
        if not text or not text.strip():
            return SpeakOutcome.SKIPPED

        if self._state in (VoiceState.LISTENING, VoiceState.THINKING):
            raise VoiceBusyError(self._state.value, "speak")

        if self._state == VoiceState.SPEAKING:
            self.stop_speaking()

        if self._locked:
            self._queued = (text, audio)
            logger.info("voice_utterance_queued", chars=len(text))
            return SpeakOutcome.QUEUED

        self._generation += 1
        generation = self._generation
        self._set_state(VoiceState.THINKING)

        if audio is None:
            try:
                audio = await asyncio.to_thread(self.synthesizer.synthesize, text, self.voice_id)
            except Exception as e:
                logger.warning("voice_tts_failed", error=str(e))
                audio = None

        if generation != self._generation:
            return SpeakOutcome.SKIPPED

        if not audio:
            self._set_state(VoiceState.IDLE)
            await _emit(self.on_warning, "Voice unavailable, showing text only")
            return SpeakOutcome.NO_AUDIO

        self._set_state(VoiceState.SPEAKING)
        self._playback = asyncio.create_task(self._play(audio, generation))
        return SpeakOutcome.PLAYING

    async def _play(self, audio: bytes, generation: int):
        try:
            await self.player.play(audio)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("voice_playback_failed", error=str(e))
            await _emit(self.on_warning, f"Playback failed: {e}")
        finally:
            if generation == self._generation and self._state == VoiceState.SPEAKING:
                self._playback = None
                self._set_state(VoiceState.IDLE)

    def stop_speaking(self) -> bool:
        """
        Interrupt playback. The state is idle when this returns.

        Returns:
            True if something was playing
        """
        if self._state != VoiceState.SPEAKING:
            return False

        self._generation += 1
        task, self._playback = self._playback, None
        self.player.stop()
        self._set_state(VoiceState.IDLE)
        if task is not None and not task.done():
            task.cancel()
        return True

    async def wait_until_done(self):
        """Wait for the current utterance to finish playing."""
        task = self._playback
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def unlock(self):
        """
        Record the first user interaction.

        Audio may play from now on. Returns the queued utterance, if any,
        for the caller to pass to speak().
        """
        self._locked = False
        queued, self._queued = self._queued, None
        return queued

    async def unlock_and_speak(self) -> SpeakOutcome:
        """Unlock playback and speak the queued utterance."""
        queued = self.unlock()
        if queued is None:
            return SpeakOutcome.SKIPPED
        text, audio = queued
        return await self.speak(text, audio)

    # ── Recording ───────────────────────────────────────────────

    def start_recording(self) -> bool:
        """
        Start capturing from the microphone, stopping any playback first.

        Returns:
            True if capture started; on device failure on_error is
            scheduled and the state stays idle

        Raises:
            VoiceBusyError: If already listening or transcribing
        """
        if self.recorder is None:
            raise RuntimeError("No recorder attached to the voice controller")

        if self._state == VoiceState.SPEAKING:
            self.stop_speaking()

        if self._state in (VoiceState.LISTENING, VoiceState.THINKING):
            raise VoiceBusyError(self._state.value, "start recording")

        # Pressing record counts as the first interaction
        self._locked = False
        self._queued = None

        try:
            self.recorder.start()
        except Exception as e:
            logger.warning("voice_record_failed", error=str(e))
            self._set_state(VoiceState.IDLE)
            if self.on_error is not None:
                result = self.on_error(e)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            return False

        self._set_state(VoiceState.LISTENING)
        return True

    async def stop_recording(self) -> Optional[str]:
        """
        End capture and transcribe.

        Returns:
            The transcript, or None if nothing was recording or
            transcription failed (on_error has been called)
        """
        if self._state != VoiceState.LISTENING:
            return None

        audio = self.recorder.stop()
        mime_type = getattr(self.recorder, "mime_type", "audio/wav")
        self._set_state(VoiceState.THINKING)

        try:
            if not audio:
                raise TranscriptionError("No audio captured")
            result = await asyncio.to_thread(self.transcriber.transcribe, audio, mime_type)
            text = result.text.strip()
            if not text:
                raise TranscriptionError("No speech detected")
        except Exception as e:
            logger.warning("voice_transcription_failed", error=str(e))
            self._set_state(VoiceState.IDLE)
            await _emit(self.on_error, e)
            return None

        # Idle before the callback so it can speak or record again
        self._set_state(VoiceState.IDLE)
        await _emit(self.on_transcription, text)
        return text

    # ── Stop ────────────────────────────────────────────────────

    async def stop(self):
        """
        Stop whatever is active.

        From speaking: interrupt playback. From listening: end capture
        and transcribe. From idle or thinking: no-op.
        """
        if self._state == VoiceState.SPEAKING:
            self.stop_speaking()
        elif self._state == VoiceState.LISTENING:
            await self.stop_recording()

    async def close(self):
        """Release devices at shutdown."""
        if self._state == VoiceState.SPEAKING:
            self.stop_speaking()
        elif self._state == VoiceState.LISTENING:
            self.recorder.stop()
            self._set_state(VoiceState.IDLE)
