"""
Local audio devices for the terminal interview.

- SpeakerPlayer: decodes MP3 with pydub and plays it with sounddevice
- MicrophoneRecorder: captures microphone input and returns WAV bytes

Both are driven by the VoiceController, which guarantees that the
speaker and microphone are never active at the same time.
"""

import asyncio
import io
import threading
import wave
from typing import List, Optional

import numpy as np
import sounddevice as sd
import structlog
from pydub import AudioSegment

logger = structlog.get_logger(__name__)


def decode_mp3(audio_bytes: bytes) -> tuple:
    """
    Decode MP3 bytes into float32 samples.

    Returns:
        (samples, sample_rate) where samples has shape (frames, channels)
    """
    segment = AudioSegment.from_file(io.BytesIO(audio_bytes), format="mp3")
    samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
    samples = samples.reshape((-1, segment.channels))
    samples /= float(1 << (8 * segment.sample_width - 1))
    return samples, segment.frame_rate


class SpeakerPlayer:
    """Plays MP3 audio through the default output device."""

    def __init__(self):
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    async def play(self, audio_bytes: bytes):
        """Play audio and return when playback ends or stop() is called."""
        samples, sample_rate = decode_mp3(audio_bytes)
        self._playing = True
        try:
            sd.play(samples, samplerate=sample_rate)
            await asyncio.to_thread(sd.wait)
        finally:
            self._playing = False

    def stop(self):
        """Stop playback immediately."""
        if self._playing:
            sd.stop()
        self._playing = False


class MicrophoneRecorder:
    """
    Records audio from the microphone between start() and stop().

    Uses sounddevice for cross-platform audio capture.
    """

    mime_type = "audio/wav"

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
    ):
        """
        Initialize the microphone recorder.

        Args:
            sample_rate: Audio sample rate (16000 recommended for Whisper)
            channels: Number of audio channels (1 for mono)
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self._stream: Optional[sd.InputStream] = None
        self._chunks: List[np.ndarray] = []
        self._lock = threading.Lock()

    @staticmethod
    def microphone_available() -> bool:
        """Check if an input device exists."""
        try:
            devices = sd.query_devices()
        except sd.PortAudioError:
            return False
        return any(d["max_input_channels"] > 0 for d in devices)

    def _callback(self, indata, frames, time, status):
        if status:
            logger.debug("microphone_status", status=str(status))
        with self._lock:
            self._chunks.append(indata.copy())

    def start(self):
        """Open the input stream and begin buffering audio."""
        if self._stream is not None:
            return
        if not self.microphone_available():
            raise RuntimeError("No microphone found")

        with self._lock:
            self._chunks = []
        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="int16",
            blocksize=1024,
            callback=self._callback,
        )
        self._stream.start()

    def stop(self) -> bytes:
        """Close the stream and return the recording as WAV bytes."""
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            stream.close()

        with self._lock:
            chunks, self._chunks = self._chunks, []

        if not chunks:
            return b""

        audio = np.concatenate(chunks)
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(2)
            wav.setframerate(self.sample_rate)
            wav.writeframes(audio.tobytes())
        return buffer.getvalue()
