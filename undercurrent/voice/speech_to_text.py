"""
Speech-to-Text using faster-whisper.

Local, offline transcription of recorded answers. The Whisper model
is loaded lazily on the first request.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional

import structlog
from faster_whisper import WhisperModel

from ..exceptions import TranscriptionError

logger = structlog.get_logger(__name__)

# Container suffixes ffmpeg needs to sniff the input format
_MIME_SUFFIXES = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
}


def suffix_for_mime(mime_type: str) -> str:
    """File suffix for an audio mime type (parameters like ';codecs=opus' are ignored)."""
    base = (mime_type or "").split(";")[0].strip().lower()
    return _MIME_SUFFIXES.get(base, ".m4a")


@dataclass
class TranscriptionResult:
    """Result from speech-to-text transcription."""
    text: str
    language: str = "en"
    confidence: float = 0.0
    duration: float = 0.0


class WhisperTranscriber:
    """
    Speech-to-Text engine using faster-whisper.

    Models (smallest to largest):
    - tiny: ~75MB, fastest, lower accuracy
    - base: ~150MB, good balance
    - small: ~500MB, better accuracy
    - medium: ~1.5GB, high accuracy
    - large-v3: ~3GB, best accuracy
    """

    AVAILABLE_MODELS = ["tiny", "base", "small", "medium", "large-v3"]

    def __init__(
        self,
        model_size: str = "base",
        device: str = "auto",
        compute_type: str = "default",
        language: str = "en"
    ):
        """
        Initialize the speech-to-text engine.

        Args:
            model_size: Whisper model size (tiny, base, small, medium, large-v3)
            device: Device to use (auto, cpu, cuda)
            compute_type: Computation type (default, int8, float16, float32)
            language: Language for transcription
        """
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self._model: Optional[WhisperModel] = None

    def _load_model(self) -> WhisperModel:
        """Lazy load the Whisper model."""
        if self._model is None:
            logger.info("whisper_model_loading", model=self.model_size, device=self.device)
            try:
                self._model = WhisperModel(
                    self.model_size,
                    device=self.device,
                    compute_type=self.compute_type
                )
            except Exception as e:
                raise TranscriptionError(f"Failed to load Whisper model: {e}") from e
        return self._model

    def transcribe_file(self, audio_path: str) -> TranscriptionResult:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path to audio file (wav, mp3, webm, m4a, ...)

        Returns:
            TranscriptionResult with transcribed text
        """
        model = self._load_model()

        segments, info = model.transcribe(
            audio_path,
            language=self.language,
            beam_size=5,
            vad_filter=True
        )

        text_parts = [segment.text.strip() for segment in segments]
        full_text = " ".join(part for part in text_parts if part)

        return TranscriptionResult(
            text=full_text,
            language=info.language,
            confidence=info.language_probability,
            duration=info.duration
        )

    def transcribe(self, audio_bytes: bytes, mime_type: str = "audio/m4a") -> TranscriptionResult:
        """
        Transcribe recorded audio.

        Args:
            audio_bytes: Encoded audio as captured by the client
            mime_type: Mime type of the recording

        Returns:
            TranscriptionResult with non-empty text

        Raises:
            TranscriptionError: If decoding or recognition fails, or nothing was said
        """
        if not audio_bytes:
            raise TranscriptionError("No audio data")

        with tempfile.NamedTemporaryFile(suffix=suffix_for_mime(mime_type), delete=False) as f:
            f.write(audio_bytes)
            temp_path = f.name

        try:
            result = self.transcribe_file(temp_path)
        except TranscriptionError:
            raise
        except Exception as e:
            logger.warning("transcription_failed", mime_type=mime_type, error=str(e))
            raise TranscriptionError(f"Transcription failed: {e}") from e
        finally:
            os.unlink(temp_path)

        if not result.text.strip():
            raise TranscriptionError("No speech detected")

        return result
