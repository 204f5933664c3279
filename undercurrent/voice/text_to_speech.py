"""
Text-to-Speech with ElevenLabs.

Returns MP3 bytes for the client (or the local speaker) to play.
A None result is an expected outcome (no key, quota exhausted, network
error): callers keep the text and carry on without audio.
"""

import os
from typing import Optional

import requests
import structlog

logger = structlog.get_logger(__name__)

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
DEFAULT_MODEL = "eleven_turbo_v2_5"


class ElevenLabsSynthesizer:
    """
    ElevenLabs text-to-speech client.

    Voice settings are tuned for a warm, conversational coaching voice.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        stability: float = 0.45,
        similarity_boost: float = 0.82,
        style: float = 0.3,
        timeout: float = 30,
    ):
        """
        Initialize the synthesizer.

        Args:
            api_key: ElevenLabs API key (or set ELEVENLABS_API_KEY env var)
            model: ElevenLabs model ID (default: eleven_turbo_v2_5)
            stability: Voice stability 0.0-1.0 (lower = more expressive)
            similarity_boost: Voice clarity 0.0-1.0 (higher = closer to original)
            style: Style exaggeration 0.0-1.0 (higher = more stylistic)
            timeout: HTTP timeout in seconds
        """
        self._api_key = api_key or os.environ.get("ELEVENLABS_API_KEY")
        self._model = model or DEFAULT_MODEL
        self._stability = stability
        self._similarity_boost = similarity_boost
        self._style = style
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def synthesize(self, text: str, voice_id: str) -> Optional[bytes]:
        """
        Generate speech audio.

        Args:
            text: Text to synthesize
            voice_id: ElevenLabs voice ID

        Returns:
            MP3 audio bytes, or None when no audio could be produced
        """
        if not text or not text.strip():
            return None

        if not self._api_key:
            logger.warning("tts_not_configured", hint="set ELEVENLABS_API_KEY")
            return None

        headers = {
            "xi-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }

        payload = {
            "text": text,
            "model_id": self._model,
            "voice_settings": {
                "stability": self._stability,
                "similarity_boost": self._similarity_boost,
                "style": self._style,
                "use_speaker_boost": True,
            },
        }

        try:
            response = requests.post(
                ELEVENLABS_TTS_URL.format(voice_id=voice_id),
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("tts_request_failed", voice_id=voice_id, error=str(e))
            return None

        if not response.ok:
            logger.warning(
                "tts_rejected",
                voice_id=voice_id,
                status=response.status_code,
                body=response.text[:200],
            )
            return None

        if not response.content:
            logger.warning("tts_empty_audio", voice_id=voice_id)
            return None

        return response.content
