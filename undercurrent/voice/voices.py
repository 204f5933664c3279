"""
Voice catalog and per-user voice preference.

The catalog is a fixed list of ElevenLabs voices suited to a warm,
coaching-style conversation. A stored preference that no longer
matches the catalog falls back to the first entry.
"""

import json
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import structlog

from ..exceptions import StoreError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Voice:
    """An ElevenLabs voice offered to the user."""
    voice_id: str
    name: str
    description: str

    def to_dict(self) -> dict:
        return {"voice_id": self.voice_id, "name": self.name, "description": self.description}


CURATED_VOICES = (
    Voice("21m00Tcm4TlvDq8ikWAM", "Rachel", "Calm, warm, and clear. Great for coaching."),
    Voice("AZnzlk1XvdvUeBnXmlld", "Domi", "Strong and confident. Direct and motivating."),
    Voice("EXAVITQu4vr4xnSDxMaL", "Bella", "Soft and empathetic. Gentle and supportive."),
    Voice("ErXwobaYiN019PkySvjV", "Antoni", "Warm and well-rounded. Thoughtful and grounded."),
    Voice("VR6AewLTigWG4xSOukaG", "Arnold", "Crisp and authoritative. Clear and decisive."),
)

DEFAULT_VOICE = CURATED_VOICES[0]

VOICE_PREVIEW_TEXT = (
    "Hi, I'm your career discovery coach. Let's explore what makes you come alive."
)


def find_voice(voice_id: Optional[str]) -> Optional[Voice]:
    """Catalog entry for a voice id, or None."""
    for voice in CURATED_VOICES:
        if voice.voice_id == voice_id:
            return voice
    return None


class VoicePreferenceStore:
    """
    Per-user voice selection persisted as a JSON map of user id to voice id.

    Usage:
        prefs = VoicePreferenceStore(Path("./data/voice_preferences.json"))
        prefs.set("user-1", "AZnzlk1XvdvUeBnXmlld")
        prefs.get("user-1")  # Voice(name="Domi", ...)
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("voice_preferences_unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write voice preferences {self.path}: {e}") from e

    def get(self, user_id: str) -> Voice:
        """The user's voice, or the default when unset or no longer offered."""
        with self._lock:
            stored = self._read().get(user_id)
        return find_voice(stored) or DEFAULT_VOICE

    def set(self, user_id: str, voice_id: str) -> Voice:
        """
        Save the user's voice.

        Raises:
            ValidationError: If the voice id is not in the catalog
        """
        voice = find_voice(voice_id)
        if voice is None:
            raise ValidationError(f"Unknown voice '{voice_id}'")

        with self._lock:
            data = self._read()
            data[user_id] = voice.voice_id
            self._write(data)
        return voice
