"""
Voice interface for the career discovery interview.

Components:
- ElevenLabsSynthesizer: text-to-speech (MP3 bytes)
- WhisperTranscriber: local speech-to-text with faster-whisper
- VoiceController: idle/listening/thinking/speaking state machine
- VoicePreferenceStore: per-user voice selection
"""

from .text_to_speech import ElevenLabsSynthesizer
from .speech_to_text import WhisperTranscriber, TranscriptionResult
from .voices import Voice, CURATED_VOICES, DEFAULT_VOICE, VoicePreferenceStore, find_voice
from .controller import VoiceController, VoiceState, SpeakOutcome

__all__ = [
    "ElevenLabsSynthesizer",
    "WhisperTranscriber",
    "TranscriptionResult",
    "Voice",
    "CURATED_VOICES",
    "DEFAULT_VOICE",
    "VoicePreferenceStore",
    "find_voice",
    "VoiceController",
    "VoiceState",
    "SpeakOutcome",
]
