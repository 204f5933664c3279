"""
Runtime configuration for Undercurrent.

All settings are read from environment variables. A ``.env`` file in the
project root is loaded first (values already in the environment win).
"""

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class LLMSettings:
    """LLM provider selection and coaching call limits."""
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    groq_api_key: str = field(default_factory=lambda: os.getenv("GROQ_API_KEY", ""))
    provider_priority: List[str] = field(
        default_factory=lambda: _env_list("LLM_PROVIDER_PRIORITY", "openai,groq")
    )
    openai_model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
    groq_model: str = field(default_factory=lambda: os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile"))
    coaching_timeout: float = field(
        default_factory=lambda: float(os.getenv("COACHING_TIMEOUT_SECONDS", "20"))
    )
    synthesis_timeout: float = field(
        default_factory=lambda: float(os.getenv("SYNTHESIS_TIMEOUT_SECONDS", "60"))
    )


@dataclass
class VoiceSettings:
    """Text-to-speech and speech-to-text settings."""
    elevenlabs_api_key: str = field(default_factory=lambda: os.getenv("ELEVENLABS_API_KEY", ""))
    elevenlabs_model: str = field(
        default_factory=lambda: os.getenv("ELEVENLABS_MODEL", "eleven_turbo_v2_5")
    )
    tts_timeout: float = field(default_factory=lambda: float(os.getenv("TTS_TIMEOUT_SECONDS", "30")))
    whisper_model: str = field(default_factory=lambda: os.getenv("WHISPER_MODEL", "base"))
    whisper_language: str = field(default_factory=lambda: os.getenv("WHISPER_LANGUAGE", "en"))
    # Browsers block audio before the first user gesture
    defer_first_utterance: bool = field(
        default_factory=lambda: _env_bool("VOICE_DEFER_FIRST_UTTERANCE", False)
    )


@dataclass
class EmailSettings:
    """Resend email delivery."""
    resend_api_key: str = field(default_factory=lambda: os.getenv("RESEND_API_KEY", ""))
    sender: str = field(
        default_factory=lambda: os.getenv("EMAIL_FROM", "Career Discovery <noreply@resend.dev>")
    )
    timeout: float = field(default_factory=lambda: float(os.getenv("EMAIL_TIMEOUT_SECONDS", "30")))


@dataclass
class StorageSettings:
    """Where sessions and voice preferences live on disk."""
    data_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("UNDERCURRENT_DATA_DIR", "/tmp/undercurrent" if os.getenv("VERCEL") else "./data")
        )
    )
    canvas_debounce_seconds: float = 0.5

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"

    @property
    def voice_preferences_path(self) -> Path:
        return self.data_dir / "voice_preferences.json"

    @property
    def secret_key_path(self) -> Path:
        return self.data_dir / "secret_key"


@dataclass
class Settings:
    """Top-level settings object."""
    llm: LLMSettings = field(default_factory=LLMSettings)
    voice: VoiceSettings = field(default_factory=VoiceSettings)
    email: EmailSettings = field(default_factory=EmailSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_logs: bool = field(default_factory=lambda: _env_bool("LOG_JSON", False))
    # Signs user tokens; generated into the data dir when unset
    secret_key: str = field(default_factory=lambda: os.getenv("UNDERCURRENT_SECRET_KEY", ""))


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()


def resolve_secret_key(settings: Settings) -> str:
    """
    The key that signs user tokens.

    UNDERCURRENT_SECRET_KEY wins. Otherwise a random key is created once in
    the data directory and reused, so issued tokens stay valid across restarts.
    """
    if settings.secret_key:
        return settings.secret_key

    path = settings.storage.secret_key_path
    if path.exists():
        key = path.read_text(encoding="utf-8").strip()
        if key:
            return key

    key = secrets.token_hex(32)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(key, encoding="utf-8")
    os.chmod(path, 0o600)
    return key
