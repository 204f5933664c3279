"""
LLM provider modules for the career coach.

Supports:
- OpenAI (primary)
- Groq (secondary, free tier)
"""

from .base import LLMProvider, LLMResponse, LLMConfig, Message, JSON_OBJECT_FORMAT
from .groq_provider import GroqProvider
from .openai_provider import OpenAIProvider
from .manager import LLMManager, LLMManagerConfig, parse_json_object

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMConfig",
    "Message",
    "JSON_OBJECT_FORMAT",
    "GroqProvider",
    "OpenAIProvider",
    "LLMManager",
    "LLMManagerConfig",
    "parse_json_object",
]
