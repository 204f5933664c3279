"""
Base classes for LLM providers.

Provides a unified interface for the LLM backends the coach uses,
so the coaching and synthesis generators never see a vendor SDK.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class ProviderStatus(str, Enum):
    """Status of an LLM provider."""
    AVAILABLE = "available"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class LLMConfig:
    """Configuration for an LLM provider."""
    provider_name: str
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: int = 30
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A single message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)  # tokens used
    finish_reason: str = "stop"
    raw_response: Optional[Any] = None

    @property
    def tokens_used(self) -> int:
        """Total tokens used in this request."""
        return self.usage.get("total_tokens", 0)


# OpenAI-compatible structured output switch
JSON_OBJECT_FORMAT = {"type": "json_object"}


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    All providers (OpenAI, Groq) must implement this interface.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._status = ProviderStatus.NOT_CONFIGURED

    @property
    def name(self) -> str:
        """Provider name."""
        return self.config.provider_name

    @property
    def model(self) -> str:
        """Current model."""
        return self.config.model

    @property
    def status(self) -> ProviderStatus:
        """Current provider status."""
        return self._status

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available and configured."""
        pass

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of conversation messages
            temperature: Override default temperature
            max_tokens: Override default max tokens
            response_format: e.g. JSON_OBJECT_FORMAT to force a JSON object reply
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse with the model's response
        """
        pass

    def _mark_failure(self, error: Exception):
        error_str = str(error).lower()
        if "rate" in error_str or "429" in error_str or "quota" in error_str:
            self._status = ProviderStatus.RATE_LIMITED
        else:
            self._status = ProviderStatus.ERROR
