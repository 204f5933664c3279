"""
LLM Manager - Unified interface for the configured LLM providers.

Selects the first healthy provider in priority order and makes exactly
one attempt per call. Failures are raised to the caller, which decides
how to degrade (the interview flow fails open, synthesis reports an error).
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

import structlog

from ..config import LLMSettings
from ..exceptions import LLMUnavailableError
from .base import (
    JSON_OBJECT_FORMAT,
    LLMProvider,
    LLMResponse,
    Message,
    ProviderStatus,
)
from .groq_provider import create_groq_provider
from .openai_provider import create_openai_provider

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class ProviderUsage:
    """Track usage per provider."""
    requests: int = 0
    tokens: int = 0
    last_request: Optional[datetime] = None
    rate_limit_reset: Optional[datetime] = None
    errors: int = 0
    successes: int = 0
    last_error: Optional[str] = None


@dataclass
class LLMManagerConfig:
    """Configuration for the LLM Manager."""
    provider_priority: List[str] = field(default_factory=lambda: ["openai", "groq"])

    default_models: Dict[str, str] = field(default_factory=lambda: {
        "openai": "gpt-4o-mini",
        "groq": "llama-3.3-70b-versatile",
    })

    # How long a rate-limited provider is skipped
    rate_limit_cooldown: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> "LLMManagerConfig":
        return cls(
            provider_priority=list(settings.provider_priority),
            default_models={
                "openai": settings.openai_model,
                "groq": settings.groq_model,
            },
        )


def parse_json_object(content: str) -> Dict[str, Any]:
    """
    Parse a model reply that should be a single JSON object.

    Tolerates a surrounding markdown code fence.

    Raises:
        ValueError: If the content is not a JSON object
    """
    text = (content or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class LLMManager:
    """
    Manages the LLM providers with priority-based selection.

    Usage:
        manager = LLMManager()
        response = manager.chat([Message(role="user", content="Hello")])
        data = manager.chat_json([...])  # dict parsed from a JSON-mode reply
    """

    def __init__(
        self,
        config: Optional[LLMManagerConfig] = None,
        providers: Optional[Dict[str, LLMProvider]] = None,
        settings: Optional[LLMSettings] = None,
    ):
        if config is None and settings is not None:
            config = LLMManagerConfig.from_settings(settings)
        self.config = config or LLMManagerConfig()
        self._providers: Dict[str, LLMProvider] = {}
        self._usage: Dict[str, ProviderUsage] = {}
        self._current_provider: Optional[str] = None

        if providers is not None:
            for name, provider in providers.items():
                self._register(name, provider)
        else:
            self._initialize_providers(settings)

        self._select_provider()

    def _register(self, name: str, provider: LLMProvider):
        self._providers[name] = provider
        self._usage[name] = ProviderUsage()

    def _initialize_providers(self, settings: Optional[LLMSettings]):
        """Initialize all configured providers."""
        openai = create_openai_provider(
            api_key=settings.openai_api_key if settings else None,
            model=self.config.default_models.get("openai", "gpt-4o-mini"),
        )
        if openai and openai.is_available():
            self._register("openai", openai)
            logger.info("llm_provider_ready", provider="openai", model=openai.model)

        groq = create_groq_provider(
            api_key=settings.groq_api_key if settings else None,
            model=self.config.default_models.get("groq", "llama-3.3-70b-versatile"),
        )
        if groq and groq.is_available():
            self._register("groq", groq)
            logger.info("llm_provider_ready", provider="groq", model=groq.model)

        if not self._providers:
            logger.warning("llm_no_providers", hint="set OPENAI_API_KEY or GROQ_API_KEY")

    def _select_provider(self) -> Optional[str]:
        """Select the best available provider."""
        for provider_name in self.config.provider_priority:
            provider = self._providers.get(provider_name)
            if provider is None:
                continue

            if provider.status == ProviderStatus.RATE_LIMITED:
                usage = self._usage[provider_name]
                if usage.rate_limit_reset and datetime.now() < usage.rate_limit_reset:
                    continue
                provider._status = ProviderStatus.AVAILABLE

            self._current_provider = provider_name
            return provider_name

        self._current_provider = None
        return None

    @property
    def current_provider(self) -> Optional[LLMProvider]:
        """Get the currently selected provider."""
        if self._current_provider:
            return self._providers.get(self._current_provider)
        return None

    @property
    def available_providers(self) -> List[str]:
        """List of available provider names."""
        return list(self._providers.keys())

    @property
    def is_available(self) -> bool:
        """Check if any LLM provider is available."""
        return self._select_provider() is not None

    def get_status(self) -> Dict[str, Any]:
        """Get status of all providers."""
        status = {
            "current_provider": self._current_provider,
            "providers": {}
        }
        for name, provider in self._providers.items():
            usage = self._usage[name]
            status["providers"][name] = {
                "status": provider.status.value,
                "model": provider.model,
                "requests": usage.requests,
                "tokens": usage.tokens,
                "errors": usage.errors,
            }
        return status

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
        provider: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request. One attempt, no retries.

        Args:
            messages: List of conversation messages
            temperature: Override default temperature
            max_tokens: Override default max tokens
            response_format: Optional JSON mode switch
            provider: Force a specific provider (optional)
            **kwargs: Additional parameters

        Returns:
            LLMResponse with the model's response

        Raises:
            LLMUnavailableError: If no provider is available or the call fails
        """
        if provider:
            if provider not in self._providers:
                raise LLMUnavailableError(f"Provider '{provider}' not available")
            target_provider = provider
        else:
            target_provider = self._select_provider()

        if not target_provider:
            raise LLMUnavailableError(
                "No LLM providers available. Set OPENAI_API_KEY or GROQ_API_KEY."
            )

        llm = self._providers[target_provider]
        usage = self._usage[target_provider]
        usage.requests += 1
        usage.last_request = datetime.now()

        try:
            response = llm.chat(
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=response_format,
                **kwargs
            )
        except Exception as e:
            usage.errors += 1
            usage.last_error = str(e)[:200]
            if llm.status == ProviderStatus.RATE_LIMITED:
                usage.rate_limit_reset = datetime.now() + self.config.rate_limit_cooldown
            logger.warning("llm_call_failed", provider=target_provider, error=usage.last_error)
            raise LLMUnavailableError(f"{target_provider} request failed: {e}") from e

        usage.successes += 1
        usage.tokens += response.tokens_used
        return response

    def chat_json(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Chat in JSON-object mode and return the parsed object.

        Raises:
            LLMUnavailableError: If the call fails or the reply is not a JSON object
        """
        response = self.chat(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=JSON_OBJECT_FORMAT,
            **kwargs
        )
        try:
            return parse_json_object(response.content)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            logger.warning("llm_json_parse_failed", provider=response.provider, error=str(e))
            raise LLMUnavailableError(f"Model reply was not a JSON object: {e}") from e

    @property
    def session_stats(self) -> Dict[str, Any]:
        """Aggregate request counts across providers."""
        total_success = sum(u.successes for u in self._usage.values())
        total_errors = sum(u.errors for u in self._usage.values())
        return {
            "providers_available": list(self._providers.keys()),
            "current_provider": self._current_provider,
            "total_requests": total_success + total_errors,
            "successful_requests": total_success,
            "failed_requests": total_errors,
        }
