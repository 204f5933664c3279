"""
Groq LLM Provider.

Groq offers fast inference with a free tier. Sign up at:
https://console.groq.com
"""

import os
from typing import Optional, List, Dict

from groq import Groq
import structlog

from .base import (
    LLMProvider,
    LLMConfig,
    LLMResponse,
    Message,
    ProviderStatus
)

logger = structlog.get_logger(__name__)


class GroqProvider(LLMProvider):
    """
    Groq LLM Provider using their Python SDK.
    """

    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    AVAILABLE_MODELS = [
        "llama-3.3-70b-versatile",    # Best general purpose
        "llama-3.1-8b-instant",       # Fast, smaller
    ]

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        **kwargs
    ):
        """
        Initialize Groq provider.

        Args:
            api_key: Groq API key (or set GROQ_API_KEY env var)
            model: Model to use (default: llama-3.3-70b-versatile)
            **kwargs: Additional config options
        """
        self.api_key = api_key or os.environ.get("GROQ_API_KEY")

        config = LLMConfig(
            provider_name="groq",
            model=model,
            api_key=self.api_key,
            base_url="https://api.groq.com/openai/v1",
            temperature=kwargs.get("temperature", 0.7),
            max_tokens=kwargs.get("max_tokens", 1000),
            timeout=kwargs.get("timeout", 30)
        )
        super().__init__(config)

        self._client: Optional[Groq] = None
        self._initialize_client()

    def _initialize_client(self):
        """Initialize the Groq client."""
        if not self.api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return

        self._client = Groq(
            api_key=self.api_key,
            timeout=self.config.timeout,
            max_retries=0,
        )
        self._status = ProviderStatus.AVAILABLE

    def is_available(self) -> bool:
        """Check if Groq is available."""
        return self._client is not None and self._status != ProviderStatus.NOT_CONFIGURED

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request to Groq.

        Args:
            messages: List of conversation messages
            temperature: Override default temperature (0-2)
            max_tokens: Override default max tokens
            response_format: Optional JSON mode switch
            **kwargs: Additional parameters

        Returns:
            LLMResponse with the model's response
        """
        if not self.is_available():
            raise RuntimeError(
                "Groq not available. Set GROQ_API_KEY environment variable.\n"
                "Get your free API key at: https://console.groq.com"
            )

        msg_dicts = [{"role": m.role, "content": m.content} for m in messages]
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=msg_dicts,
                temperature=temperature if temperature is not None else self.config.temperature,
                max_tokens=max_tokens or self.config.max_tokens,
                **kwargs
            )
        except Exception as e:
            self._mark_failure(e)
            logger.warning("groq_request_failed", model=self.config.model, error=str(e))
            raise

        self._status = ProviderStatus.AVAILABLE
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            provider="groq",
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            finish_reason=response.choices[0].finish_reason or "stop",
            raw_response=response
        )


def create_groq_provider(
    api_key: Optional[str] = None,
    model: str = GroqProvider.DEFAULT_MODEL,
) -> Optional[GroqProvider]:
    """
    Factory function to create a Groq provider if configured.

    Returns:
        GroqProvider if GROQ_API_KEY is set, None otherwise
    """
    api_key = api_key or os.environ.get("GROQ_API_KEY")
    if not api_key:
        return None

    return GroqProvider(api_key=api_key, model=model)
