"""
OpenAI provider for coaching and synthesis calls.
"""

import os
from typing import Optional, List, Dict

from openai import OpenAI
import structlog

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus

logger = structlog.get_logger(__name__)


class OpenAIProvider(LLMProvider):
    """
    OpenAI provider using the official OpenAI SDK.

    Supports JSON mode through response_format={"type": "json_object"}.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: int = 30,
        **kwargs
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (or set OPENAI_API_KEY env var)
            model: Model to use (gpt-4o, gpt-4o-mini, etc.)
            base_url: Custom base URL for OpenAI-compatible endpoints
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL")

        config = LLMConfig(
            provider_name="openai",
            model=model,
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            **kwargs
        )
        super().__init__(config)

        self._client: Optional[OpenAI] = None
        self._init_client()

    def _init_client(self):
        """Initialize the OpenAI client."""
        if not self.api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return

        client_kwargs = {
            "api_key": self.api_key,
            "timeout": self.config.timeout,
            # The interview makes one attempt per user action
            "max_retries": 0,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url

        self._client = OpenAI(**client_kwargs)
        self._status = ProviderStatus.AVAILABLE

    def is_available(self) -> bool:
        """Check if OpenAI is available and configured."""
        return self._client is not None and self._status != ProviderStatus.NOT_CONFIGURED

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> LLMResponse:
        """Send a chat completion request to OpenAI."""
        if not self.is_available():
            raise RuntimeError("OpenAI provider is not available. Check OPENAI_API_KEY.")

        openai_messages = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
        ]
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=openai_messages,
                temperature=temperature if temperature is not None else self.config.temperature,
                max_tokens=max_tokens or self.config.max_tokens,
                **kwargs
            )
        except Exception as e:
            self._mark_failure(e)
            logger.warning("openai_request_failed", model=self.config.model, error=str(e))
            raise

        self._status = ProviderStatus.AVAILABLE
        content = response.choices[0].message.content or ""
        usage = {
            "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
            "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            "total_tokens": response.usage.total_tokens if response.usage else 0,
        }

        return LLMResponse(
            content=content,
            model=response.model,
            provider="openai",
            usage=usage,
            finish_reason=response.choices[0].finish_reason or "stop",
            raw_response=response
        )


def create_openai_provider(
    api_key: Optional[str] = None,
    model: str = OpenAIProvider.DEFAULT_MODEL,
) -> Optional[OpenAIProvider]:
    """
    Factory function to create an OpenAI provider if configured.

    Returns:
        OpenAIProvider if an API key is available, None otherwise
    """
    api_key = api_key or os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    return OpenAIProvider(api_key=api_key, model=model)
