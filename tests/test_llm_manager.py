"""
Tests for the LLM manager: provider selection, single-attempt calls and JSON mode.
"""

import pytest

from undercurrent.exceptions import LLMUnavailableError
from undercurrent.llm.base import (
    JSON_OBJECT_FORMAT,
    LLMConfig,
    LLMProvider,
    LLMResponse,
    Message,
    ProviderStatus,
)
from undercurrent.llm.manager import LLMManager, parse_json_object


class FakeProvider(LLMProvider):
    def __init__(self, name, replies=None, errors=None):
        super().__init__(LLMConfig(provider_name=name, model=f"{name}-model"))
        self._status = ProviderStatus.AVAILABLE
        self.replies = list(replies or ["ok"])
        self.errors = list(errors or [])
        self.calls = []

    def is_available(self) -> bool:
        return True

    def chat(self, messages, temperature=None, max_tokens=None, response_format=None, **kwargs):
        self.calls.append({"messages": messages, "response_format": response_format, **kwargs})
        if self.errors:
            error = self.errors.pop(0)
            self._mark_failure(error)
            raise error
        self._status = ProviderStatus.AVAILABLE
        return LLMResponse(
            content=self.replies.pop(0) if len(self.replies) > 1 else self.replies[0],
            model=self.model,
            provider=self.name,
            usage={"total_tokens": 10},
        )


MESSAGES = [Message(role="user", content="Hello")]


class TestParseJsonObject:
    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_rejects_array(self):
        with pytest.raises(ValueError):
            parse_json_object("[1, 2]")

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_json_object("Sure! Here is your report")


class TestChat:
    def test_uses_priority_order(self):
        openai = FakeProvider("openai", replies=["from openai"])
        groq = FakeProvider("groq")
        manager = LLMManager(providers={"groq": groq, "openai": openai})

        assert manager.chat(MESSAGES).content == "from openai"
        assert groq.calls == []

    def test_single_attempt_on_failure(self):
        openai = FakeProvider("openai", errors=[RuntimeError("boom")])
        groq = FakeProvider("groq")
        manager = LLMManager(providers={"openai": openai, "groq": groq})

        with pytest.raises(LLMUnavailableError):
            manager.chat(MESSAGES)
        assert len(openai.calls) == 1
        assert groq.calls == []
        assert manager.session_stats["failed_requests"] == 1

    def test_rate_limited_provider_skipped(self):
        openai = FakeProvider("openai", errors=[RuntimeError("Error 429: rate limit exceeded")])
        groq = FakeProvider("groq", replies=["from groq"])
        manager = LLMManager(providers={"openai": openai, "groq": groq})

        with pytest.raises(LLMUnavailableError):
            manager.chat(MESSAGES)
        assert openai.status == ProviderStatus.RATE_LIMITED

        assert manager.chat(MESSAGES).content == "from groq"
        assert len(openai.calls) == 1

    def test_no_providers(self):
        manager = LLMManager(providers={})
        assert manager.is_available is False
        with pytest.raises(LLMUnavailableError):
            manager.chat(MESSAGES)

    def test_unknown_forced_provider(self):
        manager = LLMManager(providers={"openai": FakeProvider("openai")})
        with pytest.raises(LLMUnavailableError):
            manager.chat(MESSAGES, provider="groq")

    def test_usage_tracked(self):
        manager = LLMManager(providers={"openai": FakeProvider("openai")})
        manager.chat(MESSAGES)
        manager.chat(MESSAGES)
        status = manager.get_status()
        assert status["current_provider"] == "openai"
        assert status["providers"]["openai"]["requests"] == 2
        assert status["providers"]["openai"]["tokens"] == 20


class TestChatJson:
    def test_requests_json_mode(self):
        openai = FakeProvider("openai", replies=['{"zone_of_genius": "Teaching"}'])
        manager = LLMManager(providers={"openai": openai})

        assert manager.chat_json(MESSAGES) == {"zone_of_genius": "Teaching"}
        assert openai.calls[0]["response_format"] == JSON_OBJECT_FORMAT

    def test_request_timeout_forwarded(self):
        openai = FakeProvider("openai", replies=['{"key_insight": "Teach"}'])
        manager = LLMManager(providers={"openai": openai})

        manager.chat_json(MESSAGES, timeout=15.0)
        assert openai.calls[0]["timeout"] == 15.0

    @pytest.mark.parametrize("reply", ["not json at all", "[1, 2, 3]", '"just a string"'])
    def test_non_object_reply(self, reply):
        manager = LLMManager(providers={"openai": FakeProvider("openai", replies=[reply])})
        with pytest.raises(LLMUnavailableError):
            manager.chat_json(MESSAGES)


class TestPackageSurface:
    def test_exports(self):
        import undercurrent.llm as llm

        assert set(llm.__all__) == {
            "LLMProvider", "LLMResponse", "LLMConfig", "Message", "JSON_OBJECT_FORMAT",
            "GroqProvider", "OpenAIProvider", "LLMManager", "LLMManagerConfig", "parse_json_object",
        }
        assert not hasattr(LLMManager, "complete")
        assert not hasattr(LLMProvider, "complete")
