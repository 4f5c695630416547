"""Tests for chat provider adapters and the provider registry."""

import time

import pytest
import requests

from scholarag.config import Config
from scholarag.core.models import ChatMessage, ProviderDescriptor
from scholarag.exceptions import ConfigurationError, ProviderError, RateLimitError
from scholarag.providers.llm import base as llm_base
from scholarag.providers.llm import (
    ClaudeProvider,
    DeepSeekProvider,
    GeminiProvider,
    GroqProvider,
    OpenRouterProvider,
    PerplexityProvider,
)
from scholarag.providers.registry import PROVIDER_CATALOG, ProviderRegistry, build_default_registry


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@pytest.fixture
def post(monkeypatch):
    """Capture outgoing requests and answer with a queued response."""
    calls = []
    responses = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(llm_base.requests, "post", fake_post)
    fake_post.calls = calls
    fake_post.responses = responses
    return fake_post


def openai_payload(text, total_tokens=12):
    return {
        "choices": [{"message": {"role": "assistant", "content": text}}],
        "usage": {"prompt_tokens": 8, "completion_tokens": 4, "total_tokens": total_tokens},
    }


CONVERSATION = [
    ChatMessage(role="system", content="Be brief."),
    ChatMessage(role="user", content="Hi"),
    ChatMessage(role="assistant", content="Hello"),
    ChatMessage(role="user", content="Summarize page 3"),
]


class TestOpenAICompatible:
    """Test the chat-completions adapters."""

    def test_groq_chat(self, post):
        post.responses.append(FakeResponse(payload=openai_payload("  Page 3 says X.  ")))

        response = GroqProvider(api_key="gsk-key", timeout=12).chat(CONVERSATION, max_tokens=50)

        assert response.text == "Page 3 says X."
        assert response.total_tokens == 12
        call = post.calls[0]
        assert call["url"] == GroqProvider.API_URL
        assert call["headers"]["Authorization"] == "Bearer gsk-key"
        assert call["timeout"] == 12
        assert call["json"]["model"] == "llama-3.3-70b-versatile"
        assert call["json"]["max_tokens"] == 50
        assert [m["role"] for m in call["json"]["messages"]] == ["system", "user", "assistant", "user"]

    def test_openrouter_title_header(self, post):
        post.responses.append(FakeResponse(payload=openai_payload("ok")))
        OpenRouterProvider(api_key="or-key").chat(CONVERSATION)
        assert post.calls[0]["headers"]["X-Title"] == "Scholarag"

    def test_missing_key(self, post):
        with pytest.raises(ProviderError, match="GROQ_API_KEY not configured"):
            GroqProvider().chat(CONVERSATION)
        assert post.calls == []

    def test_rate_limited(self, post):
        post.responses.append(FakeResponse(status_code=429, headers={"Retry-After": "7"}))

        with pytest.raises(RateLimitError) as exc_info:
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)
        assert exc_info.value.retry_after == 7.0

    def test_server_error(self, post):
        post.responses.append(FakeResponse(status_code=500, text="upstream exploded"))
        with pytest.raises(ProviderError, match="500"):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    def test_timeout(self, post):
        post.responses.append(requests.exceptions.Timeout("read timed out"))
        with pytest.raises(ProviderError, match="timed out"):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    def test_connection_error(self, post):
        post.responses.append(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(ProviderError):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    def test_invalid_json(self, post):
        post.responses.append(FakeResponse(payload=None))
        with pytest.raises(ProviderError, match="invalid JSON"):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    @pytest.mark.parametrize("payload", [[], "ok", 42])
    def test_body_not_an_object(self, post, payload):
        post.responses.append(FakeResponse(payload=payload))
        with pytest.raises(ProviderError, match="instead of a JSON object"):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    @pytest.mark.parametrize("choices", ["abc", [None], [{"message": "hi"}], [{"message": {"content": ["hi"]}}]])
    def test_malformed_choices(self, post, choices):
        post.responses.append(FakeResponse(payload={"choices": choices}))
        with pytest.raises(ProviderError):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    def test_deadline_passed(self, post):
        provider = GroqProvider(api_key="gsk-key", deadline=time.monotonic() - 1)
        with pytest.raises(ProviderError, match="deadline"):
            provider.chat(CONVERSATION)
        assert post.calls == []

    def test_deadline_caps_timeout(self, post):
        post.responses.append(FakeResponse(payload=openai_payload("ok")))
        GroqProvider(api_key="gsk-key", timeout=60, deadline=time.monotonic() + 2).chat(CONVERSATION)
        assert 0 < post.calls[0]["timeout"] <= 2

    def test_deadline_checked_after_rate_limit(self, post, monkeypatch):
        """Waiting on the limiter past the deadline sends nothing."""
        provider = GroqProvider(api_key="gsk-key", deadline=time.monotonic() + 0.05)
        monkeypatch.setattr(provider, "_acquire_rate_limit", lambda: time.sleep(0.1))
        with pytest.raises(ProviderError, match="deadline"):
            provider.chat(CONVERSATION)
        assert post.calls == []

    @pytest.mark.parametrize("payload", [{"choices": []}, openai_payload("   ")])
    def test_empty_answer(self, post, payload):
        post.responses.append(FakeResponse(payload=payload))
        with pytest.raises(ProviderError):
            GroqProvider(api_key="gsk-key").chat(CONVERSATION)

    def test_generate(self, post):
        post.responses.append(FakeResponse(payload=openai_payload("done")))
        assert DeepSeekProvider(api_key="ds-key").generate("Say done") == "done"
        assert post.calls[0]["json"]["messages"] == [{"role": "user", "content": "Say done"}]

    def test_perplexity_strips_reasoning(self, post):
        post.responses.append(FakeResponse(payload=openai_payload("<think>\nlet me see\n</think>\nThe answer.")))
        response = PerplexityProvider(api_key="pplx-key").chat(CONVERSATION, model="sonar-reasoning")
        assert response.text == "The answer."


class TestClaude:
    """Test the Anthropic messages adapter."""

    def test_chat(self, post):
        post.responses.append(FakeResponse(payload={
            "content": [{"type": "text", "text": "Claude "}, {"type": "text", "text": "answer"}],
            "usage": {"input_tokens": 10, "output_tokens": 5},
        }))

        response = ClaudeProvider(api_key="sk-ant-key").chat(CONVERSATION, temperature=0.2)

        assert response.text == "Claude answer"
        assert response.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        call = post.calls[0]
        assert call["headers"]["x-api-key"] == "sk-ant-key"
        assert call["headers"]["anthropic-version"] == ClaudeProvider.API_VERSION
        assert call["json"]["system"] == "Be brief."
        assert all(m["role"] != "system" for m in call["json"]["messages"])
        assert call["json"]["max_tokens"] == ClaudeProvider.DEFAULT_MAX_TOKENS

    @pytest.mark.parametrize("content", [["text"], [{"type": "text", "text": 5}], "oops"])
    def test_malformed_content(self, post, content):
        post.responses.append(FakeResponse(payload={"content": content}))
        with pytest.raises(ProviderError):
            ClaudeProvider(api_key="sk-ant-key").chat(CONVERSATION)

    def test_body_not_an_object(self, post):
        post.responses.append(FakeResponse(payload=[]))
        with pytest.raises(ProviderError):
            ClaudeProvider(api_key="sk-ant-key").chat(CONVERSATION)


class TestGemini:
    """Test the Gemini generateContent adapter."""

    def test_chat(self, post):
        post.responses.append(FakeResponse(payload={
            "candidates": [{"content": {"parts": [{"text": "Gemini answer"}]}}],
            "usageMetadata": {"promptTokenCount": 9, "candidatesTokenCount": 3, "totalTokenCount": 12},
        }))

        response = GeminiProvider(api_key="AIza-key").chat(CONVERSATION, model="gemini-1.5-pro", max_tokens=64)

        assert response.text == "Gemini answer"
        assert response.total_tokens == 12
        call = post.calls[0]
        assert call["url"].endswith("/gemini-1.5-pro:generateContent")
        assert call["headers"]["x-goog-api-key"] == "AIza-key"
        assert [c["role"] for c in call["json"]["contents"]] == ["user", "model", "user"]
        assert call["json"]["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert call["json"]["generationConfig"]["maxOutputTokens"] == 64

    def test_blocked_prompt(self, post):
        post.responses.append(FakeResponse(payload={"promptFeedback": {"blockReason": "SAFETY"}}))
        with pytest.raises(ProviderError, match="no candidates"):
            GeminiProvider(api_key="AIza-key").chat(CONVERSATION)

    @pytest.mark.parametrize("candidates", [["text"], [{"content": {"parts": ["a"]}}], "oops"])
    def test_malformed_candidates(self, post, candidates):
        post.responses.append(FakeResponse(payload={"candidates": candidates}))
        with pytest.raises(ProviderError, match="malformed"):
            GeminiProvider(api_key="AIza-key").chat(CONVERSATION)


class TestRegistry:
    """Test provider registration and adapter construction."""

    def test_default_registry(self, test_config):
        registry = build_default_registry(test_config)

        assert {d.name for d in registry.descriptors()} == set(PROVIDER_CATALOG)
        assert registry.system_default.name == "groq"
        assert not registry.system_default.requires_credential
        assert all(d.requires_credential for d in registry.descriptors() if d.name != "groq")
        for descriptor in registry.descriptors():
            assert descriptor.default_model in descriptor.supported_models

    def test_rate_limited_providers(self, test_config):
        registry = build_default_registry(test_config)

        assert registry.rate_limiter("deepseek").max_calls == 30
        assert registry.rate_limiter("perplexity").max_calls == 5
        assert registry.rate_limiter("groq") is None

    def test_adapter_uses_platform_key_unless_given(self, test_config):
        registry = build_default_registry(test_config)

        assert registry.create_adapter("groq").api_key == "gsk-platform-key-0000"
        assert registry.create_adapter("groq", "gsk-user-key").api_key == "gsk-user-key"
        assert registry.create_adapter("claude").api_key is None

    def test_adapter_carries_deadline(self, test_config):
        registry = build_default_registry(test_config)

        assert registry.create_adapter("groq").deadline is None
        assert registry.create_adapter("groq", deadline=123.0).deadline == 123.0

    def test_shared_limiter(self, test_config):
        registry = build_default_registry(test_config)
        first = registry.create_adapter("perplexity")
        second = registry.create_adapter("perplexity", "pplx-user-key")
        assert first.rate_limiter is second.rate_limiter

    def test_unknown_adapter(self, test_config):
        with pytest.raises(ConfigurationError):
            build_default_registry(test_config).create_adapter("nobody")

    def test_unknown_system_default(self):
        with pytest.raises(ConfigurationError):
            build_default_registry(Config(system_default_provider="nobody"))

    def test_single_system_default(self):
        registry = ProviderRegistry()
        registry.register(
            ProviderDescriptor("a", "A", ["a-1"], "a-1", is_system_default=True), GroqProvider
        )
        with pytest.raises(ConfigurationError):
            registry.register(
                ProviderDescriptor("b", "B", ["b-1"], "b-1", is_system_default=True), GroqProvider
            )

    def test_default_model_must_be_supported(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry().register(ProviderDescriptor("a", "A", ["a-1"], "a-2"), GroqProvider)

    def test_duplicate_name(self):
        registry = ProviderRegistry()
        registry.register(ProviderDescriptor("a", "A", ["a-1"], "a-1"), GroqProvider)
        with pytest.raises(ConfigurationError):
            registry.register(ProviderDescriptor("a", "A", ["a-1"], "a-1"), GroqProvider)

    def test_no_system_default(self):
        with pytest.raises(ConfigurationError):
            ProviderRegistry().system_default
