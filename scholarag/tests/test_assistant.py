"""End-to-end tests for DocumentAssistant with a faked provider API."""

import pytest

from scholarag import DocumentAssistant
from scholarag.core.models import FeaturePreference
from scholarag.exceptions import ConfigurationError, InvalidInput, NoChunksFound, ProviderDispatchError
from scholarag.providers.llm import base as llm_base
from scholarag.providers.router import USAGE_LOG_TABLE

PAGES = [
    (1, "Economic policy shaped taxation throughout the twentieth century."),
    (2, "Climate adaptation requires local climate data and regional adaptation plans."),
    (3, "Species migrate when habitats change."),
]


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.status_code = status_code
        self._payload = payload
        self.headers = {}
        self.text = ""

    def json(self):
        return self._payload


@pytest.fixture
def provider_api(monkeypatch):
    """Answer every chat call with the queued text; record the requests."""
    state = {"answer": "Adaptation needs local data [Page 2].", "status": 200, "requests": []}

    def fake_post(url, headers=None, json=None, timeout=None):
        state["requests"].append({"url": url, "headers": headers, "json": json})
        if state["status"] != 200:
            return FakeResponse({}, status_code=state["status"])
        return FakeResponse({
            "choices": [{"message": {"role": "assistant", "content": state["answer"]}}],
            "usage": {"total_tokens": 42},
        })

    monkeypatch.setattr(llm_base.requests, "post", fake_post)
    return state


@pytest.fixture
def assistant(test_config):
    test_config.chunk_size = 80
    test_config.chunk_overlap = 10
    assistant = DocumentAssistant.from_config(test_config)
    assistant.ingest("paper", PAGES)
    return assistant


class TestAsk:
    """Test question answering with citations."""

    def test_answer_with_citation(self, assistant, provider_api):
        result = assistant.ask("alice", "paper", "What does climate adaptation require?")

        assert result.answer == "Adaptation needs local data [Page 2]."
        assert result.provider_used == "groq"
        assert not result.fell_back
        assert [c.page_number for c in result.citations] == [2]
        assert result.usage["total_tokens"] == 42
        assert result.metadata["semantic_available"]
        assert result.metadata["context_chunks"] >= 1

        request = provider_api["requests"][0]
        assert request["headers"]["Authorization"] == "Bearer gsk-platform-key-0000"
        system = request["json"]["messages"][0]
        assert system["role"] == "system"
        assert "Page 2" in system["content"]

    def test_chat_history_forwarded(self, assistant, provider_api):
        history = [
            {"role": "user", "content": "Earlier question"},
            {"role": "assistant", "content": "Earlier answer"},
        ]
        assistant.ask("alice", "paper", "And the climate data?", chat_history=history)

        roles = [m["role"] for m in provider_api["requests"][0]["json"]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]

    def test_uncited_page_dropped(self, assistant, provider_api):
        provider_api["answer"] = "Nothing relevant [Page 40]."
        assert assistant.ask("alice", "paper", "climate").citations == []

    def test_top_k_clamp_reported(self, assistant, provider_api):
        assistant.config.max_top_k = 2
        assistant.retriever.max_top_k = 2

        result = assistant.ask("alice", "paper", "climate adaptation", top_k=10)

        assert result.metadata["clamped"]
        assert result.metadata["top_k_applied"] == 2

    def test_usage_logged(self, assistant, provider_api):
        assistant.ask("alice", "paper", "climate")
        logs = assistant.record_store.get(USAGE_LOG_TABLE, {"user_id": "alice"})
        assert len(logs) == 1 and logs[0]["success"]

    def test_custom_key_with_fallback(self, assistant, provider_api, monkeypatch):
        """A failing preferred provider falls back to the platform default."""
        assistant.credentials.save_credential("alice", "openai", "sk-proj-user-key-0001")
        assistant.preferences.save_preference(
            FeaturePreference("alice", "chat", "openai", "gpt-4o-mini", use_custom_credential=True)
        )
        statuses = iter([500, 200])

        def flaky_post(url, headers=None, json=None, timeout=None):
            provider_api["requests"].append({"url": url, "headers": headers, "json": json})
            status = next(statuses)
            if status != 200:
                return FakeResponse({}, status_code=status)
            return FakeResponse({"choices": [{"message": {"content": "Fallback [Page 2]"}}]})

        monkeypatch.setattr(llm_base.requests, "post", flaky_post)
        result = assistant.ask("alice", "paper", "climate")

        assert result.fell_back
        assert result.provider_used == "groq"
        first, second = provider_api["requests"]
        assert first["headers"]["Authorization"] == "Bearer sk-proj-user-key-0001"
        assert first["json"]["model"] == "gpt-4o-mini"
        assert second["headers"]["Authorization"] == "Bearer gsk-platform-key-0000"

    def test_provider_down(self, assistant, provider_api):
        provider_api["status"] = 503
        with pytest.raises(ProviderDispatchError):
            assistant.ask("alice", "paper", "climate")

    def test_unknown_document(self, assistant, provider_api):
        with pytest.raises(NoChunksFound):
            assistant.ask("alice", "missing", "climate")
        assert provider_api["requests"] == []

    def test_empty_question(self, assistant, provider_api):
        with pytest.raises(InvalidInput):
            assistant.ask("alice", "paper", "  ")


class TestDocuments:
    """Test ingestion, search and deletion through the facade."""

    def test_search(self, assistant):
        result = assistant.search("paper", "climate adaptation plans", top_k=2)
        assert len(result) == 2
        assert result.chunks[0].page_number == 2

    def test_reingest_and_delete(self, assistant):
        result = assistant.ingest("paper", "Replacement text about glaciers.")
        assert result.generation == 2
        assert assistant.search("paper", "glaciers").chunks[0].chunk.text.startswith("Replacement")

        assert assistant.delete_document("paper") == 1
        with pytest.raises(NoChunksFound):
            assistant.search("paper", "glaciers")


class TestFromConfig:
    """Test wiring from configuration."""

    def test_without_vault_secret(self, test_config):
        test_config.encryption_secret = None
        assistant = DocumentAssistant.from_config(test_config)

        assert assistant.credentials is None
        with pytest.raises(ConfigurationError):
            assistant.require_credentials()

    def test_invalid_config(self, test_config):
        test_config.chunk_overlap = test_config.chunk_size
        with pytest.raises(ConfigurationError):
            DocumentAssistant.from_config(test_config)
