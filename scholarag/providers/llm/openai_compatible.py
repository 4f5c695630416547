"""Providers speaking the OpenAI chat-completions protocol."""
import logging
from typing import List, Optional

from .base import BaseLLMProvider
from ...core.models import ChatMessage, ChatResponse
from ...exceptions import ProviderError

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(BaseLLMProvider):
    """Chat provider for any OpenAI-compatible endpoint.

    Subclasses only set the endpoint, key variable name and default model.
    """

    API_URL = ""

    def _headers(self, api_key: str) -> dict:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def chat(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        api_key = self._require_key()
        model = model or self.DEFAULT_MODEL

        logger.info(f"Generating with {self.PROVIDER_NAME} model: {model}")

        data = {
            "model": model,
            "messages": [ChatMessage.coerce(m).to_dict() for m in messages],
            "temperature": temperature,
        }
        if max_tokens:
            data["max_tokens"] = max_tokens

        result = self._post_json(self.API_URL, self._headers(api_key), data)

        choices = result.get("choices")
        if not choices:
            logger.error(f"{self.PROVIDER_NAME} API returned no choices")
            raise ProviderError(f"{self.PROVIDER_NAME} API returned no choices")

        try:
            text = (choices[0].get("message") or {}).get("content")
            usage = dict(result.get("usage") or {})
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            raise ProviderError(f"{self.PROVIDER_NAME} returned a malformed response") from e
        if text is not None and not isinstance(text, str):
            raise ProviderError(f"{self.PROVIDER_NAME} returned non-text content")
        return self._finish(text, usage)


class GroqProvider(OpenAICompatibleProvider):
    """Groq provider, the free system default."""

    PROVIDER_NAME = "groq"
    ENV_KEY_NAME = "GROQ_API_KEY"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"
    API_URL = "https://api.groq.com/openai/v1/chat/completions"


class OpenAIProvider(OpenAICompatibleProvider):
    PROVIDER_NAME = "openai"
    ENV_KEY_NAME = "OPENAI_API_KEY"
    DEFAULT_MODEL = "gpt-4o"
    API_URL = "https://api.openai.com/v1/chat/completions"


class OpenRouterProvider(OpenAICompatibleProvider):
    PROVIDER_NAME = "openrouter"
    ENV_KEY_NAME = "OPENROUTER_API_KEY"
    DEFAULT_MODEL = "meta-llama/llama-3.3-70b-instruct"
    API_URL = "https://openrouter.ai/api/v1/chat/completions"

    def _headers(self, api_key: str) -> dict:
        headers = super()._headers(api_key)
        headers["X-Title"] = "Scholarag"
        return headers


class KimiProvider(OpenAICompatibleProvider):
    """Kimi (Moonshot AI) provider."""

    PROVIDER_NAME = "kimi"
    ENV_KEY_NAME = "KIMI_API_KEY"
    DEFAULT_MODEL = "moonshot-v1-8k"
    API_URL = "https://api.moonshot.cn/v1/chat/completions"
