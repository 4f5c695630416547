"""Anthropic Claude provider implementation."""
import logging
from typing import List, Optional

from .base import BaseLLMProvider
from ...exceptions import ProviderError
from ...core.models import ChatMessage, ChatResponse

logger = logging.getLogger(__name__)


class ClaudeProvider(BaseLLMProvider):
    """Claude provider using the Anthropic messages API.

    The system message travels in its own field rather than in the
    message list.
    """

    PROVIDER_NAME = "claude"
    ENV_KEY_NAME = "ANTHROPIC_API_KEY"
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    DEFAULT_MAX_TOKENS = 2000

    def chat(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        api_key = self._require_key()
        model = model or self.DEFAULT_MODEL
        messages = [ChatMessage.coerce(m) for m in messages]

        logger.info(f"Generating with Claude model: {model}")

        system = "\n\n".join(m.content for m in messages if m.role == "system")
        headers = {
            "x-api-key": api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }
        data = {
            "model": model,
            "messages": [m.to_dict() for m in messages if m.role != "system"],
            "temperature": temperature,
            "max_tokens": max_tokens or self.DEFAULT_MAX_TOKENS,
        }
        if system:
            data["system"] = system

        result = self._post_json(self.API_URL, headers, data)

        try:
            text = "".join(
                block.get("text", "")
                for block in result.get("content") or []
                if block.get("type", "text") == "text"
            )

            usage = result.get("usage") or {}
            if usage:
                usage = {
                    "prompt_tokens": usage.get("input_tokens", 0),
                    "completion_tokens": usage.get("output_tokens", 0),
                    "total_tokens": usage.get("input_tokens", 0) + usage.get("output_tokens", 0),
                }
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError("Claude returned a malformed response") from e
        return self._finish(text, usage)
