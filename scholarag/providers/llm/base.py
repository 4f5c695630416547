"""Base LLM provider interface."""
import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional

import requests

from ..base import BaseProvider
from ...core.models import ChatMessage, ChatResponse
from ...exceptions import ProviderError, RateLimitError

logger = logging.getLogger(__name__)


class BaseLLMProvider(BaseProvider):
    """Abstract base class for chat-completion providers.

    Subclasses set PROVIDER_NAME, ENV_KEY_NAME and DEFAULT_MODEL and
    implement chat().
    """

    PROVIDER_NAME = "base"
    ENV_KEY_NAME = "API_KEY"
    DEFAULT_MODEL = ""

    @abstractmethod
    def chat(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatResponse:
        """Send a conversation and return the complete answer.

        Args:
            messages: Conversation, system message first if any
            model: Optional specific model name
            temperature: Generation temperature (0.0-2.0)
            max_tokens: Maximum tokens to generate

        Returns:
            ChatResponse with the answer text and token usage

        Raises:
            ProviderError: If the key is missing or the call fails
            RateLimitError: If the provider answers with HTTP 429
        """
        pass

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Generate text from a single prompt."""
        messages = [ChatMessage(role="user", content=prompt)]
        return self.chat(messages, model=model, temperature=temperature, max_tokens=max_tokens).text

    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        return self.DEFAULT_MODEL

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProviderError(f"{self.ENV_KEY_NAME} not configured")
        return self.api_key

    def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded response.

        Raises:
            RateLimitError: On HTTP 429
            ProviderError: On any other non-2xx status, transport error,
                timeout, passed deadline or a body that is not a JSON object
        """
        self._acquire_rate_limit()
        name = self.PROVIDER_NAME
        timeout = self._remaining_timeout()

        try:
            response = requests.post(url, headers=headers, json=payload, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise ProviderError(f"{name} request timed out after {timeout:.1f}s") from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{name} request failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "0")
            try:
                retry_seconds = float(retry_after)
            except ValueError:
                retry_seconds = 0.0
            raise RateLimitError(f"{name} rate limit exceeded", retry_after=retry_seconds)

        if not 200 <= response.status_code < 300:
            raise ProviderError(f"{name} API error {response.status_code}: {response.text[:300]}")

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderError(f"{name} returned invalid JSON") from e

        if not isinstance(result, dict):
            raise ProviderError(f"{name} returned a {type(result).__name__} instead of a JSON object")
        return result

    def _post_process_text(self, text: str) -> str:
        """Post-process generated text. Strips surrounding whitespace by default."""
        return text.strip() if text else text

    def _finish(self, text: Optional[str], usage: Dict[str, Any]) -> ChatResponse:
        text = self._post_process_text(text or "")
        if not text:
            raise ProviderError(f"{self.PROVIDER_NAME} returned an empty response")
        return ChatResponse(text=text, usage=usage)
