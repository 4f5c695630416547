"""Google Gemini LLM provider implementation."""
import logging
from typing import List, Optional

from .base import BaseLLMProvider
from ...core.models import ChatMessage, ChatResponse
from ...exceptions import ProviderError

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    """Google Gemini LLM provider.

    Calls the generateContent REST endpoint directly. The
    google-generativeai client keeps its key in process-wide state, which
    does not fit per-request user keys, so it is only used for embeddings.
    """

    PROVIDER_NAME = "gemini"
    ENV_KEY_NAME = "GEMINI_API_KEY"
    DEFAULT_MODEL = "gemini-2.0-flash-exp"
    API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

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

        logger.info(f"Generating with Gemini model: {model}")

        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        data = {
            "contents": contents,
            "generationConfig": {"temperature": temperature},
        }
        if max_tokens:
            data["generationConfig"]["maxOutputTokens"] = max_tokens

        system = "\n\n".join(m.content for m in messages if m.role == "system")
        if system:
            data["systemInstruction"] = {"parts": [{"text": system}]}

        url = f"{self.API_BASE}/{model}:generateContent"
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        result = self._post_json(url, headers, data)

        candidates = result.get("candidates")
        if not candidates:
            feedback = result.get("promptFeedback", {})
            logger.error(f"Gemini returned no candidates: {feedback}")
            raise ProviderError("Gemini API returned no candidates")

        try:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts)

            metadata = result.get("usageMetadata") or {}
            usage = {}
            if metadata:
                usage = {
                    "prompt_tokens": metadata.get("promptTokenCount", 0),
                    "completion_tokens": metadata.get("candidatesTokenCount", 0),
                    "total_tokens": metadata.get("totalTokenCount", 0),
                }
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderError("Gemini returned a malformed response") from e
        return self._finish(text, usage)
