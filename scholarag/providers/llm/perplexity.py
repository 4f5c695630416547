"""Perplexity LLM provider implementation."""
import logging
import re

from .openai_compatible import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


class PerplexityProvider(OpenAICompatibleProvider):
    """Perplexity LLM provider.

    Supports models like "sonar" and "sonar-reasoning". Reasoning models
    prefix their answer with a <think> block, which is removed.
    """

    PROVIDER_NAME = "perplexity"
    ENV_KEY_NAME = "PERPLEXITY_API_KEY"
    DEFAULT_MODEL = "sonar"
    API_URL = "https://api.perplexity.ai/chat/completions"

    def _post_process_text(self, text: str) -> str:
        """Post-process generated text.

        Removes <think>...</think> reasoning blocks.

        Args:
            text: Raw generated text

        Returns:
            Post-processed text
        """
        if not text:
            return text

        text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL)
        return text.strip()
