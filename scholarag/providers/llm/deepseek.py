"""DeepSeek LLM provider implementation."""
import logging

from .openai_compatible import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek LLM provider.

    Uses the DeepSeek chat-completions API. The registry gives it a shared
    limiter of 30 calls per minute.
    """

    PROVIDER_NAME = "deepseek"
    ENV_KEY_NAME = "DEEPSEEK_API_KEY"
    DEFAULT_MODEL = "deepseek-chat"
    API_URL = "https://api.deepseek.com/chat/completions"
