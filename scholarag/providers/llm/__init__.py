"""LLM provider implementations."""
from .base import BaseLLMProvider
from .claude import ClaudeProvider
from .deepseek import DeepSeekProvider
from .gemini import GeminiProvider
from .openai_compatible import (
    GroqProvider,
    KimiProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouterProvider,
)
from .perplexity import PerplexityProvider

__all__ = [
    "BaseLLMProvider",
    "ClaudeProvider",
    "DeepSeekProvider",
    "GeminiProvider",
    "GroqProvider",
    "KimiProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "PerplexityProvider",
]
