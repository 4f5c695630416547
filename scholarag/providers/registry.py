"""Provider registry: descriptors, adapter classes and rate limiters."""
import logging
import threading
from typing import Dict, List, Optional, Tuple, Type

from ..core.models import ProviderDescriptor
from ..exceptions import ConfigurationError
from ..utils.rate_limiter import RateLimiter
from .llm import (
    BaseLLMProvider,
    ClaudeProvider,
    DeepSeekProvider,
    GeminiProvider,
    GroqProvider,
    KimiProvider,
    OpenAIProvider,
    OpenRouterProvider,
    PerplexityProvider,
)

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps provider names to descriptors and adapter classes.

    Exactly one registered provider may be the system default. Adapters are
    built per request with the credential resolved for that request; the
    platform key configured for a provider is used when no user key is given.

    Args:
        timeout: Request timeout handed to every adapter
    """

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self._entries: Dict[str, Tuple[ProviderDescriptor, Type[BaseLLMProvider]]] = {}
        self._platform_keys: Dict[str, Optional[str]] = {}
        self._limiters: Dict[str, RateLimiter] = {}
        self._lock = threading.Lock()

    def register(
        self,
        descriptor: ProviderDescriptor,
        adapter_class: Type[BaseLLMProvider],
        platform_key: Optional[str] = None,
    ) -> None:
        """Register a provider.

        Raises:
            ConfigurationError: If the name is taken, a second system default
                is registered, or the default model is not in the catalog
        """
        if descriptor.default_model not in descriptor.supported_models:
            raise ConfigurationError(
                f"Default model {descriptor.default_model} of {descriptor.name} "
                "is not in its supported models"
            )

        with self._lock:
            if descriptor.name in self._entries:
                raise ConfigurationError(f"Provider already registered: {descriptor.name}")
            if descriptor.is_system_default:
                current = self._find_default()
                if current is not None:
                    raise ConfigurationError(
                        f"{descriptor.name} cannot be system default; "
                        f"{current.name} already is"
                    )

            self._entries[descriptor.name] = (descriptor, adapter_class)
            self._platform_keys[descriptor.name] = platform_key
            if descriptor.rate_limit_per_minute:
                self._limiters[descriptor.name] = RateLimiter(
                    descriptor.name, descriptor.rate_limit_per_minute, 60
                )

        logger.debug(f"Registered provider {descriptor.name}")

    def _find_default(self) -> Optional[ProviderDescriptor]:
        for descriptor, _ in self._entries.values():
            if descriptor.is_system_default:
                return descriptor
        return None

    def get(self, name: str) -> Optional[ProviderDescriptor]:
        entry = self._entries.get(name)
        return entry[0] if entry else None

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def descriptors(self) -> List[ProviderDescriptor]:
        return [descriptor for descriptor, _ in self._entries.values()]

    @property
    def system_default(self) -> ProviderDescriptor:
        """The system default provider.

        Raises:
            ConfigurationError: If none is registered
        """
        descriptor = self._find_default()
        if descriptor is None:
            raise ConfigurationError("No system default provider registered")
        return descriptor

    def has_platform_key(self, name: str) -> bool:
        return bool(self._platform_keys.get(name))

    def rate_limiter(self, name: str) -> Optional[RateLimiter]:
        return self._limiters.get(name)

    def create_adapter(
        self,
        name: str,
        api_key: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> BaseLLMProvider:
        """Build a fresh adapter for one request.

        Args:
            name: Provider name
            api_key: User credential; the platform key is used when omitted
            deadline: time.monotonic() value after which the adapter sends nothing

        Raises:
            ConfigurationError: If the provider is not registered
        """
        entry = self._entries.get(name)
        if entry is None:
            raise ConfigurationError(f"Unknown provider: {name}")

        _, adapter_class = entry
        return adapter_class(
            api_key=api_key or self._platform_keys.get(name),
            timeout=self.timeout,
            rate_limiter=self._limiters.get(name),
            deadline=deadline,
        )


# name -> (display name, adapter class, config key attribute, models, rate limit)
PROVIDER_CATALOG = {
    "groq": (
        "Groq (Free)",
        GroqProvider,
        "groq_api_key",
        ["llama-3.3-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768"],
        None,
    ),
    "openai": (
        "OpenAI",
        OpenAIProvider,
        "openai_api_key",
        ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
        None,
    ),
    "claude": (
        "Claude (Anthropic)",
        ClaudeProvider,
        "anthropic_api_key",
        [
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
        ],
        None,
    ),
    "gemini": (
        "Google Gemini",
        GeminiProvider,
        "gemini_api_key",
        ["gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"],
        None,
    ),
    "openrouter": (
        "OpenRouter",
        OpenRouterProvider,
        "openrouter_api_key",
        [
            "meta-llama/llama-3.3-70b-instruct",
            "anthropic/claude-3.5-sonnet",
            "openai/gpt-4o",
            "google/gemini-pro-1.5",
        ],
        None,
    ),
    "kimi": (
        "Kimi (Moonshot AI)",
        KimiProvider,
        "kimi_api_key",
        ["moonshot-v1-8k", "moonshot-v1-32k", "moonshot-v1-128k"],
        None,
    ),
    "deepseek": (
        "DeepSeek",
        DeepSeekProvider,
        "deepseek_api_key",
        ["deepseek-chat", "deepseek-reasoner"],
        30,
    ),
    "perplexity": (
        "Perplexity",
        PerplexityProvider,
        "perplexity_api_key",
        ["sonar", "sonar-pro", "sonar-reasoning", "sonar-deep-research"],
        5,
    ),
}


def build_default_registry(config) -> ProviderRegistry:
    """Register every known provider with the platform keys from config.

    The provider named by config.system_default_provider is the system
    default and the only one usable without a user credential.

    Raises:
        ConfigurationError: If the configured system default is unknown
    """
    default_name = config.system_default_provider
    if default_name not in PROVIDER_CATALOG:
        raise ConfigurationError(f"Unknown system default provider: {default_name}")

    registry = ProviderRegistry(timeout=config.request_timeout)
    for name, (display_name, adapter_class, key_attr, models, rate_limit) in PROVIDER_CATALOG.items():
        is_default = name == default_name
        registry.register(
            ProviderDescriptor(
                name=name,
                display_name=display_name,
                supported_models=list(models),
                default_model=adapter_class.DEFAULT_MODEL,
                requires_credential=not is_default,
                is_system_default=is_default,
                rate_limit_per_minute=rate_limit,
            ),
            adapter_class,
            platform_key=getattr(config, key_attr, None),
        )

    if not registry.has_platform_key(default_name):
        logger.warning(f"System default provider {default_name} has no platform key configured")
    return registry
