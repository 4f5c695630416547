"""Routes chat requests to the provider a user prefers, with fallback."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, List, Optional

from ..core.models import (
    ChatMessage,
    ChatResponse,
    Feature,
    FeaturePreference,
    ProviderDescriptor,
    RoutingResult,
    utc_now,
)
from ..exceptions import DecryptionError, ProviderDispatchError, ProviderError
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)

USAGE_LOG_TABLE = "model_usage_logs"


@dataclass
class RouteSelection:
    """Provider, model and options chosen for one request."""
    provider: ProviderDescriptor
    model: str
    use_custom_credential: bool = False
    fallback_enabled: bool = True
    source: str = "system_default"


class ModelRouter:
    """Chooses a provider per request and dispatches to it.

    Selection order: the user's preference for the feature, then their
    global default preference, then the registry's system default. If the
    chosen provider fails and fallback is enabled, the request is retried
    once on the system default with the platform key.

    Args:
        registry: Provider registry
        preferences: PreferenceStore, or None to always use the system default
        credentials: CredentialStore for user keys, or None
        record_store: Record store receiving usage logs, or None
        request_timeout: Deadline in seconds for one provider call
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        preferences: Optional[Any] = None,
        credentials: Optional[Any] = None,
        record_store: Optional[Any] = None,
        request_timeout: float = 60.0,
    ):
        self.registry = registry
        self.preferences = preferences
        self.credentials = credentials
        self.record_store = record_store
        self.request_timeout = request_timeout

    def _lookup_preference(self, user_id: str, feature: str) -> Optional[FeaturePreference]:
        if self.preferences is None:
            return None
        preference = self.preferences.get_preference(user_id, feature)
        if preference is None and feature != Feature.GLOBAL_DEFAULT.value:
            preference = self.preferences.get_preference(user_id, Feature.GLOBAL_DEFAULT.value)
        return preference

    def select(self, user_id: str, feature: str) -> RouteSelection:
        """Resolve which provider and model a request should use."""
        default = self.registry.system_default
        preference = self._lookup_preference(user_id, feature)

        if preference is None:
            return RouteSelection(provider=default, model=default.default_model)

        provider = self.registry.get(preference.preferred_provider)
        if provider is None:
            logger.warning(
                f"Preferred provider {preference.preferred_provider} is not registered; "
                f"using {default.name}"
            )
            return RouteSelection(
                provider=default,
                model=default.default_model,
                fallback_enabled=preference.fallback_enabled,
            )

        model = provider.resolve_model(preference.preferred_model)
        if preference.preferred_model and model != preference.preferred_model:
            logger.warning(
                f"Model {preference.preferred_model} is not offered by {provider.name}; "
                f"using {model}"
            )

        return RouteSelection(
            provider=provider,
            model=model,
            use_custom_credential=preference.use_custom_credential,
            fallback_enabled=preference.fallback_enabled,
            source=preference.feature,
        )

    def _resolve_credential(self, user_id: str, provider_name: str) -> Optional[str]:
        """Decrypt the user's active key for a provider, or None."""
        if self.credentials is None:
            return None
        try:
            secret = self.credentials.get_active_secret(user_id, provider_name)
        except DecryptionError as e:
            logger.warning(f"Stored {provider_name} key for user {user_id} could not be decrypted: {e}")
            return None
        if secret is None:
            logger.warning(f"User {user_id} has no active {provider_name} key; using platform key")
        return secret

    def _dispatch(
        self,
        provider_name: str,
        api_key: Optional[str],
        messages: List[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
    ) -> ChatResponse:
        """Call one provider under the request deadline.

        The adapter carries the same deadline, so a call abandoned here
        never sends its HTTP request once the deadline has passed.

        Raises:
            ProviderError: If the call fails or misses the deadline
        """
        deadline = time.monotonic() + self.request_timeout
        adapter = self.registry.create_adapter(provider_name, api_key, deadline=deadline)
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(adapter.chat, messages, model, temperature, max_tokens)
            return future.result(timeout=self.request_timeout)
        except FuturesTimeoutError as e:
            future.cancel()
            raise ProviderError(
                f"{provider_name} did not answer within {self.request_timeout}s"
            ) from e
        finally:
            executor.shutdown(wait=False)

    def _log_usage(
        self,
        user_id: str,
        feature: str,
        provider_name: str,
        model: str,
        success: bool,
        latency_ms: int,
        usage: Optional[dict] = None,
        error: Optional[str] = None,
        used_custom_credential: bool = False,
    ) -> None:
        if self.record_store is None:
            return
        record = {
            "user_id": user_id,
            "feature": feature,
            "provider_name": provider_name,
            "model_name": model,
            "success": success,
            "latency_ms": latency_ms,
            "tokens_used": (usage or {}).get("total_tokens"),
            "error_message": error,
            "used_custom_credential": used_custom_credential,
            "created_at": utc_now(),
        }
        try:
            self.record_store.put(USAGE_LOG_TABLE, record)
        except Exception as e:
            logger.warning(f"Failed to log model usage: {e}")

    def _attempt(
        self,
        user_id: str,
        feature: str,
        provider_name: str,
        model: str,
        api_key: Optional[str],
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: Optional[int],
    ) -> RoutingResult:
        start = time.monotonic()
        try:
            response = self._dispatch(provider_name, api_key, messages, model, temperature, max_tokens)
        except ProviderError as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            self._log_usage(
                user_id, feature, provider_name, model, False, latency_ms,
                error=str(e), used_custom_credential=api_key is not None,
            )
            raise

        latency_ms = int((time.monotonic() - start) * 1000)
        self._log_usage(
            user_id, feature, provider_name, model, True, latency_ms,
            usage=response.usage, used_custom_credential=api_key is not None,
        )
        return RoutingResult(
            text=response.text,
            provider_used=provider_name,
            model_used=model,
            usage=response.usage,
            latency_ms=latency_ms,
            used_custom_credential=api_key is not None,
        )

    def route(
        self,
        user_id: str,
        feature: str,
        messages: List[Any],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> RoutingResult:
        """Answer a conversation with the user's preferred provider.

        Args:
            user_id: Authenticated user
            feature: Feature name (e.g. "chat")
            messages: ChatMessage objects or role/content dicts
            temperature: Generation temperature
            max_tokens: Maximum tokens to generate

        Returns:
            RoutingResult naming the provider and model that answered

        Raises:
            ProviderDispatchError: If the request failed and no fallback
                was possible or the fallback failed too
        """
        if isinstance(feature, Feature):
            feature = feature.value
        messages = [ChatMessage.coerce(m) for m in messages]

        selection = self.select(user_id, feature)
        provider_name = selection.provider.name
        default = self.registry.system_default

        api_key = None
        if selection.use_custom_credential:
            api_key = self._resolve_credential(user_id, provider_name)

        logger.info(f"Routing {feature} for user {user_id} to {provider_name}/{selection.model}")

        try:
            return self._attempt(
                user_id, feature, provider_name, selection.model, api_key,
                messages, temperature, max_tokens,
            )
        except ProviderError as e:
            first_error = e

        if not selection.fallback_enabled or provider_name == default.name:
            logger.error(f"{provider_name} failed with no fallback available: {first_error}")
            raise ProviderDispatchError(
                f"{provider_name} request failed: {first_error}",
                provider=provider_name,
                model=selection.model,
                attempts=[provider_name],
            ) from first_error

        logger.warning(f"{provider_name} failed ({first_error}); falling back to {default.name}")
        try:
            result = self._attempt(
                user_id, feature, default.name, default.default_model, None,
                messages, temperature, max_tokens,
            )
        except ProviderError as e:
            logger.error(f"Fallback provider {default.name} also failed: {e}")
            raise ProviderDispatchError(
                f"{provider_name} failed ({first_error}) and fallback {default.name} failed ({e})",
                provider=default.name,
                model=default.default_model,
                attempts=[provider_name, default.name],
            ) from e

        result.fell_back = True
        return result
