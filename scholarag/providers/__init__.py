"""Language-model providers, registry and router."""
from .base import BaseProvider
from .registry import PROVIDER_CATALOG, ProviderRegistry, build_default_registry
from .router import ModelRouter, RouteSelection

__all__ = [
    "BaseProvider",
    "PROVIDER_CATALOG",
    "ProviderRegistry",
    "build_default_registry",
    "ModelRouter",
    "RouteSelection",
]
