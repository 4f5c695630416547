"""Core data models."""
from .models import (
    AskResult,
    ChatMessage,
    ChatResponse,
    Chunk,
    Citation,
    CredentialRecord,
    Feature,
    FeaturePreference,
    IngestResult,
    ProviderDescriptor,
    RetrievalResult,
    RoutingResult,
    ScoredChunk,
)

__all__ = [
    "AskResult",
    "ChatMessage",
    "ChatResponse",
    "Chunk",
    "Citation",
    "CredentialRecord",
    "Feature",
    "FeaturePreference",
    "IngestResult",
    "ProviderDescriptor",
    "RetrievalResult",
    "RoutingResult",
    "ScoredChunk",
]
