"""Scholarag - Retrieval-augmented question answering over academic documents.

A Python library for:
- Chunking and embedding uploaded documents
- Hybrid keyword + semantic retrieval
- Page citations resolved against retrieved sources
- Routing questions across language-model providers with fallback
- Encrypted storage of user provider keys
"""

__version__ = "0.1.0"

from .config import Config
from .exceptions import (
    ScholaragError,
    ConfigurationError,
    InvalidInput,
    StorageError,
    ProviderError,
    RateLimitError,
    EmbeddingUnavailable,
    ProviderDispatchError,
    NoChunksFound,
    DecryptionError,
)
from .core.models import (
    AskResult,
    Chunk,
    Citation,
    Feature,
    FeaturePreference,
    IngestResult,
    RetrievalResult,
    ScoredChunk,
)
from .assistant import DocumentAssistant

__all__ = [
    "DocumentAssistant",
    "Config",
    "AskResult",
    "Chunk",
    "Citation",
    "Feature",
    "FeaturePreference",
    "IngestResult",
    "RetrievalResult",
    "ScoredChunk",
    "ScholaragError",
    "ConfigurationError",
    "InvalidInput",
    "StorageError",
    "ProviderError",
    "RateLimitError",
    "EmbeddingUnavailable",
    "ProviderDispatchError",
    "NoChunksFound",
    "DecryptionError",
]
