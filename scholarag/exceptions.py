"""Custom exceptions for Scholarag."""
from typing import List, Optional


class ScholaragError(Exception):
    """Base exception for all Scholarag errors."""

    pass


class ConfigurationError(ScholaragError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidInput(ScholaragError, ValueError):
    """Raised when caller input is rejected (empty query, bad top_k, ...)."""

    pass


class StorageError(ScholaragError):
    """Raised when the chunk store or record store cannot complete a call."""

    pass


class ProviderError(ScholaragError):
    """Raised when an external model provider call fails."""

    pass


class RateLimitError(ProviderError):
    """Raised when a provider answers with a rate limit response."""

    def __init__(self, message: str, retry_after: float = 0):
        super().__init__(message)
        self.retry_after = retry_after


class EmbeddingUnavailable(ProviderError):
    """Raised when the embedding backend cannot produce a vector."""

    pass


class ProviderDispatchError(ProviderError):
    """Raised when a routed chat request failed, including its fallback.

    Attributes:
        provider: Name of the last provider attempted
        model: Model used on the last attempt
        attempts: Provider names tried, in order
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        attempts: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.attempts = attempts or []


class NoChunksFound(ScholaragError):
    """Raised when a document has no stored chunks yet."""

    def __init__(self, document_id: str):
        super().__init__(
            f"No chunks found for document {document_id}. "
            "Upload and process the document first."
        )
        self.document_id = document_id


class DecryptionError(ScholaragError):
    """Raised when a stored credential cannot be decrypted or verified."""

    pass
