"""Data models for Scholarag."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any


class Feature(Enum):
    """Logical features a user can attach a model preference to."""
    CHAT = "chat"
    PARAPHRASE = "paraphrase"
    SUMMARIZE = "summarize"
    TRANSLATE = "translate"
    CITATION = "citation"
    ACADEMIC_SEARCH = "academic_search"
    PLAGIARISM_CHECK = "plagiarism_check"
    AI_DETECTION = "ai_detection"
    PDF_CHAT = "pdf_chat"
    WRITING_ASSISTANT = "writing_assistant"
    GLOBAL_DEFAULT = "global_default"


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Chunk:
    """A contiguous slice of a document's text.

    Attributes:
        chunk_id: Unique identifier "{document_id}:g{generation}:c{chunk_index}"
        document_id: Parent document
        chunk_index: Ordinal position within the document (0, 1, 2, ...)
        text: Chunk text content
        file_id: Parent file, when the document came from an uploaded file
        page_number: Page the chunk mostly falls on (best-effort hint)
        embedding: Embedding vector, None until computed or if embedding failed
        char_count: Number of characters in the chunk
        start_offset: Offset of the first character in the document text
        end_offset: Offset one past the last character in the document text
        generation: Ingestion generation; re-ingestion writes a new one
    """
    chunk_id: str
    document_id: str
    chunk_index: int
    text: str
    file_id: Optional[str] = None
    page_number: Optional[int] = None
    embedding: Optional[List[float]] = None
    char_count: int = 0
    start_offset: int = 0
    end_offset: int = 0
    generation: int = 1

    def __post_init__(self):
        """Calculate character count and end offset."""
        if self.char_count == 0:
            self.char_count = len(self.text)
        if self.end_offset == 0:
            self.end_offset = self.start_offset + len(self.text)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    @classmethod
    def create_id(cls, document_id: str, generation: int, chunk_index: int) -> str:
        """Create standardized chunk ID."""
        return f"{document_id}:g{generation}:c{chunk_index}"

    def get_preview(self, max_chars: int = 200) -> str:
        """Get text preview for this chunk."""
        if len(self.text) <= max_chars:
            return self.text
        return self.text[:max_chars] + "..."


@dataclass
class ScoredChunk:
    """A chunk with its per-query relevance scores. Never persisted.

    Attributes:
        chunk: The scored chunk
        lexical_score: Summed, length-normalized query term frequency
        semantic_score: Cosine similarity between query and chunk embeddings
        combined_score: Weighted sum of both scores
    """
    chunk: Chunk
    lexical_score: float
    semantic_score: float
    combined_score: float

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def page_number(self) -> Optional[int]:
        return self.chunk.page_number

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk.chunk_id,
            "chunk_index": self.chunk.chunk_index,
            "page_number": self.chunk.page_number,
            "lexical_score": self.lexical_score,
            "semantic_score": self.semantic_score,
            "combined_score": self.combined_score,
            "text": self.chunk.text,
        }


@dataclass
class RetrievalResult:
    """Ranked chunks plus what the retriever did to produce them.

    Attributes:
        chunks: Ranked chunks, best first
        top_k_requested: top_k asked for by the caller
        top_k_applied: top_k actually used after clamping
        clamped: True when top_k_requested exceeded the configured maximum
        semantic_available: False when the query could not be embedded and
            ranking fell back to lexical scores only
    """
    chunks: List[ScoredChunk]
    top_k_requested: int
    top_k_applied: int
    clamped: bool = False
    semantic_available: bool = True

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self):
        return iter(self.chunks)


@dataclass
class Citation:
    """A page reference in an answer, resolved to a source chunk.

    Attributes:
        source_chunk_id: Chunk the marker resolved to
        page_number: Page number named in the marker
        excerpt: Leading text of the source chunk
        score: Retrieval score of the source chunk
    """
    source_chunk_id: str
    page_number: int
    excerpt: str
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_chunk_id": self.source_chunk_id,
            "page_number": self.page_number,
            "excerpt": self.excerpt,
            "score": self.score,
        }


@dataclass
class ProviderDescriptor:
    """Static description of one language-model backend.

    Attributes:
        name: Registry key (e.g. "groq")
        display_name: Human-readable name
        supported_models: Models this provider accepts
        default_model: Model used when none is requested
        requires_credential: True if the provider only works with a user key
        is_system_default: True for the one provider used as fallback
        rate_limit_per_minute: Calls allowed per minute, None for unlimited
    """
    name: str
    display_name: str
    supported_models: List[str]
    default_model: str
    requires_credential: bool = True
    is_system_default: bool = False
    rate_limit_per_minute: Optional[int] = None

    def resolve_model(self, model: Optional[str]) -> str:
        """Return model if this provider supports it, else the default model."""
        if model and model in self.supported_models:
            return model
        return self.default_model


@dataclass
class FeaturePreference:
    """A user's provider choice for one feature."""
    user_id: str
    feature: str
    preferred_provider: str
    preferred_model: Optional[str] = None
    use_custom_credential: bool = False
    fallback_enabled: bool = True
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "feature": self.feature,
            "preferred_provider": self.preferred_provider,
            "preferred_model": self.preferred_model,
            "use_custom_credential": self.use_custom_credential,
            "fallback_enabled": self.fallback_enabled,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeaturePreference":
        return cls(**{k: v for k, v in data.items() if k in cls.__annotations__})


@dataclass
class CredentialRecord:
    """An encrypted, user-supplied provider API key.

    The plaintext is never stored; masked_secret is computed once at save time
    so listing keys never requires decryption.
    """
    credential_id: str
    user_id: str
    provider_name: str
    encrypted_secret: str
    masked_secret: str
    is_active: bool = True
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential_id": self.credential_id,
            "user_id": self.user_id,
            "provider_name": self.provider_name,
            "encrypted_secret": self.encrypted_secret,
            "masked_secret": self.masked_secret,
            "is_active": self.is_active,
            "created_at": self.created_at,
        }

    def to_display_dict(self) -> Dict[str, Any]:
        """Dictionary safe to show to the user (no ciphertext)."""
        data = self.to_dict()
        del data["encrypted_secret"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        return cls(**{k: v for k, v in data.items() if k in cls.__annotations__})


@dataclass
class ChatMessage:
    """One message of a chat conversation."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def coerce(cls, message: Any) -> "ChatMessage":
        """Accept ChatMessage instances or {"role", "content"} dicts."""
        if isinstance(message, cls):
            return message
        return cls(role=message["role"], content=message["content"])


@dataclass
class ChatResponse:
    """Complete answer returned by a provider adapter."""
    text: str
    usage: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> Optional[int]:
        return self.usage.get("total_tokens")


@dataclass
class RoutingResult:
    """Answer from the router plus which backend actually produced it."""
    text: str
    provider_used: str
    model_used: str
    fell_back: bool = False
    usage: Dict[str, Any] = field(default_factory=dict)
    latency_ms: int = 0
    used_custom_credential: bool = False


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""
    document_id: str
    chunks_created: int
    generation: int
    embedded_chunks: int = 0
    failed_embeddings: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "chunks_created": self.chunks_created,
            "generation": self.generation,
            "embedded_chunks": self.embedded_chunks,
            "failed_embeddings": self.failed_embeddings,
        }


@dataclass
class AskResult:
    """Answer to a question about a document.

    Attributes:
        answer: Generated answer text
        citations: Page references resolved against the context chunks
        provider_used: Provider that produced the answer
        model_used: Model that produced the answer
        fell_back: True if the preferred provider failed and the system
            default answered instead
        usage: Token usage reported by the provider
        metadata: Retrieval details (top_k applied, clamping, lexical-only)
    """
    answer: str
    citations: List[Citation]
    provider_used: str
    model_used: str
    fell_back: bool = False
    usage: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
            "provider_used": self.provider_used,
            "model_used": self.model_used,
            "fell_back": self.fell_back,
            "usage": self.usage,
            "metadata": self.metadata,
        }
