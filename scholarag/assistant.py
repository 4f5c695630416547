"""Main DocumentAssistant class - entry point for the library."""
import logging
from typing import Any, List, Optional

from .config import Config
from .core.models import AskResult, Feature, IngestResult, RetrievalResult
from .exceptions import ConfigurationError, InvalidInput
from .providers.registry import ProviderRegistry, build_default_registry
from .providers.router import ModelRouter
from .rag.chunk_store import BaseChunkStore, create_chunk_store
from .rag.citations import CitationExtractor, build_messages, fit_context, format_context
from .rag.embeddings import BaseEmbedder, create_embedder
from .rag.ingestion import DocumentIngestor, PageInput
from .rag.retriever import HybridRetriever, RetrievalWeights
from .security.credentials import CredentialStore
from .security.vault import CredentialVault
from .storage.preferences import PreferenceStore
from .storage.record_store import BaseRecordStore, create_record_store

logger = logging.getLogger(__name__)


class DocumentAssistant:
    """Answers questions about uploaded documents with page citations.

    Example:
        >>> from scholarag import DocumentAssistant, Config
        >>> assistant = DocumentAssistant.from_config(Config.from_env())
        >>> assistant.ingest("doc-1", [(1, "First page..."), (2, "Second page...")])
        >>> result = assistant.ask("user-1", "doc-1", "What is the main finding?")
        >>> print(result.answer, [c.page_number for c in result.citations])
    """

    def __init__(
        self,
        config: Config,
        chunk_store: BaseChunkStore,
        embedder: Optional[BaseEmbedder],
        registry: ProviderRegistry,
        record_store: BaseRecordStore,
        credentials: Optional[CredentialStore] = None,
        preferences: Optional[PreferenceStore] = None,
    ):
        """Initialize the assistant from already-built components.

        Args:
            config: Configuration
            chunk_store: Where chunks are stored
            embedder: Embedding backend (None for lexical-only retrieval)
            registry: Provider registry
            record_store: Store for preferences, credentials and usage logs
            credentials: User key store (None when no vault secret is set)
            preferences: Preference store
        """
        self.config = config
        self.chunk_store = chunk_store
        self.embedder = embedder
        self.registry = registry
        self.record_store = record_store
        self.credentials = credentials
        self.preferences = preferences or PreferenceStore(record_store, registry)

        self.ingestor = DocumentIngestor(
            chunk_store,
            embedder,
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            concurrency=config.embedding_concurrency,
            max_retries=config.embedding_max_retries,
            retry_delay=config.embedding_retry_delay,
        )
        self.retriever = HybridRetriever(
            chunk_store,
            embedder,
            weights=RetrievalWeights(config.semantic_weight, config.lexical_weight),
            default_top_k=config.default_top_k,
            max_top_k=config.max_top_k,
            min_term_length=config.min_term_length,
        )
        self.router = ModelRouter(
            registry,
            preferences=self.preferences,
            credentials=credentials,
            record_store=record_store,
            request_timeout=config.request_timeout,
        )
        self.citation_extractor = CitationExtractor(excerpt_length=config.excerpt_length)

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "DocumentAssistant":
        """Wire every component from configuration.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if config is None:
            config = Config.from_env()
        config.validate()

        record_store = create_record_store(config)
        registry = build_default_registry(config)

        credentials = None
        if config.encryption_secret:
            vault = CredentialVault(config.encryption_secret, iterations=config.kdf_iterations)
            credentials = CredentialStore(record_store, vault, registry)
        else:
            logger.warning("ENCRYPTION_SECRET_KEY not set; user API keys are disabled")

        assistant = cls(
            config=config,
            chunk_store=create_chunk_store(config),
            embedder=create_embedder(config),
            registry=registry,
            record_store=record_store,
            credentials=credentials,
        )
        logger.info(
            f"DocumentAssistant initialized with {config.embedding_backend} embeddings, "
            f"{config.chunk_store_backend} chunk store and default provider "
            f"{config.system_default_provider}"
        )
        return assistant

    def require_credentials(self) -> CredentialStore:
        if self.credentials is None:
            raise ConfigurationError("ENCRYPTION_SECRET_KEY not configured")
        return self.credentials

    def ingest(
        self,
        document_id: str,
        pages: PageInput,
        file_id: Optional[str] = None,
    ) -> IngestResult:
        """Chunk, embed and store a document, replacing any earlier version.

        Args:
            document_id: Document identifier
            pages: Plain text or (page_number, page_text) pairs
            file_id: Optional source file identifier

        Returns:
            IngestResult

        Raises:
            InvalidInput: If the document has no text
        """
        return self.ingestor.ingest(document_id, pages, file_id=file_id)

    def search(
        self,
        document_id: str,
        query: str,
        top_k: Optional[int] = None,
    ) -> RetrievalResult:
        """Rank a document's chunks against a query without generating."""
        return self.retriever.retrieve(query, document_id, top_k)

    def ask(
        self,
        user_id: str,
        document_id: str,
        question: str,
        chat_history: Optional[List[Any]] = None,
        feature: str = Feature.CHAT.value,
        top_k: Optional[int] = None,
    ) -> AskResult:
        """Answer a question about a document.

        Args:
            user_id: Authenticated user
            document_id: Document to ask about
            question: The question
            chat_history: Earlier turns as ChatMessage objects or dicts
            feature: Feature name used to look up the user's model preference
            top_k: Number of chunks to retrieve

        Returns:
            AskResult with answer, citations and routing details

        Raises:
            InvalidInput: If the question is empty
            NoChunksFound: If the document was never ingested
            ProviderDispatchError: If no provider could answer
        """
        if not question or not question.strip():
            raise InvalidInput("Question must not be empty")

        retrieval = self.retriever.retrieve(question, document_id, top_k)
        context_chunks = fit_context(retrieval.chunks, self.config.max_context_tokens)
        messages = build_messages(question, format_context(context_chunks), chat_history)

        routed = self.router.route(
            user_id,
            feature,
            messages,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        citations = self.citation_extractor.extract(routed.text, context_chunks)

        logger.info(
            f"Answered question on {document_id} with {routed.provider_used}/{routed.model_used}, "
            f"{len(citations)} citations"
        )
        return AskResult(
            answer=routed.text,
            citations=citations,
            provider_used=routed.provider_used,
            model_used=routed.model_used,
            fell_back=routed.fell_back,
            usage=routed.usage,
            metadata={
                "top_k_requested": retrieval.top_k_requested,
                "top_k_applied": retrieval.top_k_applied,
                "clamped": retrieval.clamped,
                "semantic_available": retrieval.semantic_available,
                "context_chunks": len(context_chunks),
                "latency_ms": routed.latency_ms,
                "used_custom_credential": routed.used_custom_credential,
            },
        )

    def delete_document(self, document_id: str) -> int:
        """Remove a document's chunks. Returns the number removed."""
        removed = self.chunk_store.delete_by_document(document_id)
        logger.info(f"Deleted document {document_id} ({removed} chunks)")
        return removed
