"""Configuration management for Scholarag."""
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from .exceptions import ConfigurationError


@dataclass
class Config:
    """Scholarag configuration.

    Attributes:
        system_default_provider: Provider marked as system default in the registry
        groq_api_key: Platform API key for Groq (system default provider)
        openai_api_key: Platform API key for OpenAI
        anthropic_api_key: Platform API key for Anthropic Claude
        gemini_api_key: Platform API key for Google Gemini (chat and embeddings)
        openrouter_api_key: Platform API key for OpenRouter
        kimi_api_key: Platform API key for Kimi (Moonshot AI)
        deepseek_api_key: Platform API key for DeepSeek
        perplexity_api_key: Platform API key for Perplexity
        embedding_backend: Embedding backend ('gemini', 'openai', 'hash')
        embedding_model: Embedding model name for remote backends
        embedding_dimension: Vector dimensionality produced by the backend
        embedding_concurrency: Maximum chunk embeddings in flight per document
        embedding_max_retries: Attempts per chunk before giving up on its embedding
        embedding_retry_delay: Seconds to wait between embedding attempts
        chunk_size: Chunk window size in characters
        chunk_overlap: Overlap between consecutive chunks in characters
        semantic_weight: Weight of the cosine similarity score
        lexical_weight: Weight of the keyword frequency score
        min_term_length: Shortest query term counted by the lexical score
        default_top_k: Chunks returned when the caller does not ask for a number
        max_top_k: Upper bound for top_k; larger requests are clamped
        max_context_tokens: Estimated token budget for the context block
        excerpt_length: Characters kept in a citation excerpt
        request_timeout: Deadline in seconds for one provider call
        temperature: Default sampling temperature for chat requests
        max_tokens: Default completion length for chat requests
        encryption_secret: Server-side secret for the credential vault
        kdf_iterations: PBKDF2 iterations used to derive vault keys
        chunk_store_backend: Chunk store backend ('memory', 'chroma')
        chroma_path: Directory of the persistent ChromaDB database
        chroma_collection: ChromaDB collection holding chunks
        record_store_backend: Record store backend ('memory', 'sqlite')
        sqlite_path: Path of the SQLite record store
    """

    # Providers
    system_default_provider: str = "groq"
    groq_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    kimi_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None

    # Embeddings
    embedding_backend: str = "gemini"
    embedding_model: str = "models/gemini-embedding-001"
    embedding_dimension: int = 768
    embedding_concurrency: int = 5
    embedding_max_retries: int = 3
    embedding_retry_delay: float = 1.0

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Retrieval
    semantic_weight: float = 0.6
    lexical_weight: float = 0.4
    min_term_length: int = 4
    default_top_k: int = 5
    max_top_k: int = 50
    max_context_tokens: int = 3000
    excerpt_length: int = 200

    # Generation
    request_timeout: float = 60.0
    temperature: float = 0.7
    max_tokens: int = 2000

    # Credential vault
    encryption_secret: Optional[str] = None
    kdf_iterations: int = 100_000

    # Storage
    chunk_store_backend: str = "memory"
    chroma_path: str = "./chroma_scholarag"
    chroma_collection: str = "document_chunks"
    record_store_backend: str = "memory"
    sqlite_path: str = "./scholarag.db"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Config":
        """Load configuration from environment variables.

        Args:
            env_file: Path to .env file (optional)

        Returns:
            Config instance with values from environment
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            system_default_provider=os.getenv("SCHOLARAG_DEFAULT_PROVIDER", "groq"),
            groq_api_key=os.getenv("GROQ_API_KEY") or os.getenv("API_KEY_GROQ_API_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
            kimi_api_key=os.getenv("KIMI_API_KEY") or os.getenv("MOONSHOT_API_KEY"),
            deepseek_api_key=os.getenv("DEEPSEEK_API_KEY"),
            perplexity_api_key=os.getenv("PERPLEXITY_API_KEY"),
            embedding_backend=os.getenv("SCHOLARAG_EMBEDDING_BACKEND", "gemini"),
            embedding_model=os.getenv(
                "SCHOLARAG_EMBEDDING_MODEL", "models/gemini-embedding-001"
            ),
            embedding_dimension=int(os.getenv("SCHOLARAG_EMBEDDING_DIMENSION", "768")),
            embedding_concurrency=int(os.getenv("SCHOLARAG_EMBEDDING_CONCURRENCY", "5")),
            embedding_max_retries=int(os.getenv("SCHOLARAG_EMBEDDING_MAX_RETRIES", "3")),
            embedding_retry_delay=float(os.getenv("SCHOLARAG_EMBEDDING_RETRY_DELAY", "1.0")),
            chunk_size=int(os.getenv("SCHOLARAG_CHUNK_SIZE", "1000")),
            chunk_overlap=int(os.getenv("SCHOLARAG_CHUNK_OVERLAP", "200")),
            semantic_weight=float(os.getenv("SCHOLARAG_SEMANTIC_WEIGHT", "0.6")),
            lexical_weight=float(os.getenv("SCHOLARAG_LEXICAL_WEIGHT", "0.4")),
            min_term_length=int(os.getenv("SCHOLARAG_MIN_TERM_LENGTH", "4")),
            default_top_k=int(os.getenv("SCHOLARAG_TOP_K", "5")),
            max_top_k=int(os.getenv("SCHOLARAG_MAX_TOP_K", "50")),
            max_context_tokens=int(os.getenv("SCHOLARAG_MAX_CONTEXT_TOKENS", "3000")),
            excerpt_length=int(os.getenv("SCHOLARAG_EXCERPT_LENGTH", "200")),
            request_timeout=float(os.getenv("SCHOLARAG_REQUEST_TIMEOUT", "60")),
            temperature=float(os.getenv("SCHOLARAG_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("SCHOLARAG_MAX_TOKENS", "2000")),
            encryption_secret=os.getenv("ENCRYPTION_SECRET_KEY"),
            kdf_iterations=int(os.getenv("SCHOLARAG_KDF_ITERATIONS", "100000")),
            chunk_store_backend=os.getenv("SCHOLARAG_CHUNK_STORE", "memory"),
            chroma_path=os.getenv("SCHOLARAG_CHROMA_PATH", "./chroma_scholarag"),
            chroma_collection=os.getenv("SCHOLARAG_CHROMA_COLLECTION", "document_chunks"),
            record_store_backend=os.getenv("SCHOLARAG_RECORD_STORE", "memory"),
            sqlite_path=os.getenv("SCHOLARAG_SQLITE_PATH", "./scholarag.db"),
        )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Load configuration from dictionary.

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Config instance
        """
        return cls(**{k: v for k, v in config_dict.items() if k in cls.__annotations__})

    def validate(self) -> "Config":
        """Check value ranges that would otherwise fail deep inside the pipeline.

        Returns:
            The same Config, for chaining

        Raises:
            ConfigurationError: If a value is out of range
        """
        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ConfigurationError("chunk_overlap must be in [0, chunk_size)")
        if self.semantic_weight < 0 or self.lexical_weight < 0:
            raise ConfigurationError("retrieval weights must not be negative")
        if self.embedding_concurrency < 1:
            raise ConfigurationError("embedding_concurrency must be at least 1")
        if self.embedding_max_retries < 1:
            raise ConfigurationError("embedding_max_retries must be at least 1")
        if self.default_top_k < 1 or self.max_top_k < self.default_top_k:
            raise ConfigurationError("default_top_k must be in [1, max_top_k]")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        return self
