"""Embedding backends and vector similarity."""
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import google.generativeai as genai
import numpy as np
import requests

from ..exceptions import ConfigurationError, EmbeddingUnavailable

logger = logging.getLogger(__name__)


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector is missing, has zero norm, or the
    dimensions differ. The result is clipped to [-1, 1].
    """
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


class BaseEmbedder(ABC):
    """Maps text to a fixed-dimension vector."""

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise ConfigurationError(f"Embedding dimension must be positive, got {dimension}")
        self.dimension = dimension

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """Embed a document chunk.

        Raises:
            EmbeddingUnavailable: If the backend cannot produce a vector
        """
        pass

    def embed_query(self, text: str) -> List[float]:
        """Embed a search query. Defaults to embed()."""
        return self.embed(text)

    def _check_dimension(self, embedding: List[float], source: str) -> List[float]:
        if len(embedding) != self.dimension:
            raise EmbeddingUnavailable(
                f"{source} returned {len(embedding)} dimensions, expected {self.dimension}"
            )
        return embedding


class GeminiEmbedder(BaseEmbedder):
    """Embedding generator using the Gemini embedding model."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "models/gemini-embedding-001",
        dimension: int = 768,
        timeout: float = 60.0,
    ):
        """Initialize Gemini embedder.

        Args:
            api_key: Gemini API key
            model_name: Embedding model name
            dimension: Output dimensionality requested from the model
            timeout: Request timeout in seconds
        """
        super().__init__(dimension)
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.timeout = timeout

    def _embed(self, text: str, task_type: str) -> List[float]:
        try:
            result = genai.embed_content(
                model=self.model_name,
                content=text,
                task_type=task_type,
                output_dimensionality=self.dimension,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            raise EmbeddingUnavailable(f"Gemini embedding failed: {e}") from e

        embedding = result.get("embedding") if result else None
        if not embedding:
            raise EmbeddingUnavailable("Gemini returned no embedding")
        return self._check_dimension(list(embedding), "Gemini")

    def embed(self, text: str) -> List[float]:
        return self._embed(text, "retrieval_document")

    def embed_query(self, text: str) -> List[float]:
        return self._embed(text, "retrieval_query")


class OpenAIEmbedder(BaseEmbedder):
    """Embedding generator using the OpenAI embeddings endpoint."""

    API_URL = "https://api.openai.com/v1/embeddings"

    def __init__(
        self,
        api_key: str,
        model_name: str = "text-embedding-3-small",
        dimension: int = 1536,
        timeout: float = 60.0,
    ):
        super().__init__(dimension)
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout

    def embed(self, text: str) -> List[float]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        data = {
            "model": self.model_name,
            "input": text,
            "dimensions": self.dimension,
        }

        try:
            response = requests.post(self.API_URL, headers=headers, json=data, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as e:
            raise EmbeddingUnavailable(f"OpenAI embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingUnavailable(f"OpenAI embedding returned invalid JSON: {e}") from e

        items = result.get("data") or []
        if not items or not items[0].get("embedding"):
            raise EmbeddingUnavailable("OpenAI returned no embedding")
        return self._check_dimension(list(items[0]["embedding"]), "OpenAI")


class HashEmbedder(BaseEmbedder):
    """Deterministic feature-hashing embedder.

    Each lower-cased word is hashed with SHA-256 into one of ``dimension``
    buckets with a sign taken from the hash; the vector is L2-normalised.
    Texts sharing words get positive similarity, which is enough for tests
    and offline use. It is never used unless configured explicitly.
    """

    def __init__(self, dimension: int = 256):
        super().__init__(dimension)

    def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimension, dtype=float)
        for token in re.findall(r"\w+", text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()


def create_embedder(config) -> BaseEmbedder:
    """Build the embedder selected by config.embedding_backend.

    Args:
        config: Config instance

    Returns:
        Embedder instance

    Raises:
        ConfigurationError: If the backend is unknown or its key is missing
    """
    backend = (config.embedding_backend or "").lower()

    if backend == "gemini":
        return GeminiEmbedder(
            api_key=config.gemini_api_key,
            model_name=config.embedding_model,
            dimension=config.embedding_dimension,
            timeout=config.request_timeout,
        )
    if backend == "openai":
        model_name = config.embedding_model
        if model_name.startswith("models/"):
            model_name = "text-embedding-3-small"
        return OpenAIEmbedder(
            api_key=config.openai_api_key,
            model_name=model_name,
            dimension=config.embedding_dimension,
            timeout=config.request_timeout,
        )
    if backend == "hash":
        logger.warning("Using hash embeddings; semantic scores are only approximate")
        return HashEmbedder(dimension=config.embedding_dimension)

    raise ConfigurationError(f"Unknown embedding backend: {config.embedding_backend}")
