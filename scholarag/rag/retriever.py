"""Hybrid lexical + semantic chunk retrieval."""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..core.models import Chunk, RetrievalResult, ScoredChunk
from ..exceptions import EmbeddingUnavailable, InvalidInput, NoChunksFound
from .chunk_store import BaseChunkStore
from .embeddings import BaseEmbedder, cosine_similarity

logger = logging.getLogger(__name__)

WORD_PATTERN = re.compile(r"\w+")


@dataclass
class RetrievalWeights:
    """Weights of the two relevance signals."""
    semantic: float = 0.6
    lexical: float = 0.4


def query_terms(query: str, min_term_length: int = 4) -> List[str]:
    """Lower-cased query words of at least min_term_length characters, deduplicated."""
    terms = []
    for word in WORD_PATTERN.findall(query.lower()):
        if len(word) >= min_term_length and word not in terms:
            terms.append(word)
    return terms


def lexical_score(terms: Sequence[str], text: str) -> float:
    """Summed term frequency normalized by the chunk's word count.

    Occurrences are counted as case-insensitive substrings, so "adapt"
    also matches inside "adaptation".
    """
    if not terms:
        return 0.0
    lowered = text.lower()
    word_count = len(WORD_PATTERN.findall(lowered))
    if word_count == 0:
        return 0.0
    return sum(lowered.count(term) for term in terms) / word_count


def rank_chunks(
    query: str,
    chunks: List[Chunk],
    query_embedding: Optional[Sequence[float]] = None,
    weights: Optional[RetrievalWeights] = None,
    top_k: int = 5,
    min_term_length: int = 4,
) -> List[ScoredChunk]:
    """Score and rank chunks against a query.

    Args:
        query: Search query
        chunks: Candidate chunks
        query_embedding: Query vector, or None for lexical-only ranking
        weights: Signal weights (defaults 0.6 semantic / 0.4 lexical)
        top_k: Number of chunks to return
        min_term_length: Shortest query word counted lexically

    Returns:
        Up to top_k scored chunks, best first. Ties keep document order.
    """
    weights = weights or RetrievalWeights()
    terms = query_terms(query, min_term_length)

    scored = []
    for chunk in chunks:
        lexical = lexical_score(terms, chunk.text)
        semantic = 0.0
        if query_embedding is not None and chunk.embedding is not None:
            semantic = cosine_similarity(query_embedding, chunk.embedding)
        scored.append(ScoredChunk(
            chunk=chunk,
            lexical_score=lexical,
            semantic_score=semantic,
            combined_score=weights.semantic * semantic + weights.lexical * lexical,
        ))

    scored.sort(key=lambda s: (-s.combined_score, s.chunk.chunk_index))
    return scored[:top_k]


class HybridRetriever:
    """Retrieves the most relevant chunks of one document.

    Args:
        chunk_store: Store holding the document's chunks
        embedder: Embedder used for the query
        weights: Signal weights
        default_top_k: top_k used when the caller passes None
        max_top_k: Upper bound; larger requests are clamped
        min_term_length: Shortest query word counted lexically
    """

    def __init__(
        self,
        chunk_store: BaseChunkStore,
        embedder: Optional[BaseEmbedder],
        weights: Optional[RetrievalWeights] = None,
        default_top_k: int = 5,
        max_top_k: int = 50,
        min_term_length: int = 4,
    ):
        self.chunk_store = chunk_store
        self.embedder = embedder
        self.weights = weights or RetrievalWeights()
        self.default_top_k = default_top_k
        self.max_top_k = max_top_k
        self.min_term_length = min_term_length

    def _embed_query(self, query: str) -> Optional[List[float]]:
        if self.embedder is None:
            return None
        try:
            return self.embedder.embed_query(query)
        except EmbeddingUnavailable as e:
            logger.warning(f"Query embedding unavailable, ranking lexically only: {e}")
            return None

    def retrieve(
        self,
        query: str,
        document_id: str,
        top_k: Optional[int] = None,
    ) -> RetrievalResult:
        """Rank a document's chunks against a query.

        Args:
            query: Search query
            document_id: Document to search
            top_k: Number of chunks wanted (default from configuration)

        Returns:
            RetrievalResult with ranked chunks and clamping details

        Raises:
            InvalidInput: If the query is empty or top_k is not positive
            NoChunksFound: If the document has no chunks
        """
        if not query or not query.strip():
            raise InvalidInput("Query must not be empty")

        requested = self.default_top_k if top_k is None else top_k
        if requested <= 0:
            raise InvalidInput(f"top_k must be positive, got {requested}")

        applied = min(requested, self.max_top_k)
        clamped = applied < requested
        if clamped:
            logger.info(f"top_k {requested} clamped to {applied}")

        chunks = self.chunk_store.get_by_document(document_id)
        if not chunks:
            raise NoChunksFound(document_id)

        query_embedding = self._embed_query(query)
        ranked = rank_chunks(
            query,
            chunks,
            query_embedding=query_embedding,
            weights=self.weights,
            top_k=applied,
            min_term_length=self.min_term_length,
        )

        logger.debug(
            f"Retrieved {len(ranked)} of {len(chunks)} chunks for {document_id}"
        )
        return RetrievalResult(
            chunks=ranked,
            top_k_requested=requested,
            top_k_applied=applied,
            clamped=clamped,
            semantic_available=query_embedding is not None,
        )
