"""Retrieval-augmented generation pipeline."""
from .chunker import ChunkSpan, build_chunks, chunk_pages, chunk_spans, chunk_text
from .chunk_store import BaseChunkStore, ChromaChunkStore, InMemoryChunkStore, create_chunk_store
from .citations import CitationExtractor, build_messages, fit_context, format_context
from .embeddings import (
    BaseEmbedder,
    GeminiEmbedder,
    HashEmbedder,
    OpenAIEmbedder,
    cosine_similarity,
    create_embedder,
)
from .ingestion import DocumentIngestor
from .retriever import HybridRetriever, RetrievalWeights, rank_chunks

__all__ = [
    "ChunkSpan",
    "build_chunks",
    "chunk_pages",
    "chunk_spans",
    "chunk_text",
    "BaseChunkStore",
    "ChromaChunkStore",
    "InMemoryChunkStore",
    "create_chunk_store",
    "CitationExtractor",
    "build_messages",
    "fit_context",
    "format_context",
    "BaseEmbedder",
    "GeminiEmbedder",
    "HashEmbedder",
    "OpenAIEmbedder",
    "cosine_similarity",
    "create_embedder",
    "DocumentIngestor",
    "HybridRetriever",
    "RetrievalWeights",
    "rank_chunks",
]
