"""Shared fixtures for Scholarag tests."""

import pytest

from scholarag.config import Config
from scholarag.core.models import Chunk, ScoredChunk
from scholarag.security.vault import CredentialVault
from scholarag.storage.record_store import InMemoryRecordStore


@pytest.fixture
def test_config():
    """Offline configuration: hash embeddings, memory stores, fast KDF."""
    return Config(
        groq_api_key="gsk-platform-key-0000",
        embedding_backend="hash",
        embedding_dimension=64,
        embedding_retry_delay=0.0,
        encryption_secret="test-server-secret",
        kdf_iterations=1000,
        chunk_store_backend="memory",
        record_store_backend="memory",
    )


@pytest.fixture
def make_chunk():
    """Factory for chunks with sensible defaults."""
    def _make(index, text, page=None, embedding=None, document_id="doc-1", generation=1):
        return Chunk(
            chunk_id=Chunk.create_id(document_id, generation, index),
            document_id=document_id,
            chunk_index=index,
            text=text,
            page_number=page,
            embedding=embedding,
            generation=generation,
        )
    return _make


@pytest.fixture
def make_scored(make_chunk):
    """Factory for scored chunks as they come out of retrieval."""
    def _make(index, text, page, score):
        return ScoredChunk(
            chunk=make_chunk(index, text, page=page),
            lexical_score=score,
            semantic_score=0.0,
            combined_score=score,
        )
    return _make


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def vault():
    return CredentialVault("test-server-secret", iterations=1000)
