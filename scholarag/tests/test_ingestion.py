"""Tests for document ingestion."""

import threading
import time

import pytest

from scholarag.exceptions import EmbeddingUnavailable, InvalidInput
from scholarag.rag.chunk_store import InMemoryChunkStore
from scholarag.rag.embeddings import BaseEmbedder, HashEmbedder
from scholarag.rag.ingestion import DocumentIngestor


class FlakyEmbedder(BaseEmbedder):
    """Fails the first `failures` calls for every text containing `marker`."""

    def __init__(self, marker, failures):
        super().__init__(8)
        self.marker = marker
        self.failures = failures
        self.calls = {}
        self._lock = threading.Lock()

    def embed(self, text):
        with self._lock:
            self.calls[text] = self.calls.get(text, 0) + 1
            count = self.calls[text]
        if self.marker in text and count <= self.failures:
            raise EmbeddingUnavailable("temporarily unavailable")
        return [1.0] * self.dimension


class TrackingEmbedder(BaseEmbedder):
    def __init__(self):
        super().__init__(4)
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def embed(self, text):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.01)
        with self._lock:
            self.active -= 1
        return [0.5] * self.dimension


def make_ingestor(store, embedder, **kwargs):
    kwargs.setdefault("chunk_size", 20)
    kwargs.setdefault("chunk_overlap", 5)
    kwargs.setdefault("sleep", lambda seconds: None)
    return DocumentIngestor(store, embedder, **kwargs)


class TestDocumentIngestor:
    """Test chunking, embedding and storage of documents."""

    def test_pages_ingested(self):
        store = InMemoryChunkStore()
        result = make_ingestor(store, HashEmbedder(16)).ingest(
            "doc-1", [(1, "a" * 30), (2, "b" * 30)], file_id="file-9"
        )

        chunks = store.get_by_document("doc-1")
        assert result.chunks_created == len(chunks) > 0
        assert result.embedded_chunks == result.chunks_created
        assert result.failed_embeddings == 0
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert chunks[0].page_number == 1
        assert chunks[-1].page_number == 2
        assert all(c.file_id == "file-9" for c in chunks)
        assert all(len(c.embedding) == 16 for c in chunks)

    def test_plain_text_has_no_pages(self):
        store = InMemoryChunkStore()
        make_ingestor(store, HashEmbedder(16)).ingest("doc-1", "plain text " * 10)
        assert all(c.page_number is None for c in store.get_by_document("doc-1"))

    @pytest.mark.parametrize("pages", ["", "   ", [], [(1, "  "), (2, "")]])
    def test_empty_document(self, pages):
        with pytest.raises(InvalidInput):
            make_ingestor(InMemoryChunkStore(), HashEmbedder(16)).ingest("doc-1", pages)

    def test_transient_failure_retried(self):
        embedder = FlakyEmbedder(marker="x", failures=2)
        store = InMemoryChunkStore()

        result = make_ingestor(store, embedder, max_retries=3).ingest("doc-1", "x" * 15)

        assert result.failed_embeddings == 0
        assert embedder.calls["x" * 15] == 3
        assert store.get_by_document("doc-1")[0].has_embedding

    def test_persistent_failure_stored_without_embedding(self):
        """A chunk that never embeds is still stored for lexical search."""
        embedder = FlakyEmbedder(marker="bad", failures=99)
        store = InMemoryChunkStore()
        pages = [(1, "good text here ok"), (2, "bad text here too")]

        result = make_ingestor(store, embedder, chunk_size=18, chunk_overlap=0, max_retries=2).ingest("doc-1", pages)

        chunks = store.get_by_document("doc-1")
        assert result.chunks_created == len(chunks)
        assert result.failed_embeddings >= 1
        assert any(not c.has_embedding for c in chunks)
        assert any(c.has_embedding for c in chunks)
        assert all(count <= 2 for count in embedder.calls.values())

    def test_retry_delay_between_attempts(self):
        sleeps = []
        make_ingestor(
            InMemoryChunkStore(), FlakyEmbedder("x", 99), max_retries=3, retry_delay=0.5, sleep=sleeps.append
        ).ingest("doc-1", "x" * 10)
        assert sleeps == [0.5, 0.5]

    def test_concurrency_bounded(self):
        embedder = TrackingEmbedder()
        make_ingestor(InMemoryChunkStore(), embedder, chunk_size=10, chunk_overlap=0, concurrency=3).ingest(
            "doc-1", "y" * 200
        )
        assert 1 <= embedder.peak <= 3

    def test_without_embedder(self):
        store = InMemoryChunkStore()
        result = make_ingestor(store, None).ingest("doc-1", "some text " * 5)
        assert result.embedded_chunks == 0
        assert not any(c.has_embedding for c in store.get_by_document("doc-1"))

    def test_reingest_replaces_chunks(self):
        store = InMemoryChunkStore()
        ingestor = make_ingestor(store, HashEmbedder(16))
        ingestor.ingest("doc-1", "first version " * 10)

        result = ingestor.ingest("doc-1", "second")

        chunks = store.get_by_document("doc-1")
        assert result.generation == 2
        assert [c.text for c in chunks] == ["second"]
        assert chunks[0].chunk_id == "doc-1:g2:c0"
