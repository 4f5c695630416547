"""Chunk persistence keyed by document.

Both stores keep chunks grouped by ingestion generation. Writing a new
generation makes it visible in one step and then retires the older ones, so a
reader sees either the previous complete set or the new complete set.
"""
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import chromadb
from chromadb.config import Settings

from ..core.models import Chunk
from ..exceptions import ConfigurationError, InvalidInput, StorageError

logger = logging.getLogger(__name__)


def _check_batch(chunks: List[Chunk]) -> None:
    """All chunks of one put() must share document and generation."""
    keys = {(c.document_id, c.generation) for c in chunks}
    if len(keys) > 1:
        raise InvalidInput("put() expects chunks of a single document generation")


class BaseChunkStore(ABC):
    """Abstract chunk store."""

    @abstractmethod
    def put(self, chunks: List[Chunk]) -> None:
        """Store one complete generation of a document's chunks."""
        pass

    @abstractmethod
    def get_by_document(self, document_id: str) -> List[Chunk]:
        """Return the live chunks of a document ordered by chunk_index."""
        pass

    @abstractmethod
    def delete_by_document(self, document_id: str) -> int:
        """Remove every chunk of a document.

        Returns:
            Number of chunks removed
        """
        pass

    @abstractmethod
    def next_generation(self, document_id: str) -> int:
        """Reserve the generation number for the next ingestion."""
        pass

    def count(self, document_id: str) -> int:
        return len(self.get_by_document(document_id))


class InMemoryChunkStore(BaseChunkStore):
    """Process-local chunk store."""

    def __init__(self):
        self._chunks: Dict[str, List[Chunk]] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    def put(self, chunks: List[Chunk]) -> None:
        if not chunks:
            return
        _check_batch(chunks)

        document_id = chunks[0].document_id
        generation = chunks[0].generation
        ordered = sorted(chunks, key=lambda c: c.chunk_index)

        with self._lock:
            current = self._chunks.get(document_id)
            if current and current[0].generation > generation:
                logger.warning(
                    f"Ignoring stale generation {generation} for {document_id} "
                    f"(live generation is {current[0].generation})"
                )
                return
            self._chunks[document_id] = ordered
            self._generations[document_id] = max(self._generations.get(document_id, 0), generation)

    def get_by_document(self, document_id: str) -> List[Chunk]:
        with self._lock:
            return list(self._chunks.get(document_id, []))

    def delete_by_document(self, document_id: str) -> int:
        with self._lock:
            removed = self._chunks.pop(document_id, [])
        return len(removed)

    def next_generation(self, document_id: str) -> int:
        with self._lock:
            generation = self._generations.get(document_id, 0) + 1
            self._generations[document_id] = generation
            return generation


class ChromaChunkStore(BaseChunkStore):
    """Chunk store backed by a persistent ChromaDB collection.

    Each generation is written with a single add() call. Readers only return
    the newest generation present, and older generations are deleted after
    the write succeeds.
    """

    def __init__(
        self,
        db_path: str = "./chroma_scholarag",
        collection_name: str = "document_chunks",
        embedding_dim: int = 768,
        client: Optional[Any] = None,
    ):
        """Initialize the store.

        Args:
            db_path: Directory of the ChromaDB database
            collection_name: Name of the collection
            embedding_dim: Vector size; chunks without an embedding are
                stored with a zero vector of this size
            client: Existing chromadb client (a PersistentClient is
                created when omitted)
        """
        self.embedding_dim = embedding_dim
        self.collection_name = collection_name

        if client is None:
            self.db_path = Path(db_path)
            self.db_path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(
                path=str(self.db_path),
                settings=Settings(anonymized_telemetry=False),
            )
        self.client = client
        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"description": "Document chunks for retrieval"},
        )
        self._reserved: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _metadata(self, chunk: Chunk) -> Dict[str, Any]:
        # ChromaDB rejects None values, so optional fields are omitted
        metadata = {
            "document_id": chunk.document_id,
            "chunk_index": chunk.chunk_index,
            "generation": chunk.generation,
            "char_count": chunk.char_count,
            "start_offset": chunk.start_offset,
            "end_offset": chunk.end_offset,
            "has_embedding": chunk.has_embedding,
        }
        if chunk.page_number is not None:
            metadata["page_number"] = chunk.page_number
        if chunk.file_id is not None:
            metadata["file_id"] = chunk.file_id
        return metadata

    def put(self, chunks: List[Chunk]) -> None:
        if not chunks:
            return
        _check_batch(chunks)

        document_id = chunks[0].document_id
        generation = chunks[0].generation
        zero = [0.0] * self.embedding_dim

        embeddings = []
        for chunk in chunks:
            if chunk.embedding is not None and len(chunk.embedding) != self.embedding_dim:
                raise InvalidInput(
                    f"Chunk {chunk.chunk_id} has {len(chunk.embedding)} dimensions, "
                    f"store expects {self.embedding_dim}"
                )
            embeddings.append(list(chunk.embedding) if chunk.embedding is not None else zero)

        try:
            self.collection.add(
                ids=[c.chunk_id for c in chunks],
                embeddings=embeddings,
                documents=[c.text for c in chunks],
                metadatas=[self._metadata(c) for c in chunks],
            )
        except Exception as e:
            raise StorageError(f"Failed to store chunks for {document_id}: {e}") from e

        # New generation is complete; retire the older ones
        try:
            self.collection.delete(
                where={"$and": [
                    {"document_id": document_id},
                    {"generation": {"$lt": generation}},
                ]}
            )
        except Exception as e:
            logger.warning(f"Could not remove old generations of {document_id}: {e}")

        logger.info(f"Stored {len(chunks)} chunks for {document_id} (generation {generation})")

    def _get_raw(self, document_id: str) -> Dict[str, Any]:
        try:
            return self.collection.get(
                where={"document_id": document_id},
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as e:
            raise StorageError(f"Failed to read chunks for {document_id}: {e}") from e

    def get_by_document(self, document_id: str) -> List[Chunk]:
        results = self._get_raw(document_id)
        if not results["ids"]:
            return []

        metadatas = results["metadatas"]
        live = max(m["generation"] for m in metadatas)
        embeddings = results.get("embeddings")

        chunks = []
        for i, chunk_id in enumerate(results["ids"]):
            metadata = metadatas[i]
            if metadata["generation"] != live:
                continue

            embedding = None
            if metadata.get("has_embedding") and embeddings is not None:
                embedding = [float(x) for x in embeddings[i]]

            chunks.append(Chunk(
                chunk_id=chunk_id,
                document_id=metadata["document_id"],
                chunk_index=metadata["chunk_index"],
                text=results["documents"][i],
                file_id=metadata.get("file_id"),
                page_number=metadata.get("page_number"),
                embedding=embedding,
                char_count=metadata.get("char_count", 0),
                start_offset=metadata.get("start_offset", 0),
                end_offset=metadata.get("end_offset", 0),
                generation=metadata["generation"],
            ))

        chunks.sort(key=lambda c: c.chunk_index)
        return chunks

    def delete_by_document(self, document_id: str) -> int:
        results = self._get_raw(document_id)
        if not results["ids"]:
            return 0
        self.collection.delete(ids=results["ids"])
        logger.info(f"Deleted {len(results['ids'])} chunks for {document_id}")
        return len(results["ids"])

    def next_generation(self, document_id: str) -> int:
        results = self._get_raw(document_id)
        stored = max((m["generation"] for m in results["metadatas"] or []), default=0)
        with self._lock:
            generation = max(stored, self._reserved.get(document_id, 0)) + 1
            self._reserved[document_id] = generation
        return generation

    def count(self, document_id: str) -> int:
        return len(self.get_by_document(document_id))


def create_chunk_store(config) -> BaseChunkStore:
    """Build the chunk store selected by config.chunk_store_backend."""
    backend = (config.chunk_store_backend or "").lower()
    if backend == "memory":
        return InMemoryChunkStore()
    if backend == "chroma":
        return ChromaChunkStore(
            db_path=config.chroma_path,
            collection_name=config.chroma_collection,
            embedding_dim=config.embedding_dimension,
        )
    raise ConfigurationError(f"Unknown chunk store backend: {config.chunk_store_backend}")
