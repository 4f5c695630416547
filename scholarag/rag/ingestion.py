"""Document ingestion: chunk, embed in parallel, store."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..core.models import Chunk, IngestResult
from ..exceptions import EmbeddingUnavailable, InvalidInput
from .chunk_store import BaseChunkStore
from .chunker import build_chunks, chunk_pages, chunk_spans
from .embeddings import BaseEmbedder

logger = logging.getLogger(__name__)

PageInput = Union[str, Sequence[Tuple[int, str]]]


class DocumentIngestor:
    """Turns raw document text into stored, embedded chunks.

    Embeddings are computed on a bounded thread pool. Each chunk is retried
    on its own; a chunk that still fails is stored without an embedding and
    only contributes lexically at retrieval time.
    """

    def __init__(
        self,
        chunk_store: BaseChunkStore,
        embedder: Optional[BaseEmbedder],
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        concurrency: int = 5,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.chunk_store = chunk_store
        self.embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.concurrency = max(1, concurrency)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _embed_with_retry(self, chunk: Chunk) -> Optional[List[float]]:
        """Embed one chunk, retrying on failure.

        Returns:
            Embedding vector, or None if every attempt failed
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                return self.embedder.embed(chunk.text)
            except EmbeddingUnavailable as e:
                last_error = e
                logger.debug(
                    f"Embedding attempt {attempt + 1}/{self.max_retries} "
                    f"failed for {chunk.chunk_id}: {e}"
                )
                if attempt < self.max_retries - 1:
                    self._sleep(self.retry_delay)

        logger.warning(f"Storing {chunk.chunk_id} without embedding: {last_error}")
        return None

    def _embed_all(self, chunks: List[Chunk]) -> int:
        """Fill in embeddings in place. Returns the number of failures."""
        if self.embedder is None:
            return len(chunks)

        failures = 0
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            future_to_chunk = {
                executor.submit(self._embed_with_retry, chunk): chunk
                for chunk in chunks
            }

            for future in as_completed(future_to_chunk):
                chunk = future_to_chunk[future]
                embedding = future.result()
                if embedding is None:
                    failures += 1
                else:
                    chunk.embedding = embedding

        return failures

    def ingest(
        self,
        document_id: str,
        pages: PageInput,
        file_id: Optional[str] = None,
    ) -> IngestResult:
        """Chunk, embed and store a document.

        Args:
            document_id: Document identifier
            pages: Plain text, or (page_number, page_text) pairs
            file_id: Optional source file identifier

        Returns:
            IngestResult with chunk and embedding counts

        Raises:
            InvalidInput: If the document has no text
        """
        if not document_id:
            raise InvalidInput("document_id must not be empty")

        if isinstance(pages, str):
            if not pages.strip():
                raise InvalidInput(f"Document {document_id} has no text")
            spans = chunk_spans(pages, self.chunk_size, self.chunk_overlap)
        else:
            spans = chunk_pages(pages, self.chunk_size, self.chunk_overlap)
            if not spans:
                raise InvalidInput(f"Document {document_id} has no text")

        generation = self.chunk_store.next_generation(document_id)
        chunks = build_chunks(document_id, spans, generation, file_id=file_id)
        logger.info(f"Ingesting {document_id}: {len(chunks)} chunks (generation {generation})")

        failures = self._embed_all(chunks)
        self.chunk_store.put(chunks)

        result = IngestResult(
            document_id=document_id,
            chunks_created=len(chunks),
            generation=generation,
            embedded_chunks=len(chunks) - failures,
            failed_embeddings=failures,
        )
        if failures:
            logger.warning(f"{failures} of {len(chunks)} chunks of {document_id} have no embedding")
        return result
