"""Fixed-window text chunking with overlap.

Chunks are produced with a simple cursor: take ``window_size`` characters,
advance by ``window_size - overlap``, stop once the cursor passes the end of
the text. Every character of the input lands in at least one chunk, and
consecutive chunks share exactly ``overlap`` characters (the last chunk may be
shorter).
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..core.models import Chunk
from ..exceptions import InvalidInput

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


@dataclass
class ChunkSpan:
    """A chunk of text with its position in the source document."""
    text: str
    start_offset: int
    end_offset: int
    page_number: Optional[int] = None


def _check_window(window_size: int, overlap: int) -> None:
    if window_size <= 0:
        raise InvalidInput(f"window_size must be positive, got {window_size}")
    if overlap < 0 or overlap >= window_size:
        raise InvalidInput(
            f"overlap must be in [0, window_size), got {overlap} for window {window_size}"
        )


def chunk_spans(text: str, window_size: int = 1000, overlap: int = 200) -> List[ChunkSpan]:
    """Split text into overlapping windows, keeping character offsets.

    Args:
        text: Source text
        window_size: Window length in characters
        overlap: Characters shared by consecutive windows

    Returns:
        List of spans in document order (empty for empty text)

    Raises:
        InvalidInput: If window_size or overlap are out of range
    """
    _check_window(window_size, overlap)

    spans = []
    step = window_size - overlap
    cursor = 0
    while cursor < len(text):
        end = min(cursor + window_size, len(text))
        spans.append(ChunkSpan(text=text[cursor:end], start_offset=cursor, end_offset=end))
        cursor += step
    return spans


def chunk_text(text: str, window_size: int = 1000, overlap: int = 200) -> List[str]:
    """Split text into overlapping chunks.

    Example:
        2,500 characters with window 1000 and overlap 200 give four chunks
        starting at offsets 0, 800, 1600 and 2400.

    Args:
        text: Source text
        window_size: Window length in characters
        overlap: Characters shared by consecutive chunks

    Returns:
        List of chunk strings

    Raises:
        InvalidInput: If window_size or overlap are out of range
    """
    return [span.text for span in chunk_spans(text, window_size, overlap)]


def join_pages(pages: Iterable[Tuple[int, str]]) -> Tuple[str, List[Tuple[int, int, int]]]:
    """Concatenate non-blank pages into one document text.

    Args:
        pages: (page_number, page_text) pairs in reading order

    Returns:
        Tuple of (document text, list of (page_number, start, end) ranges).
        The separator after a page belongs to that page's range.
    """
    kept = [(number, page_text) for number, page_text in pages if page_text and page_text.strip()]

    parts = []
    ranges = []
    offset = 0
    for i, (number, page_text) in enumerate(kept):
        piece = page_text if i == len(kept) - 1 else page_text + PAGE_SEPARATOR
        parts.append(piece)
        ranges.append((number, offset, offset + len(piece)))
        offset += len(piece)

    return "".join(parts), ranges


def _attribute_page(
    start: int,
    end: int,
    ranges: List[Tuple[int, int, int]],
) -> Optional[int]:
    """Pick the page a span mostly falls on.

    The first page covering at least half of the span wins; otherwise the
    page holding the span's first character.
    """
    length = end - start
    for number, page_start, page_end in ranges:
        covered = min(end, page_end) - max(start, page_start)
        if covered > 0 and covered * 2 >= length:
            return number
    for number, page_start, page_end in ranges:
        if page_start <= start < page_end:
            return number
    return None


def chunk_pages(
    pages: Iterable[Tuple[int, str]],
    window_size: int = 1000,
    overlap: int = 200,
) -> List[ChunkSpan]:
    """Chunk a paged document and attribute each chunk to a page.

    Args:
        pages: (page_number, page_text) pairs in reading order
        window_size: Window length in characters
        overlap: Characters shared by consecutive chunks

    Returns:
        Spans with page_number set
    """
    text, ranges = join_pages(pages)
    spans = chunk_spans(text, window_size, overlap)
    for span in spans:
        span.page_number = _attribute_page(span.start_offset, span.end_offset, ranges)
    logger.debug(f"Chunked {len(ranges)} pages into {len(spans)} chunks")
    return spans


def build_chunks(
    document_id: str,
    spans: List[ChunkSpan],
    generation: int,
    file_id: Optional[str] = None,
) -> List[Chunk]:
    """Turn spans into Chunk records for one ingestion generation."""
    return [
        Chunk(
            chunk_id=Chunk.create_id(document_id, generation, index),
            document_id=document_id,
            chunk_index=index,
            text=span.text,
            file_id=file_id,
            page_number=span.page_number,
            start_offset=span.start_offset,
            end_offset=span.end_offset,
            generation=generation,
        )
        for index, span in enumerate(spans)
    ]
