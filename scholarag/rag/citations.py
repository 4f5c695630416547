"""Context assembly and citation extraction.

The model is shown chunks labelled ``[Source i, Page p]`` and asked to cite
pages as ``[Page X]``. After generation, markers in the answer are resolved
back to the chunks that were actually in the context; markers naming a page
that no context chunk carries are dropped.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from ..core.models import ChatMessage, Citation, ScoredChunk

logger = logging.getLogger(__name__)

# [Page 3] or [Source 2, Page 3]
CITATION_PATTERN = re.compile(r"\[(?:Source\s+(\d+),\s*)?Page\s+(\d+)\]", re.IGNORECASE)

CONTEXT_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = """You are an academic research assistant. Answer the user's question about the uploaded document using only the context below.

IMPORTANT GUIDELINES:
1. Cite page numbers when referencing specific information. Format citations as [Page X].
2. If you're not sure about something, say so.
3. Don't fabricate information.
4. Be precise and academic in your responses.
5. If the context doesn't contain relevant information, say that clearly.

CONTEXT:
{context}"""

NO_CONTEXT = "No relevant context found in the uploaded document."


def estimate_tokens(text: str) -> int:
    """Rough token estimate (4 characters per token)."""
    return len(text) // 4


def format_context(chunks: List[ScoredChunk]) -> str:
    """Render ranked chunks as a labelled context block."""
    blocks = []
    for i, scored in enumerate(chunks, 1):
        page = scored.page_number if scored.page_number is not None else "N/A"
        blocks.append(f"[Source {i}, Page {page}]\n{scored.chunk.text}")
    return CONTEXT_SEPARATOR.join(blocks)


def fit_context(chunks: List[ScoredChunk], max_tokens: int) -> List[ScoredChunk]:
    """Drop the lowest-ranked chunks until the context fits max_tokens.

    The best chunk is always kept, even if it alone exceeds the budget.
    """
    kept = list(chunks)
    while len(kept) > 1 and estimate_tokens(format_context(kept)) > max_tokens:
        kept.pop()
    if len(kept) < len(chunks):
        logger.info(f"Context trimmed from {len(chunks)} to {len(kept)} chunks")
    return kept


def build_messages(
    question: str,
    context: str,
    chat_history: Optional[List[Any]] = None,
) -> List[ChatMessage]:
    """Assemble system prompt, prior turns and the question.

    Args:
        question: User question
        context: Formatted context block
        chat_history: Earlier ChatMessage objects or role/content dicts

    Returns:
        Messages ready for a provider adapter
    """
    messages = [ChatMessage(role="system", content=SYSTEM_PROMPT.format(context=context or NO_CONTEXT))]
    for message in chat_history or []:
        message = ChatMessage.coerce(message)
        if message.role in ("user", "assistant"):
            messages.append(message)
    messages.append(ChatMessage(role="user", content=question))
    return messages


class CitationExtractor:
    """Resolves page markers in an answer to context chunks.

    Args:
        excerpt_length: Characters of chunk text kept in each citation
    """

    def __init__(self, excerpt_length: int = 200):
        self.excerpt_length = excerpt_length

    def _excerpt(self, text: str) -> str:
        if len(text) <= self.excerpt_length:
            return text
        return text[:self.excerpt_length] + "..."

    def _resolve(
        self,
        source_index: Optional[int],
        page: int,
        chunks: List[ScoredChunk],
    ) -> Optional[ScoredChunk]:
        if source_index is not None and 1 <= source_index <= len(chunks):
            hinted = chunks[source_index - 1]
            if hinted.page_number == page:
                return hinted

        candidates = [c for c in chunks if c.page_number == page]
        if not candidates:
            return None
        # max() keeps the first of equal scores, i.e. the higher-ranked chunk
        return max(candidates, key=lambda c: c.combined_score)

    def extract(self, answer_text: str, chunks: List[ScoredChunk]) -> List[Citation]:
        """Extract citations from an answer.

        Args:
            answer_text: Generated answer
            chunks: Ranked chunks that formed the context, in context order

        Returns:
            One citation per distinct cited chunk, in order of first mention
        """
        citations: List[Citation] = []
        seen = set()

        for match in CITATION_PATTERN.finditer(answer_text or ""):
            source_index = int(match.group(1)) if match.group(1) else None
            page = int(match.group(2))

            scored = self._resolve(source_index, page, chunks)
            if scored is None:
                logger.debug(f"Dropping unresolved citation {match.group(0)}")
                continue
            if scored.chunk_id in seen:
                continue

            seen.add(scored.chunk_id)
            citations.append(Citation(
                source_chunk_id=scored.chunk_id,
                page_number=page,
                excerpt=self._excerpt(scored.chunk.text),
                score=scored.combined_score,
            ))

        return citations

    def summarize(self, citations: List[Citation]) -> Dict[str, Any]:
        """Pages cited and citation count, for logging and display."""
        return {
            "count": len(citations),
            "pages": sorted({c.page_number for c in citations}),
        }
