"""Paragraph-aware text chunking with overlap for the RAG pipeline.

Character-based to avoid tokenizer dependencies. Paragraphs are packed greedily
up to ``max_chars``; a paragraph that is too large on its own is hard-split into
overlapping slices. Finally every chunk boundary that does not already overlap
receives the tail of the previous chunk as a prefix.
"""
import re
from typing import List
from dataclasses import dataclass
import structlog

from secondbrain import config

logger = structlog.get_logger()

PARAGRAPH_SEPARATOR = "\n\n"
OVERLAP_JOINER = "\n"

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")


@dataclass
class TextChunk:
    """A chunk of text and its position in reading order."""

    chunk_index: int
    content: str
    # True for hard-split slices that already share text with the previous slice
    continues_previous: bool = False


def split_paragraphs(text: str) -> List[str]:
    """Split text on blank lines, dropping empty paragraphs."""
    paragraphs = (p.strip() for p in _PARAGRAPH_BREAK.split(text))
    return [p for p in paragraphs if p]


class TextChunker:
    """Paragraph-packing chunker with hard-split fallback and boundary overlap."""

    def __init__(
        self,
        max_chars: int = None,
        overlap_chars: int = None,
    ):
        """Initialize the text chunker.

        Args:
            max_chars: Maximum packed chunk size in characters (default from config)
            overlap_chars: Characters shared across chunk boundaries (default from config)

        Raises:
            ValueError: If max_chars <= 0 or overlap_chars is outside [0, max_chars)
        """
        self.max_chars = config.CHUNK_MAX_CHARS if max_chars is None else max_chars
        self.overlap_chars = (
            config.CHUNK_OVERLAP_CHARS if overlap_chars is None else overlap_chars
        )

        # Validate parameters
        if self.max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {self.max_chars}")
        if self.overlap_chars < 0:
            raise ValueError(
                f"overlap_chars must not be negative, got {self.overlap_chars}"
            )
        if self.overlap_chars >= self.max_chars:
            raise ValueError(
                f"Overlap ({self.overlap_chars}) must be less than "
                f"max chars ({self.max_chars})"
            )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into ordered, overlapping chunks.

        Args:
            text: Raw text to chunk

        Returns:
            List of TextChunk objects with chunk_index 0..n-1
        """
        if not text or not text.strip():
            return []

        chunks = self._pack_paragraphs(split_paragraphs(text))
        if self.overlap_chars > 0:
            self._apply_boundary_overlap(chunks)

        logger.debug(
            "text_chunked",
            text_length=len(text),
            chunk_count=len(chunks),
            max_chars=self.max_chars,
            overlap_chars=self.overlap_chars,
        )

        return chunks

    def _pack_paragraphs(self, paragraphs: List[str]) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        buffer = ""

        def emit(content: str, continues_previous: bool = False) -> bool:
            content = content.strip()
            if not content:
                return False
            chunks.append(
                TextChunk(
                    chunk_index=len(chunks),
                    content=content,
                    continues_previous=continues_previous,
                )
            )
            return True

        for paragraph in paragraphs:
            if not buffer and len(paragraph) <= self.max_chars:
                buffer = paragraph
                continue

            candidate = buffer + PARAGRAPH_SEPARATOR + paragraph
            if buffer and len(candidate) <= self.max_chars:
                buffer = candidate
                continue

            emit(buffer)
            buffer = ""

            if len(paragraph) > self.max_chars:
                previous_emitted = False
                for piece in self._hard_split(paragraph):
                    # Shared window must survive stripping on both sides
                    shares_text = (
                        previous_emitted
                        and bool(piece[:self.overlap_chars].strip())
                    )
                    previous_emitted = emit(piece, continues_previous=shares_text)
            else:
                buffer = paragraph

        emit(buffer)
        return chunks

    def _hard_split(self, paragraph: str) -> List[str]:
        """Slice an oversized paragraph into max_chars windows sharing overlap_chars."""
        step = self.max_chars - self.overlap_chars
        if step <= 0:
            step = self.max_chars

        pieces = []
        start = 0
        while start < len(paragraph):
            end = min(start + self.max_chars, len(paragraph))
            pieces.append(paragraph[start:end])
            if end == len(paragraph):
                break
            start += step
        return pieces

    def _apply_boundary_overlap(self, chunks: List[TextChunk]) -> None:
        """Prefix each chunk with the tail of its predecessor, once per boundary."""
        for i in range(1, len(chunks)):
            if chunks[i].continues_previous:
                continue
            previous = chunks[i - 1].content
            tail = previous[-self.overlap_chars:]
            chunks[i].content = (tail + OVERLAP_JOINER + chunks[i].content).strip()

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Summarize chunk sizes for ingest logging.

        Empty input reports zero sizes under the same keys.
        """
        sizes = [len(c.content) for c in chunks] or [0]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(sizes),
            "avg_chunk_size": sum(sizes) // max(len(chunks), 1),
            "min_chunk_size": min(sizes),
            "max_chunk_size": max(sizes),
            "continuation_slices": sum(c.continues_previous for c in chunks),
            "max_chars": self.max_chars,
            "overlap_chars": self.overlap_chars,
        }


def chunk_text(
    text: str, max_chars: int = None, overlap_chars: int = None
) -> List[TextChunk]:
    """Chunk text with the given (or configured) sizes (convenience function).

    Args:
        text: Text to chunk
        max_chars: Maximum packed chunk size in characters
        overlap_chars: Characters shared across chunk boundaries

    Returns:
        List of TextChunk objects
    """
    return TextChunker(max_chars=max_chars, overlap_chars=overlap_chars).chunk_text(text)
