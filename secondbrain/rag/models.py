"""Result types passed between pipeline stages and returned by the API."""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class SearchResult:
    """A retrieved chunk. Higher similarity means more relevant."""

    chunk_id: int
    document_id: str
    chunk_index: int
    content: str
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IngestResult:
    """Outcome of ingesting one text."""

    document_id: str
    chunk_count: int


@dataclass
class StoreStats:
    """Counts for operational checks."""

    documents: int
    chunks: int
    chunks_missing_embedding: int
    documents_without_chunks: int
    indexed_vectors: int
    dimension: Optional[int]

    @property
    def chunks_with_embedding(self) -> int:
        return self.chunks - self.chunks_missing_embedding

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["chunks_with_embedding"] = self.chunks_with_embedding
        return data
