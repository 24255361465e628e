"""Retriever for semantic search over ingested chunks.

Handles:
- Query validation and k clamping
- Query embedding generation
- Similarity search delegated to the store
"""
from typing import List, Optional
import structlog

from secondbrain import config
from secondbrain.errors import ValidationError
from secondbrain.rag.embedder import EmbeddingOrchestrator, get_embedder
from secondbrain.rag.models import SearchResult
from secondbrain.rag.store_faiss import VectorStore, get_vector_store

logger = structlog.get_logger()


def clamp_k(k: Optional[int], default: int = None) -> int:
    """Clamp a caller-supplied result count into [1, MAX_TOP_K]."""
    if k is None:
        k = config.SEARCH_TOP_K if default is None else default
    return max(1, min(config.MAX_TOP_K, int(k)))


class Retriever:
    """Semantic retriever for the RAG pipeline."""

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingOrchestrator,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            store: Vector store to search
            embedder: Embedding orchestrator for queries
            top_k: Default number of results (default from config)
        """
        self.store = store
        self.embedder = embedder
        self.top_k = top_k or config.SEARCH_TOP_K

    async def search(self, query: str, k: Optional[int] = None) -> List[SearchResult]:
        """Retrieve the chunks most similar to a query.

        Args:
            query: User query text
            k: Number of results; clamped into [1, 50]

        Returns:
            Results in store order (descending similarity); may be empty

        Raises:
            ValidationError: If the query is empty
            ProviderError: If the query cannot be embedded
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Missing `query`", field="query")

        k = clamp_k(k, self.top_k)

        logger.info("retrieval_started", query_length=len(query), top_k=k)

        query_embedding = await self.embedder.embed_query(query)
        results = await self.store.similarity_search(query_embedding, k)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_similarity=results[0].similarity if results else None,
        )

        return results


# Singleton instance for convenience
_retriever_instance: Optional[Retriever] = None


async def get_retriever() -> Retriever:
    """Get or create a singleton retriever instance.

    Returns:
        Retriever instance
    """
    global _retriever_instance
    if _retriever_instance is None:
        _retriever_instance = Retriever(
            store=await get_vector_store(),
            embedder=get_embedder(),
        )
    return _retriever_instance
