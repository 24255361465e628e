"""Ingest pipeline for raw text.

Orchestrates:
- Input validation
- Document creation
- Text chunking
- Embedding generation
- Chunk and vector storage
"""
from typing import Optional
import structlog

from secondbrain import config
from secondbrain.errors import ConsistencyError, ValidationError
from secondbrain.rag.chunker import TextChunker
from secondbrain.rag.embedder import EmbeddingOrchestrator, get_embedder
from secondbrain.rag.models import IngestResult
from secondbrain.rag.store_faiss import VectorStore, get_vector_store

logger = structlog.get_logger()


class IngestPipeline:
    """Pipeline for ingesting free-form text into the RAG store."""

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingOrchestrator,
        chunker: Optional[TextChunker] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            store: Vector store that persists documents and chunks
            embedder: Embedding orchestrator for chunk contents
            chunker: Text chunker (default sizes from config)
        """
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or TextChunker()

    async def ingest(
        self,
        raw_text: str,
        title: Optional[str] = None,
        source: Optional[str] = None,
    ) -> IngestResult:
        """Chunk, embed and persist one text as a new document.

        If anything fails after the document row is written, the document is
        left in place with zero chunks and the error propagates.

        Args:
            raw_text: Text to ingest
            title: Optional document title
            source: Optional origin label

        Returns:
            IngestResult with the new document id and stored chunk count

        Raises:
            ValidationError: If raw_text is empty or too long
            ProviderError: If embedding fails
            ConsistencyError: If embeddings do not match chunks one to one
            StoreError: If persistence fails
        """
        if not raw_text or not raw_text.strip():
            raise ValidationError("Missing `text`", field="text")
        if len(raw_text) > config.MAX_TEXT_CHARS:
            raise ValidationError(
                f"Text too long (max {config.MAX_TEXT_CHARS} characters)",
                field="text",
                details={"length": len(raw_text)},
            )

        document_id = await self.store.create_document(title=title, source=source)
        log = logger.bind(document_id=document_id)
        log.info("ingest_started", text_length=len(raw_text), source=source)

        try:
            chunks = self.chunker.chunk_text(raw_text)
            log.info("text_chunked", **self.chunker.get_chunk_stats(chunks))

            embeddings = await self.embedder.embed_texts([c.content for c in chunks])
            if len(embeddings) != len(chunks):
                raise ConsistencyError(
                    "Embedding count mismatch",
                    details={"chunks": len(chunks), "embeddings": len(embeddings)},
                )

            await self.store.insert_chunks(document_id, chunks, embeddings)

        except Exception as e:
            log.error(
                "ingest_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log.info("document_ingested", chunk_count=len(chunks))
        return IngestResult(document_id=document_id, chunk_count=len(chunks))


# Singleton instance for convenience
_pipeline_instance: Optional[IngestPipeline] = None


async def get_ingest_pipeline() -> IngestPipeline:
    """Get or create a singleton ingest pipeline over the default store."""
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = IngestPipeline(
            store=await get_vector_store(),
            embedder=get_embedder(),
        )
    return _pipeline_instance
