"""FAISS-backed similarity search over chunks persisted in SQLite.

Handles:
- Runtime embedding dimension detection (from the first stored vector)
- Rebuilding the in-memory index from SQLite on load
- Atomic chunk writes followed by index updates
- Cosine similarity search (inner product over L2-normalised vectors)
"""
import asyncio
import sqlite3
from pathlib import Path
from typing import List, Optional, Dict, Any, Sequence
import numpy as np
import faiss
import structlog

from secondbrain import config, db
from secondbrain.errors import ConsistencyError, NotFoundError, StoreError
from secondbrain.rag.chunker import TextChunk
from secondbrain.rag.models import SearchResult, StoreStats

logger = structlog.get_logger()


def _normalized(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    matrix = np.array(vectors, dtype=np.float32)
    faiss.normalize_L2(matrix)
    return matrix


class VectorStore:
    """Durable document/chunk store with a FAISS inner-product index.

    SQLite owns the data; the FAISS index is a derived cache keyed by chunk id
    and rebuilt from SQLite whenever the store is loaded.
    """

    def __init__(self, db_path: Path = None):
        """Initialize the vector store.

        Args:
            db_path: SQLite database file (default from config)
        """
        self.db_path = Path(db_path or config.DB_PATH)

        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None
        self._write_lock = asyncio.Lock()

    def init_new_index(self, dimension: int) -> None:
        """Create an empty index for vectors of the given dimension."""
        self.dimension = dimension
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))

        logger.info(
            "faiss_index_initialized",
            dimension=dimension,
            index_type="IndexIDMap2(IndexFlatIP)",
        )

    async def init_or_load(self) -> None:
        """Create the schema if needed and rebuild the index from stored vectors.

        Raises:
            StoreError: If the database cannot be read
            ConsistencyError: If stored vectors have differing dimensions
        """
        try:
            db.init_database(self.db_path)
            pairs = db.get_all_embeddings(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to load store: {e}") from e

        self.index = None
        self.dimension = None

        if not pairs:
            logger.info("store_loaded_empty", db_path=str(self.db_path))
            return

        dimensions = {len(vector) for _, vector in pairs}
        if len(dimensions) != 1:
            raise ConsistencyError(
                "Stored embeddings have differing dimensions. Please rebuild the store.",
                details={"dimensions": sorted(dimensions)},
            )

        self.init_new_index(dimensions.pop())
        self._add_to_index([chunk_id for chunk_id, _ in pairs], [v for _, v in pairs])

        logger.info(
            "store_loaded",
            db_path=str(self.db_path),
            vector_count=self.index.ntotal,
            dimension=self.dimension,
        )

    def _add_to_index(self, chunk_ids: List[int], embeddings: List[List[float]]) -> None:
        self.index.add_with_ids(
            _normalized(embeddings), np.array(chunk_ids, dtype=np.int64)
        )

    def _undo_insert(self, chunk_ids: List[int]) -> None:
        """Drop chunks whose vectors could not be indexed, from both sides."""
        ids = np.array(chunk_ids, dtype=np.int64)
        if self.index is not None:
            self.index.remove_ids(ids)
            if self.index.ntotal == 0:
                self.index = None
                self.dimension = None
        db.delete_chunks(chunk_ids, self.db_path)

        logger.warning("chunk_insert_rolled_back", count=len(chunk_ids))

    def _check_dimension(self, dimension: int, what: str) -> None:
        if self.dimension is not None and dimension != self.dimension:
            raise ConsistencyError(
                f"{what} dimension mismatch: expected {self.dimension}, got {dimension}. "
                "The embedding model may have changed; please rebuild the store.",
                details={"expected": self.dimension, "actual": dimension},
            )

    async def create_document(
        self, title: Optional[str] = None, source: Optional[str] = None
    ) -> str:
        """Create a document row and return its id.

        Raises:
            StoreError: If the write fails
        """
        try:
            document = db.create_document(title, source, db_path=self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to create document: {e}") from e
        return document["id"]

    async def insert_chunks(
        self,
        document_id: str,
        chunks: List[TextChunk],
        embeddings: List[List[float]],
    ) -> List[int]:
        """Persist a document's chunks with their vectors as one unit.

        Either every chunk is stored and indexed, or none is.

        Returns:
            Chunk ids in chunk order

        Raises:
            ConsistencyError: On count or dimension mismatch
            StoreError: If the write fails
        """
        if len(chunks) != len(embeddings):
            raise ConsistencyError(
                "Embedding count mismatch",
                details={"chunks": len(chunks), "embeddings": len(embeddings)},
            )
        if not chunks:
            return []

        dimensions = {len(e) for e in embeddings}
        if len(dimensions) != 1:
            raise ConsistencyError(
                "Embeddings in one batch have differing dimensions",
                details={"dimensions": sorted(dimensions)},
            )
        dimension = dimensions.pop()

        async with self._write_lock:
            self._check_dimension(dimension, "Embedding")

            rows = [
                (chunk.chunk_index, chunk.content, embedding)
                for chunk, embedding in zip(chunks, embeddings)
            ]
            try:
                chunk_ids = db.insert_chunks(document_id, rows, db_path=self.db_path)
            except sqlite3.Error as e:
                raise StoreError(
                    f"Failed to insert chunks: {e}",
                    details={"document_id": document_id},
                ) from e

            try:
                if self.index is None:
                    self.init_new_index(dimension)
                self._add_to_index(chunk_ids, embeddings)
            except Exception as e:
                self._undo_insert(chunk_ids)
                raise StoreError(
                    f"Failed to index chunks: {e}",
                    details={"document_id": document_id},
                ) from e

        logger.info(
            "chunks_stored",
            document_id=document_id,
            count=len(chunk_ids),
            total_vectors=self.index.ntotal,
        )
        return chunk_ids

    async def similarity_search(
        self, query_embedding: List[float], limit: int
    ) -> List[SearchResult]:
        """Find the chunks most similar to a query vector.

        Args:
            query_embedding: Query vector
            limit: Maximum number of results

        Returns:
            Results ordered by descending cosine similarity, at most ``limit``

        Raises:
            ConsistencyError: If the query dimension does not match the index
        """
        if self.index is None or self.index.ntotal == 0 or limit < 1:
            return []

        self._check_dimension(len(query_embedding), "Query")

        top_k = min(limit, self.index.ntotal)
        scores, ids = self.index.search(_normalized([query_embedding]), top_k)

        ranked = [
            (int(chunk_id), float(score))
            for chunk_id, score in zip(ids[0].tolist(), scores[0].tolist())
            if chunk_id != -1
        ]

        try:
            rows = db.get_chunks_by_ids([chunk_id for chunk_id, _ in ranked], self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to load chunks: {e}") from e
        by_id = {row["id"]: row for row in rows}

        results = []
        for chunk_id, score in ranked:
            row = by_id.get(chunk_id)
            if row is None:
                logger.warning("indexed_chunk_missing_from_db", chunk_id=chunk_id)
                continue
            results.append(
                SearchResult(
                    chunk_id=chunk_id,
                    document_id=row["document_id"],
                    chunk_index=row["chunk_index"],
                    content=row["content"],
                    similarity=score,
                )
            )

        logger.info(
            "vector_search_completed",
            top_k=top_k,
            results_found=len(results),
        )
        return results

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        """Fetch a document and its chunks (without vectors).

        Raises:
            NotFoundError: If the document does not exist
            StoreError: If the database cannot be read
        """
        try:
            document = db.get_document(document_id, self.db_path)
            if document is not None:
                document["chunks"] = db.get_chunks_for_document(document_id, self.db_path)
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to read document: {e}", details={"document_id": document_id}
            ) from e

        if document is None:
            raise NotFoundError(
                f"Document not found: {document_id}",
                details={"document_id": document_id},
            )
        return document

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document, its chunks and their vectors.

        Returns:
            True if the document existed
        """
        async with self._write_lock:
            try:
                chunk_ids = [
                    c["id"] for c in db.get_chunks_for_document(document_id, self.db_path)
                ]
                deleted = db.delete_document(document_id, self.db_path)
            except sqlite3.Error as e:
                raise StoreError(
                    f"Failed to delete document: {e}", details={"document_id": document_id}
                ) from e

            if deleted and chunk_ids and self.index is not None:
                self.index.remove_ids(np.array(chunk_ids, dtype=np.int64))

        return deleted

    async def get_stats(self) -> StoreStats:
        """Get counts describing the store."""
        try:
            counts = db.get_counts(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read store stats: {e}") from e

        return StoreStats(
            documents=counts["documents"],
            chunks=counts["chunks"],
            chunks_missing_embedding=counts["chunks_missing_embedding"],
            documents_without_chunks=counts["documents_without_chunks"],
            indexed_vectors=self.index.ntotal if self.index is not None else 0,
            dimension=self.dimension,
        )

    async def sample_chunk(self) -> Optional[Dict[str, Any]]:
        """Oldest stored chunk including its embedding."""
        try:
            return db.get_sample_chunk(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read sample chunk: {e}") from e

    async def recent_chunks(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Most recently stored chunks."""
        try:
            return db.get_recent_chunks(limit, self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read recent chunks: {e}") from e


# Singleton instance for convenience
_store_instance: Optional[VectorStore] = None


async def get_vector_store() -> VectorStore:
    """Get or create a singleton vector store instance.

    Returns:
        VectorStore instance

    Note: This loads the index from the database on first use
    """
    global _store_instance
    if _store_instance is None:
        store = VectorStore()
        await store.init_or_load()
        _store_instance = store
    return _store_instance
