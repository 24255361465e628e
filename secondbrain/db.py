"""SQLite persistence for documents and their chunks.

SQLite is the durable owner of:
- Documents (id, title, source, creation time)
- Chunks with their content and embedding vectors

Chunks reference their document with ON DELETE CASCADE, so deleting a document
removes its chunks.
"""
import sqlite3
import json
import uuid
from pathlib import Path
from typing import Optional, List, Dict, Any, Sequence, Tuple
from datetime import datetime, timezone
import structlog

from secondbrain import config

logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row and
        foreign key enforcement enabled
    """
    conn = sqlite3.connect(db_path or config.DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_database(db_path: Optional[Path] = None) -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - documents: one row per ingested text
    - chunks: ordered chunks with JSON-encoded embeddings
    """
    path = Path(db_path or config.DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = get_connection(path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                title TEXT,
                source TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id TEXT NOT NULL
                    REFERENCES documents(id) ON DELETE CASCADE,
                chunk_index INTEGER NOT NULL,
                content TEXT NOT NULL,
                embedding_json TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(document_id, chunk_index)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_chunks_document_id
            ON chunks(document_id)
        """)

        conn.commit()
        logger.info("database_initialized", db_path=str(path))

    except Exception as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise
    finally:
        conn.close()


def create_document(
    title: Optional[str] = None,
    source: Optional[str] = None,
    db_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """Insert a new document row.

    Args:
        title: Optional human-readable title
        source: Optional origin label (filename, path, URL)

    Returns:
        The created document as a dict
    """
    document = {
        "id": uuid.uuid4().hex,
        "title": title,
        "source": source,
        "created_at": _now(),
    }

    conn = get_connection(db_path)
    try:
        conn.execute(
            "INSERT INTO documents (id, title, source, created_at) VALUES (?, ?, ?, ?)",
            (document["id"], title, source, document["created_at"]),
        )
        conn.commit()
        logger.info("document_created", document_id=document["id"])
        return document

    except Exception as e:
        conn.rollback()
        logger.error("document_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def insert_chunks(
    document_id: str,
    rows: Sequence[Tuple[int, str, Optional[List[float]]]],
    db_path: Optional[Path] = None,
) -> List[int]:
    """Insert all chunks of a document in one transaction.

    Args:
        document_id: Owning document
        rows: (chunk_index, content, embedding) tuples in reading order

    Returns:
        Row ids of the inserted chunks, in the same order as rows
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()
    created_at = _now()

    try:
        chunk_ids = []
        for chunk_index, content, embedding in rows:
            cursor.execute("""
                INSERT INTO chunks (
                    document_id, chunk_index, content, embedding_json, created_at
                ) VALUES (?, ?, ?, ?, ?)
            """, (
                document_id,
                chunk_index,
                content,
                json.dumps(embedding) if embedding is not None else None,
                created_at,
            ))
            chunk_ids.append(cursor.lastrowid)

        conn.commit()
        return chunk_ids

    except Exception as e:
        conn.rollback()
        logger.error("chunk_insert_failed", error=str(e), document_id=document_id)
        raise
    finally:
        conn.close()


def get_document(
    document_id: str, db_path: Optional[Path] = None
) -> Optional[Dict[str, Any]]:
    """Fetch a document with its chunk count, or None."""
    conn = get_connection(db_path)
    try:
        row = conn.execute("""
            SELECT d.id, d.title, d.source, d.created_at,
                   COUNT(c.id) AS chunk_count
            FROM documents d
            LEFT JOIN chunks c ON c.document_id = d.id
            WHERE d.id = ?
            GROUP BY d.id
        """, (document_id,)).fetchone()
        return dict(row) if row else None
    finally:
        conn.close()


def get_chunks_for_document(
    document_id: str, db_path: Optional[Path] = None
) -> List[Dict[str, Any]]:
    """List a document's chunks in chunk_index order (without vectors)."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute("""
            SELECT id, document_id, chunk_index, content, created_at
            FROM chunks
            WHERE document_id = ?
            ORDER BY chunk_index
        """, (document_id,)).fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()


def get_chunks_by_ids(
    chunk_ids: List[int], db_path: Optional[Path] = None
) -> List[Dict[str, Any]]:
    """Retrieve chunks by row id (order not guaranteed)."""
    if not chunk_ids:
        return []

    conn = get_connection(db_path)
    try:
        placeholders = ",".join("?" * len(chunk_ids))
        rows = conn.execute(f"""
            SELECT id, document_id, chunk_index, content
            FROM chunks
            WHERE id IN ({placeholders})
        """, chunk_ids).fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()


def get_all_embeddings(db_path: Optional[Path] = None) -> List[Tuple[int, List[float]]]:
    """Load (chunk_id, embedding) pairs for every chunk that has a vector."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute("""
            SELECT id, embedding_json FROM chunks
            WHERE embedding_json IS NOT NULL
            ORDER BY id
        """).fetchall()
        return [(row["id"], json.loads(row["embedding_json"])) for row in rows]
    finally:
        conn.close()


def delete_document(document_id: str, db_path: Optional[Path] = None) -> bool:
    """Delete a document and (by cascade) its chunks.

    Returns:
        True if a document was deleted
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("document_deleted", document_id=document_id)
        return deleted

    except Exception as e:
        conn.rollback()
        logger.error("document_delete_failed", error=str(e), document_id=document_id)
        raise
    finally:
        conn.close()


def delete_chunks(chunk_ids: Sequence[int], db_path: Optional[Path] = None) -> int:
    """Delete chunks by row id in one transaction.

    Returns:
        Number of rows deleted
    """
    if not chunk_ids:
        return 0

    conn = get_connection(db_path)
    try:
        placeholders = ",".join("?" for _ in chunk_ids)
        cursor = conn.execute(
            f"DELETE FROM chunks WHERE id IN ({placeholders})", list(chunk_ids)
        )
        conn.commit()
        return cursor.rowcount

    except Exception as e:
        conn.rollback()
        logger.error("chunk_delete_failed", error=str(e), count=len(chunk_ids))
        raise
    finally:
        conn.close()


def get_counts(db_path: Optional[Path] = None) -> Dict[str, int]:
    """Counts used by operational checks."""
    conn = get_connection(db_path)
    try:
        row = conn.execute("""
            SELECT
                (SELECT COUNT(*) FROM documents) AS documents,
                (SELECT COUNT(*) FROM chunks) AS chunks,
                (SELECT COUNT(*) FROM chunks WHERE embedding_json IS NULL)
                    AS chunks_missing_embedding,
                (SELECT COUNT(*) FROM documents d
                 WHERE NOT EXISTS (
                     SELECT 1 FROM chunks c WHERE c.document_id = d.id
                 )) AS documents_without_chunks
        """).fetchone()
        return dict(row)
    finally:
        conn.close()


def get_sample_chunk(db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """Return the oldest chunk including its decoded embedding, or None."""
    conn = get_connection(db_path)
    try:
        row = conn.execute("""
            SELECT id, document_id, chunk_index, content, embedding_json
            FROM chunks
            ORDER BY id
            LIMIT 1
        """).fetchone()
        if not row:
            return None
        chunk = dict(row)
        raw = chunk.pop("embedding_json")
        chunk["embedding"] = json.loads(raw) if raw else None
        return chunk
    finally:
        conn.close()


def get_recent_chunks(limit: int = 5, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Most recently inserted chunks, newest first."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute("""
            SELECT id, document_id, chunk_index, content, created_at
            FROM chunks
            ORDER BY id DESC
            LIMIT ?
        """, (limit,)).fetchall()
        return [dict(row) for row in rows]
    finally:
        conn.close()
