#!/usr/bin/env python
"""RAG sanity check - inspect the store and run a smoke-test query.

Verifies:
- The SQLite store can be opened and the index rebuilt
- Chunks exist and carry embeddings
- Feeding a stored embedding back into search returns that same chunk
- A real query can be embedded and matched

Usage:
    python scripts/rag_check.py                 # Query "axolotl"
    python scripts/rag_check.py "your query"    # Custom query
    python scripts/rag_check.py --skip-query    # Store checks only (no provider calls)
"""
import argparse
import asyncio
import sys

from secondbrain import config
from secondbrain.errors import SecondBrainError
from secondbrain.logging_utils import configure_logging
from secondbrain.rag.embedder import get_embedder
from secondbrain.rag.retriever import Retriever
from secondbrain.rag.store_faiss import VectorStore

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")


def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")


def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")


def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")


def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")


def preview(text: str, length: int = 120) -> str:
    flat = " ".join(str(text).split())
    return flat[:length] + ("…" if len(flat) > length else "")


async def main(query: str, skip_query: bool) -> list:
    errors = []

    print_section("Second Brain - RAG Check")
    print_info(f"Database: {config.DB_PATH}")
    print_info(f"Provider: {config.LLM_PROVIDER}")

    # 1. Store contents
    print_section("1. Store")

    store = VectorStore()
    try:
        await store.init_or_load()
    except SecondBrainError as e:
        print_error(f"Failed to load store: {e}")
        return [str(e)]

    stats = await store.get_stats()
    print_info(f"documents total:           {stats.documents}")
    print_info(f"documents without chunks:  {stats.documents_without_chunks}")
    print_info(f"chunks total:              {stats.chunks}")
    print_info(f"chunks with embedding:     {stats.chunks_with_embedding}")
    print_info(f"chunks missing embedding:  {stats.chunks_missing_embedding}")
    print_info(f"indexed vectors:           {stats.indexed_vectors}")

    if stats.chunks == 0:
        print_warning("No chunks found. Ingest a document, then re-run this script.")
        return errors

    if stats.chunks_missing_embedding:
        print_error("Some chunks have no embedding and cannot be searched")
        errors.append("Chunks missing embeddings")
    if stats.documents_without_chunks:
        print_warning("Some documents have no chunks (failed or partial ingestion)")

    # 2. Self-match: a stored vector must find its own chunk
    print_section("2. Self-Match")

    sample = await store.sample_chunk()
    print_info(f"Sample chunk id: {sample['id']}")
    print_info(f"Sample content:  {preview(sample['content'], 80)}")

    if sample["embedding"]:
        print_info(f"Sample embedding length: {len(sample['embedding'])}")
        matches = await store.similarity_search(sample["embedding"], 3)
        if matches and matches[0].chunk_id == sample["id"]:
            print_success(f"Top match is the sample chunk (sim={matches[0].similarity:.3f})")
        else:
            print_error("Self-match did not return the sample chunk first")
            errors.append("Self-match failed")
    else:
        print_error("Sample chunk has no embedding")

    # 3. Recent chunks
    print_section("3. Most Recent Chunks")

    for chunk in await store.recent_chunks(5):
        print(
            f"  - {chunk['id']} doc={chunk['document_id']} "
            f"idx={chunk['chunk_index']} {preview(chunk['content'])}"
        )

    # 4. Query smoke test
    if skip_query:
        return errors

    print_section("4. Query Smoke Test")
    print_info(f"Query: {query!r}")

    retriever = Retriever(store=store, embedder=get_embedder())
    try:
        results = await retriever.search(query, 5)
    except SecondBrainError as e:
        print_error(f"Search failed: {e}")
        errors.append(f"Search failed: {e.message}")
        return errors

    print_info(f"match count: {len(results)}")
    for r in results:
        print(f"  - sim={r.similarity:.3f} chunk={r.chunk_index} doc={r.document_id}")
        print(f"    {preview(r.content, 160)}")

    return errors


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Inspect the RAG store")
    parser.add_argument("query", nargs="*", help="Smoke-test query (default: axolotl)")
    parser.add_argument(
        "--skip-query",
        action="store_true",
        help="Only inspect the store; make no provider calls",
    )
    args = parser.parse_args()

    configure_logging(level="WARNING", fmt="console")
    errors = asyncio.run(main(" ".join(args.query).strip() or "axolotl", args.skip_query))

    print()
    if errors:
        print_error(f"Found {len(errors)} problem(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")
    else:
        print_success("All checks passed")
    sys.exit(1 if errors else 0)
