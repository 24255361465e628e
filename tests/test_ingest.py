"""Tests for the ingestion pipeline, including the ingest-then-search round trip."""
from unittest.mock import AsyncMock

import pytest

from secondbrain.errors import ConsistencyError, ProviderError, StoreError, ValidationError
from secondbrain.rag.embedder import EmbeddingOrchestrator
from secondbrain.rag.ingest import IngestPipeline

from conftest import HashingEmbeddingProvider


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   \n\n\t "])
async def test_empty_text_is_rejected_before_any_write(pipeline, store, embedding_provider, text):
    with pytest.raises(ValidationError) as exc_info:
        await pipeline.ingest(text)

    assert exc_info.value.details["field"] == "text"
    assert (await store.get_stats()).documents == 0
    assert embedding_provider.calls == []


@pytest.mark.asyncio
async def test_ingest_stores_every_chunk_in_order(pipeline, store, chunker, notes_text):
    expected = chunker.chunk_text(notes_text)

    result = await pipeline.ingest(notes_text, title="Notes", source="notes.md")

    assert result.chunk_count == len(expected) > 1
    document = await store.get_document(result.document_id)
    assert document["title"] == "Notes"
    assert document["source"] == "notes.md"
    assert [c["chunk_index"] for c in document["chunks"]] == list(range(len(expected)))
    assert [c["content"] for c in document["chunks"]] == [c.content for c in expected]
    assert store.index.ntotal == len(expected)


@pytest.mark.asyncio
async def test_provider_failure_leaves_document_without_chunks(store, chunker, notes_text):
    provider = HashingEmbeddingProvider(fail_on=2)
    pipeline = IngestPipeline(store, EmbeddingOrchestrator(provider, concurrency=1), chunker)

    with pytest.raises(ProviderError):
        await pipeline.ingest(notes_text)

    stats = await store.get_stats()
    assert stats.documents == 1
    assert stats.documents_without_chunks == 1
    assert stats.chunks == 0


@pytest.mark.asyncio
async def test_embedding_count_mismatch_is_fatal(store, chunker, notes_text):
    embedder = AsyncMock()
    embedder.embed_texts = AsyncMock(return_value=[[1.0, 0.0]])
    pipeline = IngestPipeline(store, embedder, chunker)

    with pytest.raises(ConsistencyError, match="count mismatch"):
        await pipeline.ingest(notes_text)

    assert (await store.get_stats()).chunks == 0


@pytest.mark.asyncio
async def test_store_failure_propagates(embedder, chunker):
    store = AsyncMock()
    store.create_document = AsyncMock(return_value="doc-1")
    store.insert_chunks = AsyncMock(side_effect=StoreError("disk full"))
    pipeline = IngestPipeline(store, embedder, chunker)

    with pytest.raises(StoreError, match="disk full"):
        await pipeline.ingest("A short note.")

    store.create_document.assert_awaited_once_with(title=None, source=None)


@pytest.mark.asyncio
async def test_too_long_text_is_rejected(pipeline, monkeypatch):
    monkeypatch.setattr("secondbrain.config.MAX_TEXT_CHARS", 10)

    with pytest.raises(ValidationError, match="too long"):
        await pipeline.ingest("x" * 11)


@pytest.mark.asyncio
async def test_searching_with_chunk_content_returns_that_chunk(pipeline, retriever, notes_text):
    result = await pipeline.ingest(notes_text, title="Notes")
    document = await pipeline.store.get_document(result.document_id)

    for chunk in document["chunks"]:
        results = await retriever.search(chunk["content"], 3)
        assert results[0].chunk_id == chunk["id"]
        assert results[0].similarity == pytest.approx(1.0, abs=1e-4)
