"""Tests for the retrieval coordinator."""
from unittest.mock import AsyncMock

import pytest

from secondbrain.errors import ValidationError
from secondbrain.rag.models import SearchResult
from secondbrain.rag.retriever import Retriever, clamp_k


@pytest.fixture
def mock_store():
    store = AsyncMock()
    store.similarity_search = AsyncMock(return_value=[])
    return store


@pytest.fixture
def mock_embedder():
    embedder = AsyncMock()
    embedder.embed_query = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return embedder


@pytest.mark.parametrize(
    "k, expected",
    [(1000, 50), (50, 50), (0, 1), (-3, 1), (5, 5), (None, 8)],
)
def test_clamp_k(k, expected):
    assert clamp_k(k) == expected


def test_clamp_k_uses_given_default():
    assert clamp_k(None, 3) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("k, expected", [(1000, 50), (0, 1), (None, 8), (4, 4)])
async def test_search_clamps_k_before_calling_store(mock_store, mock_embedder, k, expected):
    retriever = Retriever(store=mock_store, embedder=mock_embedder)

    await retriever.search("axolotl", k)

    mock_store.similarity_search.assert_awaited_once_with([0.1, 0.2, 0.3], expected)


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None])
async def test_empty_query_is_rejected(mock_store, mock_embedder, query):
    retriever = Retriever(store=mock_store, embedder=mock_embedder)

    with pytest.raises(ValidationError):
        await retriever.search(query)

    mock_embedder.embed_query.assert_not_called()
    mock_store.similarity_search.assert_not_called()


@pytest.mark.asyncio
async def test_results_are_returned_in_store_order(mock_store, mock_embedder):
    ranked = [
        SearchResult(chunk_id=7, document_id="d1", chunk_index=2, content="best", similarity=0.9),
        SearchResult(chunk_id=3, document_id="d2", chunk_index=0, content="next", similarity=0.4),
    ]
    mock_store.similarity_search = AsyncMock(return_value=ranked)
    retriever = Retriever(store=mock_store, embedder=mock_embedder)

    assert await retriever.search("  what is best  ") == ranked
    mock_embedder.embed_query.assert_awaited_once_with("what is best")


@pytest.mark.asyncio
async def test_no_matches_is_not_an_error(mock_store, mock_embedder):
    retriever = Retriever(store=mock_store, embedder=mock_embedder)

    assert await retriever.search("anything") == []
