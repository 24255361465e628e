"""Shared fixtures: fake providers and a store backed by a temporary database."""
import re
import zlib
from unittest.mock import AsyncMock

import pytest

from secondbrain.errors import ProviderError
from secondbrain.rag.chunker import TextChunker
from secondbrain.rag.embedder import EmbeddingOrchestrator
from secondbrain.rag.ingest import IngestPipeline
from secondbrain.rag.retriever import Retriever
from secondbrain.rag.store_faiss import VectorStore
from secondbrain.rag.synthesizer import AnswerSynthesizer

TOKEN_RE = re.compile(r"\w+")


class HashingEmbeddingProvider:
    """Deterministic bag-of-words embedder.

    Identical texts get identical vectors, so a chunk searched with its own
    content is its own nearest neighbour.
    """

    name = "fake"

    def __init__(self, dimension: int = 256, fail_on: int = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            raise ProviderError("fake provider failure", provider=self.name, status=503)

        vector = [0.0] * self.dimension
        for token in TOKEN_RE.findall(text.lower()):
            vector[zlib.crc32(token.encode()) % self.dimension] += 1.0
        return vector


@pytest.fixture
def embedding_provider():
    return HashingEmbeddingProvider()


@pytest.fixture
def embedder(embedding_provider):
    return EmbeddingOrchestrator(embedding_provider, concurrency=2)


@pytest.fixture
def generation_provider():
    provider = AsyncMock()
    provider.name = "fake"
    provider.generate = AsyncMock(return_value="The axolotl is a salamander.")
    return provider


@pytest.fixture
async def store(tmp_path):
    vector_store = VectorStore(db_path=tmp_path / "test.sqlite")
    await vector_store.init_or_load()
    return vector_store


@pytest.fixture
def chunker():
    return TextChunker(max_chars=200, overlap_chars=40)


@pytest.fixture
def pipeline(store, embedder, chunker):
    return IngestPipeline(store=store, embedder=embedder, chunker=chunker)


@pytest.fixture
def retriever(store, embedder):
    return Retriever(store=store, embedder=embedder)


@pytest.fixture
def synthesizer(generation_provider, retriever):
    return AnswerSynthesizer(provider=generation_provider, retriever=retriever)


@pytest.fixture
def notes_text():
    """Three distinct paragraphs, each large enough to become its own chunk."""
    return "\n\n".join([
        "Axolotls are neotenic salamanders native to the lakes of Mexico City. "
        "They keep their external gills for life and can regenerate whole limbs, "
        "parts of the heart and even portions of the brain.",
        "Sourdough starter is a culture of wild yeast and lactobacilli. Feed it "
        "equal weights of flour and water every day, keep it warm, and discard "
        "half before each feeding to keep the acidity in check.",
        "The Raft consensus algorithm elects a leader that replicates a log to "
        "followers. A term number increases on every election and entries are "
        "committed once a majority of servers have stored them.",
    ])
