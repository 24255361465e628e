"""Batch embedding with ordered output and all-or-nothing failure."""
from typing import List, Optional
import asyncio
import structlog

from secondbrain import config
from secondbrain.errors import ProviderError
from secondbrain.llm_client import EmbeddingProvider, get_llm_client

logger = structlog.get_logger()


class EmbeddingOrchestrator:
    """Maps texts to embedding vectors through a single provider.

    Output index i always corresponds to input index i. Provider calls run
    concurrently in windows of ``concurrency``; the first failure cancels the
    in-flight calls and aborts the batch, so callers never see partial results.
    """

    def __init__(self, provider: EmbeddingProvider, concurrency: int = None):
        self.provider = provider
        self.concurrency = max(1, concurrency or config.EMBED_CONCURRENCY)

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts.

        Args:
            texts: Texts to embed, in order

        Returns:
            One vector per input, in input order

        Raises:
            ProviderError: If any provider call fails or returns a malformed vector
        """
        if not texts:
            return []

        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.concurrency):
            window = texts[i : i + self.concurrency]
            tasks = [asyncio.ensure_future(self._embed_one(t)) for t in window]
            try:
                embeddings.extend(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    task.cancel()
                raise

            logger.debug(
                "embeddings_window_generated",
                window_size=len(window),
                total_so_far=len(embeddings),
            )

        dimensions = {len(v) for v in embeddings}
        if len(dimensions) != 1:
            raise ProviderError(
                "Provider returned vectors of differing length",
                provider=getattr(self.provider, "name", None),
                details={"dimensions": sorted(dimensions)},
            )

        logger.info(
            "embeddings_generated",
            count=len(embeddings),
            dimension=len(embeddings[0]),
        )
        return embeddings

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single text as a one-element batch."""
        [vector] = await self.embed_texts([text])
        return vector

    async def _embed_one(self, text: str) -> List[float]:
        try:
            vector = await self.provider.embed(text)
        except ProviderError:
            logger.error("embedding_generation_failed", text_preview=text[:100])
            raise
        except Exception as e:
            logger.error(
                "embedding_generation_failed",
                text_preview=text[:100],
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderError(
                f"Failed to generate embedding: {e}",
                provider=getattr(self.provider, "name", None),
            ) from e

        if not vector:
            raise ProviderError(
                "Empty embedding returned for text",
                provider=getattr(self.provider, "name", None),
            )
        return list(vector)


def get_embedder(provider: Optional[EmbeddingProvider] = None) -> EmbeddingOrchestrator:
    """Build an orchestrator over the given (or configured) provider."""
    return EmbeddingOrchestrator(provider or get_llm_client())
