"""Grounded prompt assembly and answer generation."""
from typing import List, Optional, Tuple
import structlog

from secondbrain import config
from secondbrain.errors import ProviderError, ValidationError
from secondbrain.llm_client import GenerationProvider, get_llm_client
from secondbrain.rag.models import SearchResult
from secondbrain.rag.retriever import Retriever, clamp_k, get_retriever

logger = structlog.get_logger()

NOT_FOUND_MESSAGE = (
    "I couldn't find anything about that in your notes. "
    "Try rephrasing the question or ingest the relevant material first."
)

GROUNDING_INSTRUCTIONS = """You are a helpful assistant acting as a second brain for the user.
The context below comes from the user's own notes and documents.
Answer the question using *only* this context.

Instructions:
1. Treat the context as the user's personal knowledge base.
2. Answer the question comprehensively from that knowledge.
3. If the answer is in the notes, explain it clearly, as if reminding the user of what they wrote or read.
4. If the answer is not in the notes, say that you couldn't find that information in their knowledge base."""


def format_result(position: int, result: SearchResult) -> str:
    """Render one retrieved chunk as a labeled context block."""
    return (
        f"--- Document {position} (Score: {result.similarity:.3f}) ---\n"
        f"{result.content}\n\n"
    )


def build_context(query: str, results: List[SearchResult]) -> str:
    """Build the grounded prompt for a query.

    Blocks appear in the order received. With no results the fixed
    not-found message is returned instead of a prompt.
    """
    if not results:
        return NOT_FOUND_MESSAGE

    context_text = "".join(
        format_result(i, result) for i, result in enumerate(results, 1)
    )

    return (
        f"{GROUNDING_INSTRUCTIONS}\n\n"
        f"Context (User's Notes):\n{context_text}"
        f"Question: {query}\n\n"
        "Answer:"
    )


class AnswerSynthesizer:
    """Turns retrieved chunks into a grounded answer."""

    def __init__(
        self,
        provider: GenerationProvider,
        retriever: Optional[Retriever] = None,
        model: Optional[str] = None,
    ):
        """Initialize the synthesizer.

        Args:
            provider: Generation provider
            retriever: Retriever used by ask()
            model: Generation model (provider default if not set)
        """
        self.provider = provider
        self.retriever = retriever
        self.model = model

    async def prepare_context(
        self, query: str, k: Optional[int] = None
    ) -> Tuple[str, List[SearchResult]]:
        """Retrieve context for a query and build its prompt."""
        if self.retriever is None:
            raise RuntimeError("AnswerSynthesizer has no retriever configured")

        results = await self.retriever.search(query, clamp_k(k, config.CONTEXT_TOP_K))
        prompt = build_context(query.strip(), results)

        logger.info(
            "context_prepared",
            results=len(results),
            prompt_length=len(prompt),
            top_similarity=results[0].similarity if results else None,
        )
        return prompt, results

    async def answer(self, prompt: str) -> str:
        """Generate an answer for a prepared prompt.

        The not-found message is returned as-is; no generation call is made
        for a prompt without grounding context.

        Raises:
            ValidationError: If the prompt is empty
            ProviderError: If generation fails or returns no text
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Missing `prompt`", field="prompt")

        if prompt == NOT_FOUND_MESSAGE:
            logger.info("generation_skipped_no_context")
            return NOT_FOUND_MESSAGE

        answer = await self.provider.generate(prompt, model=self.model)
        if not answer or not answer.strip():
            raise ProviderError(
                "Generation provider returned no text",
                provider=getattr(self.provider, "name", None),
            )
        return answer

    async def ask(
        self, query: str, k: Optional[int] = None
    ) -> Tuple[str, List[SearchResult]]:
        """Retrieve, build the prompt, and answer in one call."""
        prompt, results = await self.prepare_context(query, k)
        if not results:
            return NOT_FOUND_MESSAGE, results
        return await self.answer(prompt), results


# Singleton instance for convenience
_synthesizer_instance: Optional[AnswerSynthesizer] = None


async def get_synthesizer() -> AnswerSynthesizer:
    """Get or create a singleton synthesizer instance."""
    global _synthesizer_instance
    if _synthesizer_instance is None:
        _synthesizer_instance = AnswerSynthesizer(
            provider=get_llm_client(),
            retriever=await get_retriever(),
        )
    return _synthesizer_instance
