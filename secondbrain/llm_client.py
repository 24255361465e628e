"""Embedding and generation provider clients with error handling.

Both clients speak plain REST through httpx and implement the same two
capabilities, so the rest of the pipeline does not care which backend is used.
Every transport failure, timeout, HTTP error or malformed payload is raised as
ProviderError.
"""
from typing import Any, Dict, List, Optional, Protocol
import httpx
import structlog

from secondbrain import config
from secondbrain.errors import ProviderError

logger = structlog.get_logger()


class EmbeddingProvider(Protocol):
    """Turns one text into a fixed-length vector."""

    name: str

    async def embed(self, text: str) -> List[float]:
        ...


class GenerationProvider(Protocol):
    """Turns a prompt into answer text."""

    name: str

    async def generate(self, prompt: str, model: Optional[str] = None) -> str:
        ...


def _validate_vector(values: Any, provider: str) -> List[float]:
    if not isinstance(values, list) or not values:
        raise ProviderError("Embedding response missing vector values", provider=provider)
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise ProviderError(
            "Embedding response contains non-numeric values", provider=provider
        ) from e


class _HTTPProvider:
    """Shared request handling for REST providers."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL
            timeout: Request timeout in seconds (default from config)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout if timeout is None else timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._client(timeout) as client:
                response = await client.request(method, url, json=json, params=params)
                response.raise_for_status()
                data = response.json()

        except httpx.TimeoutException as e:
            logger.error("provider_timeout", provider=self.name, path=path)
            raise ProviderError(
                f"{self.name} request timed out", provider=self.name
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:500]
            logger.error(
                "provider_http_error", provider=self.name, path=path, status_code=status
            )
            raise ProviderError(
                f"{self.name} request failed: {status} {body}",
                provider=self.name,
                status=status,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "provider_connection_error",
                provider=self.name,
                base_url=self.base_url,
                error=str(e),
            )
            raise ProviderError(
                f"{self.name} is unreachable: {e}", provider=self.name
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned invalid JSON", provider=self.name
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} returned an unexpected payload", provider=self.name
            )
        return data


class OllamaClient(_HTTPProvider):
    """Async client for a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        base_url: str = None,
        embedding_model: str = None,
        generation_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url or config.OLLAMA_BASE_URL, timeout, transport)
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.generation_model = generation_model or config.GENERATION_MODEL

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for one text.

        Raises:
            ProviderError: On API errors or an empty embedding
        """
        logger.debug(
            "ollama_embedding_request",
            model=self.embedding_model,
            prompt_length=len(text),
        )

        data = await self._request(
            "POST",
            "/api/embeddings",
            json={"model": self.embedding_model, "prompt": text},
        )
        vector = _validate_vector(data.get("embedding"), self.name)

        logger.debug(
            "ollama_embedding_response",
            model=self.embedding_model,
            dimension=len(vector),
        )
        return vector

    async def generate(self, prompt: str, model: Optional[str] = None) -> str:
        """Run a single non-streaming completion.

        Raises:
            ProviderError: On API errors or empty response text
        """
        model = model or self.generation_model

        logger.info("ollama_generate_request", model=model, prompt_length=len(prompt))

        data = await self._request(
            "POST",
            "/api/generate",
            json={"model": model, "prompt": prompt, "stream": False},
        )
        text = data.get("response")
        if not text or not str(text).strip():
            raise ProviderError("Ollama response missing text", provider=self.name)

        logger.info("ollama_generate_response", model=model, response_length=len(text))
        return text

    async def list_models(self) -> List[str]:
        """List all available Ollama models."""
        data = await self._request("GET", "/api/tags", timeout=5.0)
        return [m["name"] for m in data.get("models", [])]

    async def check_ready(self) -> Dict[str, Any]:
        """Report whether the configured models are installed."""
        models = await self.list_models()
        return {
            "provider": self.name,
            "embedding_model": self.embedding_model in models,
            "generation_model": self.generation_model in models,
        }


class GeminiClient(_HTTPProvider):
    """Async client for the Gemini REST API."""

    name = "gemini"

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        embedding_model: str = None,
        generation_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url or config.GEMINI_BASE_URL, timeout, transport)
        self.api_key = api_key or config.GEMINI_API_KEY
        self.embedding_model = embedding_model or config.GEMINI_EMBEDDING_MODEL
        self.generation_model = generation_model or config.GEMINI_GENERATION_MODEL

    def _params(self) -> Dict[str, str]:
        if not self.api_key:
            raise ProviderError("GEMINI_API_KEY is not set", provider=self.name)
        return {"key": self.api_key}

    async def embed(self, text: str) -> List[float]:
        data = await self._request(
            "POST",
            f"/models/{self.embedding_model}:embedContent",
            json={"content": {"parts": [{"text": text}]}},
            params=self._params(),
        )
        values = (data.get("embedding") or {}).get("values")
        return _validate_vector(values, self.name)

    async def generate(self, prompt: str, model: Optional[str] = None) -> str:
        model = model or self.generation_model

        logger.info("gemini_generate_request", model=model, prompt_length=len(prompt))

        data = await self._request(
            "POST",
            f"/models/{model}:generateContent",
            json={"contents": [{"parts": [{"text": prompt}]}]},
            params=self._params(),
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if not text or not str(text).strip():
            raise ProviderError("Gemini response missing text", provider=self.name)

        logger.info("gemini_generate_response", model=model, response_length=len(text))
        return text

    async def check_ready(self) -> Dict[str, Any]:
        data = await self._request(
            "GET", f"/models/{self.generation_model}", params=self._params(), timeout=5.0
        )
        return {"provider": self.name, "generation_model": bool(data.get("name"))}


def create_llm_client(provider: str = None):
    """Build the configured provider client.

    Args:
        provider: "ollama" or "gemini" (default from config)

    Raises:
        ValueError: For an unknown provider name
    """
    provider = (provider or config.LLM_PROVIDER).lower()
    if provider == "ollama":
        return OllamaClient()
    if provider == "gemini":
        return GeminiClient()
    raise ValueError(f"Unknown LLM provider: {provider}")


# Global client instance (created lazily)
_client_instance = None


def get_llm_client():
    """Get the singleton provider client."""
    global _client_instance
    if _client_instance is None:
        _client_instance = create_llm_client()
    return _client_instance
