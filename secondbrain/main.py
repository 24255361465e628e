"""Quart application exposing the RAG pipeline over HTTP/JSON."""
from typing import Optional
from quart import Quart, request, jsonify
from pydantic import BaseModel, ValidationError as PydanticValidationError
import structlog

from secondbrain import config
from secondbrain.errors import NotFoundError, SecondBrainError, ValidationError
from secondbrain.llm_client import get_llm_client
from secondbrain.logging_utils import configure_logging
from secondbrain.rag.ingest import get_ingest_pipeline
from secondbrain.rag.retriever import get_retriever
from secondbrain.rag.store_faiss import get_vector_store
from secondbrain.rag.synthesizer import get_synthesizer

configure_logging()

logger = structlog.get_logger()

app = Quart(__name__)


class IngestRequest(BaseModel):
    text: str = ""
    title: Optional[str] = None
    source: Optional[str] = None


class QueryRequest(BaseModel):
    query: str = ""
    k: Optional[int] = None


class GenerateRequest(BaseModel):
    prompt: str = ""


async def _parse(model):
    """Validate the JSON request body against a pydantic model."""
    data = await request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model(**data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid request body",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


def _check_query_length(query: str) -> None:
    if len(query) > config.MAX_QUERY_CHARS:
        raise ValidationError(
            f"Query too long (max {config.MAX_QUERY_CHARS} characters)", field="query"
        )


@app.before_serving
async def startup():
    """Load the store before accepting requests."""
    store = await get_vector_store()
    stats = await store.get_stats()
    logger.info("app_started", provider=config.LLM_PROVIDER, **stats.to_dict())


@app.route("/api/ingest", methods=["POST"])
async def ingest():
    """Chunk, embed and store a text.

    Expects JSON body:
    {
        "text": "raw text",
        "title": "optional title",
        "source": "optional origin label"
    }

    Returns JSON:
    {
        "document_id": "hex id",
        "chunks_inserted": 3
    }
    """
    body = await _parse(IngestRequest)
    pipeline = await get_ingest_pipeline()
    result = await pipeline.ingest(body.text, title=body.title, source=body.source)

    return jsonify({
        "document_id": result.document_id,
        "chunks_inserted": result.chunk_count,
    })


@app.route("/api/search", methods=["POST"])
async def search():
    """Semantic search over stored chunks.

    Expects JSON body: {"query": "text", "k": 8}

    Returns JSON: {"results": [{chunk_id, document_id, chunk_index, content, similarity}, ...]}
    """
    body = await _parse(QueryRequest)
    _check_query_length(body.query)

    retriever = await get_retriever()
    results = await retriever.search(body.query, body.k)

    return jsonify({"results": [r.to_dict() for r in results]})


@app.route("/api/prepare-context", methods=["POST"])
async def prepare_context():
    """Retrieve context for a query and build the grounded prompt.

    Expects JSON body: {"query": "text", "k": 3}

    Returns JSON: {"prompt": "...", "results": [...]}
    """
    body = await _parse(QueryRequest)
    _check_query_length(body.query)

    synthesizer = await get_synthesizer()
    prompt, results = await synthesizer.prepare_context(body.query, body.k)

    return jsonify({
        "prompt": prompt,
        "results": [r.to_dict() for r in results],
    })


@app.route("/api/generate-answer", methods=["POST"])
async def generate_answer():
    """Answer a prepared prompt.

    Expects JSON body: {"prompt": "..."}

    Returns JSON: {"answer": "..."}
    """
    body = await _parse(GenerateRequest)

    synthesizer = await get_synthesizer()
    answer = await synthesizer.answer(body.prompt)

    return jsonify({"answer": answer})


@app.route("/api/ask", methods=["POST"])
async def ask():
    """Retrieve context and answer a question in one round trip.

    Expects JSON body: {"query": "text", "k": 3}

    Returns JSON: {"answer": "...", "results": [...]}
    """
    body = await _parse(QueryRequest)
    _check_query_length(body.query)

    synthesizer = await get_synthesizer()
    answer, results = await synthesizer.ask(body.query, body.k)

    return jsonify({
        "answer": answer,
        "results": [r.to_dict() for r in results],
    })


@app.route("/api/documents/<document_id>", methods=["GET"])
async def get_document(document_id: str):
    """Return a document and its chunks (without vectors)."""
    store = await get_vector_store()
    return jsonify(await store.get_document(document_id))


@app.route("/api/documents/<document_id>", methods=["DELETE"])
async def delete_document(document_id: str):
    """Delete a document and its chunks.

    Returns:
        204 No Content if successful
        404 Not Found if document doesn't exist
    """
    store = await get_vector_store()
    if not await store.delete_document(document_id):
        raise NotFoundError(
            f"Document not found: {document_id}", details={"document_id": document_id}
        )
    return "", 204


@app.route("/api/stats")
async def stats():
    """Chunk and document counts for operational checks."""
    store = await get_vector_store()
    return jsonify((await store.get_stats()).to_dict())


@app.route("/health/ready")
async def health_ready():
    """Readiness probe - check if the provider is reachable."""
    checks = {"status": "healthy", "provider": config.LLM_PROVIDER}

    try:
        checks.update(await get_llm_client().check_ready())
        models_ok = all(v for k, v in checks.items() if k.endswith("_model"))
        if not models_ok:
            checks["status"] = "unhealthy"
            checks["error"] = "Configured model missing"

    except SecondBrainError as e:
        logger.error("health_check_failed", error=str(e))
        checks["status"] = "unhealthy"
        checks["error"] = e.message

    status_code = 200 if checks["status"] == "healthy" else 503
    return jsonify(checks), status_code


@app.route("/health/live")
async def health_live():
    """Liveness probe - check if app is running."""
    return jsonify({"status": "alive"}), 200


@app.errorhandler(SecondBrainError)
async def pipeline_error(error: SecondBrainError):
    """Render pipeline errors as structured JSON."""
    log = logger.warning if error.status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.path,
        error=error.message,
        error_type=type(error).__name__,
        status_code=error.status_code,
    )
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(404)
async def not_found(error):
    """Handle 404 errors."""
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
async def internal_error(error):
    """Handle 500 errors."""
    logger.error("internal_server_error", error=str(error))
    return jsonify({"error": "Internal server error"}), 500


def run() -> None:
    """Run the development server."""
    app.run(host="0.0.0.0", port=5000, debug=False)


if __name__ == "__main__":
    run()
