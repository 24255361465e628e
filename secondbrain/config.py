"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
DB_PATH = Path(os.getenv("DB_PATH", str(DATA_DIR / "secondbrain.sqlite")))

# Provider selection: "ollama" (local) or "gemini" (hosted)
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "ollama")

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "mxbai-embed-large:latest")
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "gemma3:12b")

# Gemini configuration
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_EMBEDDING_MODEL = os.getenv("GEMINI_EMBEDDING_MODEL", "text-embedding-004")
GEMINI_GENERATION_MODEL = os.getenv("GEMINI_GENERATION_MODEL", "gemini-2.5-flash")

# Timeout applied to every provider request (seconds)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60.0"))

# Chunking parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_MAX_CHARS = int(os.getenv("CHUNK_MAX_CHARS", "1200"))      # ≈300 tokens
CHUNK_OVERLAP_CHARS = int(os.getenv("CHUNK_OVERLAP_CHARS", "200"))

# Retrieval parameters
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "8"))
CONTEXT_TOP_K = int(os.getenv("CONTEXT_TOP_K", "3"))
MAX_TOP_K = 50

# Parallel embedding calls per ingestion
EMBED_CONCURRENCY = int(os.getenv("EMBED_CONCURRENCY", "4"))

# Request limits
MAX_TEXT_CHARS = int(os.getenv("MAX_TEXT_CHARS", "1000000"))
MAX_QUERY_CHARS = int(os.getenv("MAX_QUERY_CHARS", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")  # "json" or "console"
