"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Document loading
ALLOWED_EXTENSIONS: frozenset[str] = frozenset({".txt", ".html", ".htm", ".pdf", ".xlsx", ".xls"})
MAX_FILE_SIZE_BYTES: int = 50 * 1024 * 1024

# Chunking defaults (tuning these affects retrieval quality)
CHUNK_SIZE: int = 1000
CHUNK_OVERLAP: int = 200

# Retrieval (witness RAG mode)
RETRIEVAL_TOP_K: int = 5
# Minimum cosine similarity for a retrieved chunk; 0 disables the filter
SCORE_THRESHOLD: float = 0.0
EMBED_BATCH_SIZE: int = 10
GENERATION_TEMPERATURE: float = 0.1
GENERATION_MAX_TOKENS: int = 1000

# Ollama (local embeddings + answer generation)
OLLAMA_BASE_URL: str = (
    os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").strip() or "http://localhost:11434"
)
OLLAMA_EMBED_MODEL: str = (
    os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text").strip() or "nomic-embed-text"
)
OLLAMA_GENERATION_MODEL: str = (
    os.getenv("OLLAMA_GENERATION_MODEL", "qwen2.5:7b").strip() or "qwen2.5:7b"
)

# Milvus. A local file path uses Milvus Lite; a URL plus token targets Milvus Cloud.
MILVUS_URI: str = os.getenv("MILVUS_URI", "data/witness.db").strip() or "data/witness.db"
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
DEFAULT_COLLECTION_NAME: str = "witness_documents"

# Workspace chat service (witness direct mode, AnythingLLM-compatible API)
ANYTHINGLLM_API_KEY: str = os.getenv("ANYTHINGLLM_API_KEY", "").strip()
ANYTHINGLLM_BASE_URL: str = (
    os.getenv("ANYTHINGLLM_BASE_URL", "http://localhost:3001").strip() or "http://localhost:3001"
)
WITNESS_WORKSPACE_SLUG: str = os.getenv("WITNESS_WORKSPACE_SLUG", "").strip()

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0
WORKSPACE_CHAT_TIMEOUT: float = 300.0
GENERATION_API_TIMEOUT: float = 120.0

# Detective LLM: OpenAI (primary) or Hugging Face router.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)
QUESTION_MAX_TOKENS: int = 200
ANALYSIS_MAX_TOKENS: int = 1000

# Interrogation loop
MIN_ITERATIONS: int = 5
MAX_ITERATIONS: int = 20
DEFAULT_ITERATIONS: int = 10
