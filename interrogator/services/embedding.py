"""
Embeddings via a local Ollama server (nomic-embed-text by default).

Batch embeddings reduce latency and improve throughput. A failing batch aborts
the whole call with an error naming the batch; nothing is silently skipped.
"""

import logging
import math

import httpx

from interrogator.core.config import EMBED_API_TIMEOUT, EMBED_BATCH_SIZE, OLLAMA_BASE_URL, OLLAMA_EMBED_MODEL
from interrogator.core.errors import AuthorizationError, EmbeddingBatchError, TransportError

logger = logging.getLogger(__name__)


def _normalize(vec: list[float]) -> list[float]:
    # Unit length so Milvus COSINE scores are comparable across batches
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


class OllamaEmbedder:
    """Converts texts to fixed-length vectors through Ollama's /api/embed endpoint."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = OLLAMA_EMBED_MODEL,
        batch_size: int = EMBED_BATCH_SIZE,
        timeout: float = EMBED_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.batch_size = max(1, batch_size)
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _embed_batch(self, client: httpx.AsyncClient, batch: list[str]) -> list[list[float]]:
        response = await client.post("/api/embed", json={"model": self.model, "input": batch})
        if response.status_code in (401, 403):
            raise AuthorizationError("Embedding service rejected credentials", response.status_code)
        if response.status_code != 200:
            raise TransportError(f"Embedding API error: {response.text[:200]}", response.status_code)
        vectors = response.json().get("embeddings") or []
        if len(vectors) != len(batch):
            raise TransportError(f"Embedding API returned {len(vectors)} vectors for {len(batch)} inputs")
        return [_normalize(v) for v in vectors]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        total_batches = math.ceil(len(texts) / self.batch_size)
        logger.info(
            "[embedding:embed_documents] IN  texts=%d batch_size=%d batches=%d",
            len(texts), self.batch_size, total_batches,
        )
        results: list[list[float]] = []
        async with self._client() as client:
            for i in range(0, len(texts), self.batch_size):
                batch = texts[i : i + self.batch_size]
                batch_number = i // self.batch_size + 1
                try:
                    results.extend(await self._embed_batch(client, batch))
                except (TransportError, httpx.HTTPError) as e:
                    logger.warning("[embedding:embed_documents] batch %d/%d failed: %s", batch_number, total_batches, e)
                    raise EmbeddingBatchError(
                        batch_number, total_batches, str(e), getattr(e, "status", None)
                    ) from e
                logger.info("[embedding:embed_documents] batch %d/%d done", batch_number, total_batches)
        logger.info("[embedding:embed_documents] OUT vectors=%d", len(results))
        return results

    async def embed_query(self, text: str) -> list[float]:
        async with self._client() as client:
            try:
                vectors = await self._embed_batch(client, [text])
            except httpx.HTTPError as e:
                raise TransportError(f"Failed to embed query: {e}") from e
        return vectors[0]
