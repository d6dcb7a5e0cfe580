"""
Vector store client: Milvus connection and chunk storage/search for one named collection.

Responsibility: Create or connect to a collection, embed and insert chunks,
similarity search, and wipe the collection's rows without dropping it.
pymilvus is synchronous; calls run in a worker thread so the event loop stays free.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from interrogator.core.config import MILVUS_TOKEN, MILVUS_URI
from interrogator.core.errors import TransportError
from interrogator.services.embedding import OllamaEmbedder
from interrogator.services.text_processing import Chunk

logger = logging.getLogger(__name__)

OUTPUT_FIELDS = ["text", "source", "filename", "chunk_index", "total_chunks", "chunk_size"]


def get_milvus_client(uri: str = MILVUS_URI, token: str = MILVUS_TOKEN) -> Any:
    """Connect to Milvus. A non-URL uri is a Milvus Lite file; its directory is created."""
    from pymilvus import MilvusClient

    if not uri.startswith(("http://", "https://", "tcp://")):
        Path(uri).resolve().parent.mkdir(parents=True, exist_ok=True)
    client = MilvusClient(uri=uri, token=token)
    logger.info("Milvus connection established uri=%s", uri)
    return client


class MilvusVectorStore:
    """
    One Milvus collection holding witness chunks.

    Embeddings are computed by the store's own embedder binding on add() and
    search(); callers only deal in Chunk objects and query strings.
    """

    def __init__(
        self,
        embedder: OllamaEmbedder,
        collection_name: str,
        uri: str = MILVUS_URI,
        token: str = MILVUS_TOKEN,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.embedder = embedder
        self.collection_name = collection_name
        self._client_factory = client_factory or (lambda: get_milvus_client(uri, token))
        self._client: Any = None

    async def create_or_connect(self) -> None:
        """Connect; the collection is created on first add() once the vector dimension is known."""
        self._client = await asyncio.to_thread(self._client_factory)
        exists = await asyncio.to_thread(self._client.has_collection, self.collection_name)
        logger.info(
            "[vector_store:create_or_connect] collection=%s exists=%s", self.collection_name, exists
        )

    def _require_client(self) -> Any:
        if self._client is None:
            raise TransportError("Vector store not connected. Call create_or_connect() first.")
        return self._client

    async def add(self, chunks: list[Chunk]) -> None:
        """Embed each chunk and insert it with its metadata, then flush."""
        if not chunks:
            return
        client = self._require_client()
        embeddings = await self.embedder.embed_documents([c.text for c in chunks])

        def _insert() -> None:
            if not client.has_collection(self.collection_name):
                client.create_collection(
                    collection_name=self.collection_name,
                    dimension=len(embeddings[0]),
                    primary_field_name="id",
                    vector_field_name="vector",
                    metric_type="COSINE",
                    auto_id=True,
                )
                logger.info("Collection %s created (dim=%s)", self.collection_name, len(embeddings[0]))
            rows = []
            for c, emb in zip(chunks, embeddings):
                meta = c.metadata
                rows.append({
                    "vector": emb,
                    "text": c.text,
                    "source": meta.get("source", ""),
                    "filename": meta.get("filename", ""),
                    "chunk_index": meta.get("chunk_index", 0),
                    "total_chunks": meta.get("total_chunks", 0),
                    "chunk_size": meta.get("chunk_size", len(c.text)),
                })
            client.insert(collection_name=self.collection_name, data=rows)
            client.flush(collection_name=self.collection_name)

        try:
            await asyncio.to_thread(_insert)
        except Exception as e:
            raise TransportError(f"Failed to add chunks to {self.collection_name}: {e}") from e
        logger.info("Embedded and stored %d chunks in %s", len(chunks), self.collection_name)

    async def search(self, query: str, k: int = 5, score_threshold: float | None = None) -> list[Chunk]:
        """
        Top-k chunks by cosine similarity. With score_threshold, hits scoring
        below it are dropped (COSINE distance in Milvus is a similarity).
        """
        logger.info("[vector_store:search] IN  query=%r k=%d threshold=%s", query[:80], k, score_threshold)
        if not query or not query.strip():
            return []
        client = self._require_client()
        has = await asyncio.to_thread(client.has_collection, self.collection_name)
        if not has:
            logger.warning("[vector_store:search] collection %s does not exist", self.collection_name)
            return []
        query_vec = await self.embedder.embed_query(query.strip())
        try:
            results = await asyncio.to_thread(
                client.search,
                collection_name=self.collection_name,
                data=[query_vec],
                limit=k,
                output_fields=OUTPUT_FIELDS,
            )
        except Exception as e:
            raise TransportError(f"Search failed: {e}") from e

        hits = results[0] if results else []
        chunks: list[Chunk] = []
        for h in hits:
            score = float(h.get("distance", h.get("score", 0.0)))
            if score_threshold and score < score_threshold:
                continue
            e = h.get("entity") or h
            meta = {f: e.get(f) for f in OUTPUT_FIELDS if f != "text"}
            meta["score"] = score
            chunks.append(Chunk(text=e.get("text", ""), metadata=meta))
        logger.info(
            "[vector_store:search] OUT hits=%d kept=%d first_scores=%s",
            len(hits), len(chunks), [round(c.metadata["score"], 4) for c in chunks[:5]],
        )
        return chunks

    async def clear(self) -> None:
        """Delete every row; the collection itself survives."""
        client = self._require_client()

        def _clear() -> None:
            if client.has_collection(self.collection_name):
                client.delete(collection_name=self.collection_name, filter="id >= 0")
                client.flush(collection_name=self.collection_name)

        await asyncio.to_thread(_clear)
        logger.info("Collection %s cleared", self.collection_name)

    async def count(self) -> int:
        client = self._require_client()

        def _count() -> int:
            if not client.has_collection(self.collection_name):
                return 0
            stats = client.get_collection_stats(collection_name=self.collection_name)
            return int(stats.get("row_count", 0))

        return await asyncio.to_thread(_count)

    async def close(self) -> None:
        """Release the Milvus connection; create_or_connect() opens a new one."""
        client, self._client = self._client, None
        if client is None:
            return
        await asyncio.to_thread(client.close)
        logger.info("[vector_store:close] collection=%s connection closed", self.collection_name)
