"""
Document ingestion: load, split, embed, and index the witness document.

Responsibility: Run the one-time pipeline that turns a source document into a
searchable chunk index. Called by the retrieval witness; no HTTP here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from interrogator.core.errors import IngestionError
from interrogator.ingest.loader import Document, load_document
from interrogator.services.text_processing import RecursiveTextSplitter
from interrogator.services.vector_store import MilvusVectorStore

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """What a finished ingestion produced."""

    source: str
    chunk_count: int
    estimated_chunk_count: int
    total_characters: int


async def ingest_document(
    path: str,
    splitter: RecursiveTextSplitter,
    store: MilvusVectorStore,
    loader: Callable[[str], Document] = load_document,
) -> IngestionReport:
    """
    Load → split → create-or-connect → clear stale rows → add.

    Any failure is raised as IngestionError (the original exception chained)
    so every caller waiting on this attempt sees the same error kind.
    """
    logger.info("[ingestion:ingest_document] IN  path=%s collection=%s", path, store.collection_name)
    try:
        doc = await asyncio.to_thread(loader, path)
        estimate = splitter.estimated_chunk_count([doc])
        chunks = splitter.split_documents([doc])
        logger.info(
            "[ingestion:ingest_document] %s → %d chunks (estimated %d)",
            doc.metadata.get("filename", path), len(chunks), estimate,
        )
        await store.create_or_connect()
        # Rows left by an earlier process would duplicate every chunk
        await store.clear()
        await store.add(chunks)
    except IngestionError:
        raise
    except Exception as e:
        logger.warning("[ingestion:ingest_document] failed for %s: %s", path, e)
        raise IngestionError(f"Document processing failed: {e}") from e

    report = IngestionReport(
        source=str(path),
        chunk_count=len(chunks),
        estimated_chunk_count=estimate,
        total_characters=len(doc.text),
    )
    logger.info("[ingestion:ingest_document] OUT %s", report)
    return report
