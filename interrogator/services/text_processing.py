"""
Text processing for RAG: recursive chunking and chunk-count estimation.

Chunk quality directly impacts retrieval accuracy. The splitter tries the
coarsest separator first (blank line) and only falls back to finer ones
(line, sentence, clause, word, character) for pieces that are still too long.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable

from interrogator.core.config import CHUNK_OVERLAP, CHUNK_SIZE
from interrogator.ingest.loader import Document

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ", "")


@dataclass(frozen=True)
class Chunk:
    """A piece of a document; metadata carries source info plus chunk_index/total_chunks/chunk_size."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def estimate_chunk_count(total_length: int, chunk_size: int, overlap: int) -> int:
    """
    Estimate how many chunks a text of total_length produces, without splitting.

    max(1, ceil((total - overlap) / (size - overlap))); 1 when size <= 0 or overlap >= size.
    """
    if chunk_size <= 0:
        return 1
    effective = chunk_size - overlap
    if effective <= 0:
        return 1
    return max(1, math.ceil((total_length - overlap) / max(1, effective)))


class RecursiveTextSplitter:
    """Character-based recursive splitter with overlap between adjacent chunks."""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        separators: Iterable[str] = DEFAULT_SEPARATORS,
    ) -> None:
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators)

    def split_text(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []
        return self._split(text, self.separators)

    def split_documents(self, docs: list[Document]) -> list[Chunk]:
        """Split each document and number the chunks across the whole batch."""
        pieces: list[tuple[str, dict[str, Any]]] = []
        for doc in docs:
            for piece in self.split_text(doc.text):
                pieces.append((piece, doc.metadata))
        total = len(pieces)
        chunks = [
            Chunk(
                text=piece,
                metadata={**meta, "chunk_index": i, "total_chunks": total, "chunk_size": len(piece)},
            )
            for i, (piece, meta) in enumerate(pieces)
        ]
        logger.info(
            "[text_processing:split_documents] docs=%d chunks=%d chunk_size=%d overlap=%d",
            len(docs), total, self.chunk_size, self.chunk_overlap,
        )
        return chunks

    def estimated_chunk_count(self, docs: list[Document]) -> int:
        total_length = sum(len(d.text) for d in docs)
        return estimate_chunk_count(total_length, self.chunk_size, self.chunk_overlap)

    def _split(self, text: str, separators: list[str]) -> list[str]:
        # First separator present in the text wins; "" always matches (characters).
        separator = separators[-1]
        remaining: list[str] = []
        for i, sep in enumerate(separators):
            if sep == "":
                separator = sep
                break
            if sep in text:
                separator = sep
                remaining = separators[i + 1:]
                break

        splits = [s for s in (text.split(separator) if separator else list(text)) if s]

        chunks: list[str] = []
        good: list[str] = []
        for piece in splits:
            if len(piece) < self.chunk_size:
                good.append(piece)
                continue
            if good:
                chunks.extend(self._merge(good, separator))
                good = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if good:
            chunks.extend(self._merge(good, separator))
        return chunks

    def _merge(self, splits: list[str], separator: str) -> list[str]:
        """Greedily pack splits into chunks <= chunk_size, carrying up to chunk_overlap chars forward."""
        sep_len = len(separator)
        docs: list[str] = []
        current: list[str] = []
        total = 0
        for piece in splits:
            length = len(piece)
            if total + length + (sep_len if current else 0) > self.chunk_size:
                if total > self.chunk_size:
                    logger.warning(
                        "[text_processing:merge] chunk of %d chars exceeds chunk_size=%d",
                        total, self.chunk_size,
                    )
                if current:
                    joined = separator.join(current).strip()
                    if joined:
                        docs.append(joined)
                    while total > self.chunk_overlap or (
                        total + length + (sep_len if current else 0) > self.chunk_size and total > 0
                    ):
                        total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                        current.pop(0)
            current.append(piece)
            total += length + (sep_len if len(current) > 1 else 0)
        joined = separator.join(current).strip()
        if joined:
            docs.append(joined)
        return docs
