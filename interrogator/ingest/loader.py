# Document loader for the witness RAG pipeline. No embeddings, no vector DB, no chunking.
# Supports .txt, .html/.htm, .pdf, .xlsx, .xls. Single place for "file → text + metadata".

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup, Comment

from interrogator.core.config import ALLOWED_EXTENSIONS, MAX_FILE_SIZE_BYTES
from interrogator.core.errors import DocumentLoadError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ALLOWED_EXTENSIONS

# Elements whose text is never document content
NOISE_TAGS = ("script", "style", "noscript")
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Document:
    """One logical text unit loaded from a file."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def supported_formats() -> list[str]:
    return sorted(SUPPORTED_EXTENSIONS)


def extract_text_from_html(markup: str) -> str:
    """Drop script/style/noscript elements and comments, keep visible text, collapse whitespace."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in NOISE_TAGS:
        for elem in soup.find_all(tag):
            elem.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    return _WS_RE.sub(" ", soup.get_text(" ")).strip()


def decode_text(raw: bytes) -> tuple[str, str]:
    """Decode as UTF-8, falling back to Latin-1 (never fails). Returns (text, encoding)."""
    try:
        return raw.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return raw.decode("latin-1"), "latin-1"


def validate_file(path: str | Path) -> Path:
    """
    Check existence, size ceiling, and extension before anything is read.

    Raises:
        DocumentLoadError: with a message naming what is wrong.
    """
    p = Path(path)
    if not p.is_file():
        raise DocumentLoadError(f"File not found: {p}")
    size = p.stat().st_size
    if size > MAX_FILE_SIZE_BYTES:
        raise DocumentLoadError(
            f"File too large: {size} bytes (max {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB)"
        )
    ext = p.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise DocumentLoadError(
            f"Unsupported file type: {ext or '<none>'}. Supported: {', '.join(supported_formats())}"
        )
    return p


def load_document(path: str | Path) -> Document:
    """
    Load a witness document as a single Document.

    Metadata: source (path), filename, file_type, file_size_bytes, encoding.
    """
    p = validate_file(path)
    ext = p.suffix.lower()
    raw = p.read_bytes()
    logger.info("[loader:load_document] IN  path=%s ext=%s size=%d", p, ext, len(raw))

    encoding = "utf-8"
    if ext == ".txt":
        text, encoding = decode_text(raw)
        file_type = "txt"
    elif ext in (".html", ".htm"):
        markup, encoding = decode_text(raw)
        text = extract_text_from_html(markup)
        file_type = "html"
    elif ext == ".pdf":
        text = _read_pdf(raw)
        file_type = "pdf"
        encoding = "binary"
    else:
        text = _read_excel(raw)
        file_type = "excel"
        encoding = "binary"

    metadata = {
        "source": str(p),
        "filename": p.name,
        "file_type": file_type,
        "file_size_bytes": len(raw),
        "encoding": encoding,
    }
    logger.info("[loader:load_document] OUT filename=%s encoding=%s text_len=%d", p.name, encoding, len(text))
    return Document(text=text, metadata=metadata)


def _read_pdf(raw: bytes) -> str:
    from pypdf import PdfReader
    reader = PdfReader(io.BytesIO(raw))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _read_excel(raw: bytes) -> str:
    import pandas as pd
    df = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None)
    parts = []
    for sheet_df in df.values():
        parts.append(sheet_df.astype(str).to_csv(sep=" ", index=False, header=False))
    return "\n\n".join(parts)
