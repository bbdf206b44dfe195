"""Document loaders: binary-format detection and text extraction.

PDF and DOCX parsing is delegated to LangChain community loaders, which
read from a path.  Bytes are therefore spilled to a temporary file that
is removed on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader

from grounded_rag.config import settings

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Source formats accepted for ingestion."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


_EXTENSIONS: dict[str, FileType] = {
    ".pdf": FileType.PDF,
    ".docx": FileType.DOCX,
    ".txt": FileType.TXT,
    ".md": FileType.TXT,
}


def file_type_from_name(filename: str) -> FileType | None:
    """Map a filename to its :class:`FileType`, or ``None`` if unsupported."""
    return _EXTENSIONS.get(Path(filename).suffix.lower())


def detect_content_type(content: str) -> FileType:
    """Classify stored content that may be a raw binary payload.

    >>> detect_content_type("%PDF-1.7 ...")
    <FileType.PDF: 'pdf'>
    >>> detect_content_type("plain words")
    <FileType.TXT: 'txt'>
    """
    if not content:
        return FileType.TXT
    if content.startswith("%PDF") or "%PDF-" in content:
        return FileType.PDF
    if content.startswith("PK") or "[Content_Types]" in content or "word/document.xml" in content:
        return FileType.DOCX
    return FileType.TXT


def extract_text(data: bytes, file_type: FileType) -> str:
    """Extract plain text from PDF/DOCX bytes (blocking).

    Raises whatever the underlying parser raises; callers decide how to
    degrade.
    """
    if file_type is FileType.TXT:
        return data.decode("utf-8", errors="replace")

    fd, path = tempfile.mkstemp(suffix=f".{file_type.value}", prefix="grounded-rag-")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        docs = _load(path, file_type)
        text = "\n\n".join(d.page_content for d in docs if d.page_content)
        logger.info("Extracted %d chars from %s payload (%d bytes)", len(text), file_type.value, len(data))
        return text
    finally:
        try:
            os.unlink(path)
        except OSError:
            logger.warning("Could not remove temporary file %s", path, exc_info=True)


def _load(path: str, file_type: FileType) -> list[Document]:
    if file_type is FileType.PDF:
        return PyPDFLoader(path).load()
    return Docx2txtLoader(path).load()


async def extract_text_async(
    data: bytes,
    file_type: FileType,
    *,
    timeout: float = settings.backend_timeout,
) -> str:
    """Run :func:`extract_text` off the event loop, bounded by *timeout*."""
    return await asyncio.wait_for(asyncio.to_thread(extract_text, data, file_type), timeout=timeout)


async def extract_text_from_stored_content(content: str, file_type: FileType) -> str:
    """Best-effort extraction for a binary payload persisted as a string.

    Returns an empty string when the payload cannot be parsed.
    """
    data = content.encode("latin-1", errors="ignore")
    try:
        return (await extract_text_async(data, file_type)).strip()
    except Exception as exc:
        logger.warning("Text extraction from stored %s content failed: %s", file_type.value, exc)
        return ""
