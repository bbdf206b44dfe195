"""Persistent document and chunk records."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

PREVIEW_MARKER = "\n\n[Content preview only. Full content available in chunks.]"


def new_document_id() -> str:
    return f"doc_{uuid4().hex[:12]}"


class DocumentMetadata(BaseModel):
    """Descriptive fields of a stored document.

    Attributes
    ----------
    id:
        Generated identifier (``doc_<hex>``).
    filename:
        Original file name as uploaded.
    file_type:
        ``pdf``, ``docx`` or ``txt``.
    upload_date:
        UTC timestamp of ingestion.
    word_count / token_count:
        Size statistics computed at ingestion (tokens are estimated).
    chunked:
        When ``True`` the stored content is only a preview and the full
        text lives in the chunk list.
    total_chunks:
        Number of stored chunks.
    chunk_overlap:
        Characters shared by consecutive chunks; dropped again when the
        full text is rebuilt.
    has_embeddings:
        At least one chunk carries a vector.
    has_extracted_text:
        Plain text was extracted from a binary payload and cached.
    """

    id: str = Field(default_factory=new_document_id)
    filename: str
    file_type: str
    upload_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    word_count: int = 0
    token_count: int = 0
    chunked: bool = False
    total_chunks: int = 0
    chunk_overlap: int = 0
    has_embeddings: bool = False
    has_extracted_text: bool = False


class DocumentRecord(BaseModel):
    """Metadata plus the stored content field (a preview when chunked)."""

    metadata: DocumentMetadata
    content: str
    summary: str = ""
    extracted_text: str | None = None


class StoredChunk(BaseModel):
    """One persisted chunk; an empty ``embedding`` means embedding failed."""

    document_id: str
    index: int
    text: str
    embedding: list[float] = Field(default_factory=list)

    @property
    def chunk_id(self) -> str:
        return f"chunk_{self.document_id}_{self.index}"


class ServedContent(BaseModel):
    """Readable content for a document, after binary detection."""

    content: str
    chunked: bool
    total_chunks: int
    is_binary: bool
    file_type: str | None = None
    from_chunks: bool = False
