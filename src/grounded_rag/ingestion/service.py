"""Ingestion service — file or text in, stored document out.

Pipeline::

    extract → statistics → (summary ‖ chunk + embed) → store
"""

from __future__ import annotations

import asyncio
import logging
import math

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.errors import InvalidRequestError
from grounded_rag.ingestion.chunker import chunk_text, effective_overlap
from grounded_rag.ingestion.embedder import EmbeddingGenerator
from grounded_rag.ingestion.loader import FileType, extract_text_async, file_type_from_name
from grounded_rag.ingestion.summarizer import Summarizer
from grounded_rag.storage.document_store import DocumentStore, sanitize_text

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


def count_words(text: str) -> int:
    return len(text.split())


class IngestionResult(BaseModel):
    """What the caller learns about an ingested document.

    ``document_id`` is ``None`` when storage failed; the analysis fields
    are still populated.
    """

    document_id: str | None = None
    filename: str
    file_type: str
    word_count: int
    token_count: int
    summary: str
    total_chunks: int = 0
    embedded_chunks: int = 0
    usage: dict[str, int] = Field(default_factory=dict)
    notes: list[str] = Field(default_factory=list)


class IngestionService:
    """Analyse, chunk, embed and store documents.

    Parameters
    ----------
    store:
        Destination document store.
    embedder:
        Embedding generator for the chunks.
    summarizer:
        Summary generator.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingGenerator,
        summarizer: Summarizer,
        *,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        extract_timeout: float = settings.backend_timeout,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._summarizer = summarizer
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.extract_timeout = extract_timeout

    async def ingest_upload(self, filename: str, data: bytes) -> IngestionResult:
        """Extract text from an uploaded file and ingest it.

        Raises
        ------
        InvalidRequestError
            For unsupported extensions, unparseable files, or files
            without any text.
        """
        file_type = file_type_from_name(filename or "")
        if file_type is None:
            raise InvalidRequestError(f"Unsupported file type: {filename!r} (use .pdf, .docx, .txt or .md)")
        try:
            text = await extract_text_async(data, file_type, timeout=self.extract_timeout)
        except Exception as exc:
            logger.warning("Could not extract text from %s: %s", filename, exc)
            raise InvalidRequestError(f"Could not extract text from {filename}: {exc}") from exc
        return await self.ingest(filename, file_type, text)

    async def ingest(self, filename: str, file_type: FileType | str, text: str) -> IngestionResult:
        """Ingest already-extracted *text*."""
        if not isinstance(text, str) or not text.strip():
            raise InvalidRequestError("Input must be a non-empty string")
        file_type = FileType(file_type).value

        word_count = count_words(text)
        token_count = estimate_tokens(text)
        logger.info("Ingesting %s (%s): %d words, ~%d tokens", filename, file_type, word_count, token_count)

        # Chunks are cut from the sanitised text the store keeps.
        chunks = chunk_text(sanitize_text(text), self.chunk_size, self.chunk_overlap)
        summary, embedded = await asyncio.gather(
            self._summarizer.summarize(text),
            self._embedder.embed(chunks),
        )

        notes: list[str] = []
        if summary.error:
            notes.append(f"Summary unavailable ({summary.error}).")
        failed = sum(1 for c in embedded if not c.has_embedding)
        if failed:
            notes.append(f"{failed} of {len(embedded)} chunk(s) were stored without embeddings.")

        metadata = await self._store.store_document_with_embeddings(
            filename,
            file_type,
            text,
            summary.text,
            word_count,
            token_count,
            embedded,
            chunk_overlap=effective_overlap(self.chunk_size, self.chunk_overlap),
        )
        if metadata is None:
            notes.append("The document could not be stored.")

        return IngestionResult(
            document_id=metadata.id if metadata else None,
            filename=filename,
            file_type=file_type,
            word_count=word_count,
            token_count=token_count,
            summary=summary.text,
            total_chunks=len(embedded),
            embedded_chunks=len(embedded) - failed,
            usage=summary.usage,
            notes=notes,
        )