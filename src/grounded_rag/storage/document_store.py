"""Document store service — chunked persistence on top of a backend.

The service decides whether a document is stored whole or chunked,
keeps a readable preview on the document record, reconstructs the full
text from chunks on demand, and retries reads that the backend fails.

Usage::

    from grounded_rag.storage import DocumentStore, InMemoryDocumentBackend

    store = DocumentStore(InMemoryDocumentBackend())
    meta  = await store.store_document_with_embeddings(
        "report.pdf", "pdf", text, summary, words, tokens, embedded_chunks,
    )
    full  = await store.get_full_document_content(meta.id)
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable

from grounded_rag.config import settings
from grounded_rag.errors import DocumentStoreError
from grounded_rag.ingestion.chunker import join_chunks
from grounded_rag.ingestion.embedder import EmbeddedChunk
from grounded_rag.ingestion.loader import FileType, detect_content_type, extract_text_from_stored_content
from grounded_rag.storage.base import DocumentBackend
from grounded_rag.storage.models import (
    PREVIEW_MARKER,
    DocumentMetadata,
    DocumentRecord,
    ServedContent,
    StoredChunk,
)

logger = logging.getLogger(__name__)

# Control characters that backends reject; newline, tab and CR survive.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

UNREADABLE_BINARY_MESSAGE = (
    "This document appears to be a {kind} file, but its text could not be "
    "extracted. Try re-uploading the original file."
)

Extractor = Callable[[str, FileType], Awaitable[str]]


def sanitize_text(text: str) -> str:
    """Remove NUL and other control characters from *text*."""
    return _CONTROL_CHARS.sub("", text or "")


class DocumentStore:
    """Persist documents with their chunks and serve them back.

    Parameters
    ----------
    backend:
        Concrete :class:`DocumentBackend`.
    chunk_threshold:
        Texts longer than this are always stored chunked.
    preview_chars:
        Length of the preview kept on chunked records.
    read_retries / retry_delay:
        Extra read attempts for :meth:`get_document` and the pause (in
        seconds) before each one.
    extractor:
        Coroutine turning binary-looking stored content into text.
    """

    def __init__(
        self,
        backend: DocumentBackend,
        *,
        chunk_threshold: int = settings.chunked_storage_threshold,
        preview_chars: int = settings.preview_chars,
        read_retries: int = settings.document_read_retries,
        retry_delay: float = settings.document_retry_delay,
        extractor: Extractor = extract_text_from_stored_content,
    ) -> None:
        self._backend = backend
        self.chunk_threshold = chunk_threshold
        self.preview_chars = preview_chars
        self.read_retries = max(0, read_retries)
        self.retry_delay = retry_delay
        self._extract = extractor

    @property
    def backend(self) -> DocumentBackend:
        return self._backend

    # -- write path -----------------------------------------------------------

    async def store_document_with_embeddings(
        self,
        filename: str,
        file_type: str,
        full_text: str,
        summary: str,
        word_count: int,
        token_count: int,
        chunks: list[EmbeddedChunk],
        *,
        chunk_overlap: int = 0,
    ) -> DocumentMetadata | None:
        """Store a document and its (possibly unembedded) chunks.

        The document is chunked when more than one chunk was produced or
        the text exceeds ``chunk_threshold``; a chunked record keeps only
        a preview followed by :data:`PREVIEW_MARKER`.  *chunk_overlap* is
        the number of characters consecutive chunks share; it is kept on
        the metadata so the full text can be rebuilt.

        Returns
        -------
        DocumentMetadata | None
            The stored metadata, or ``None`` when the backend write failed
            (anything partially written is removed first).
        """
        text = sanitize_text(full_text)
        chunked = len(chunks) > 1 or len(text) > self.chunk_threshold
        if chunked and not chunks:
            chunks = [EmbeddedChunk(text=text)]

        metadata = DocumentMetadata(
            filename=filename,
            file_type=file_type,
            word_count=word_count,
            token_count=token_count,
            chunked=chunked,
            total_chunks=len(chunks),
            chunk_overlap=max(0, chunk_overlap) if len(chunks) > 1 else 0,
            has_embeddings=any(c.has_embedding for c in chunks),
        )
        content = text[: self.preview_chars] + PREVIEW_MARKER if chunked else text
        record = DocumentRecord(metadata=metadata, content=content, summary=sanitize_text(summary))
        stored_chunks = [
            StoredChunk(document_id=metadata.id, index=i, text=sanitize_text(c.text), embedding=c.embedding)
            for i, c in enumerate(chunks)
        ]

        try:
            await asyncio.to_thread(self._backend.put_document, record, stored_chunks)
        except Exception:
            logger.exception("Storing document %s (%s) failed; removing partial writes", metadata.id, filename)
            try:
                await asyncio.to_thread(self._backend.delete_document, metadata.id)
            except Exception as cleanup_exc:
                logger.warning("Cleanup of %s failed: %s", metadata.id, cleanup_exc)
            return None

        logger.info(
            "Stored document %s (%s): chunked=%s chunks=%d embeddings=%s",
            metadata.id, filename, chunked, len(stored_chunks), metadata.has_embeddings,
        )
        return metadata

    # -- read path ------------------------------------------------------------

    async def get_document(self, document_id: str) -> DocumentRecord | None:
        """Fetch a document record, retrying misses and backend failures.

        A freshly written document may not be visible yet, so "not found"
        is retried like an error.  The last attempt decides the outcome.

        Raises
        ------
        DocumentStoreError
            When the last attempt raised.
        """
        attempts = self.read_retries + 1
        last_exc: Exception | None = None
        for attempt in range(attempts):
            if attempt:
                await asyncio.sleep(self.retry_delay)
            try:
                record = await asyncio.to_thread(self._backend.get_document, document_id)
            except Exception as exc:
                last_exc = exc
                logger.warning("Read of %s failed (attempt %d/%d): %s", document_id, attempt + 1, attempts, exc)
                continue
            if record is not None:
                return record
            last_exc = None
            logger.debug("Document %s not found (attempt %d/%d)", document_id, attempt + 1, attempts)
        if last_exc is not None:
            raise DocumentStoreError(f"could not read document {document_id}: {last_exc}") from last_exc
        return None

    async def get_chunks(self, document_id: str) -> list[StoredChunk]:
        """Return the chunks of *document_id* sorted by index."""
        chunks = await asyncio.to_thread(self._backend.get_chunks, document_id)
        return sorted(chunks, key=lambda c: c.index)

    async def get_full_document_content(self, document_id: str) -> str | None:
        """Return the complete text of a document.

        Chunked documents are rebuilt from their chunks in index order,
        with the shared overlap dropped.  Returns ``None`` when the
        document or its chunks are missing or unreadable; callers fall
        back to the stored preview.
        """
        try:
            record = await self.get_document(document_id)
        except DocumentStoreError as exc:
            logger.warning("Full content of %s unavailable: %s", document_id, exc)
            return None
        if record is None:
            return None
        if not record.metadata.chunked:
            return record.content

        try:
            chunks = await self.get_chunks(document_id)
        except Exception as exc:
            logger.warning("Could not read chunks of %s: %s", document_id, exc)
            return None
        if not chunks:
            logger.warning("Document %s is marked chunked but has no chunks", document_id)
            return None
        if len(chunks) != record.metadata.total_chunks:
            logger.warning(
                "Document %s has %d of %d chunks", document_id, len(chunks), record.metadata.total_chunks
            )
            return None
        return join_chunks([c.text for c in chunks], record.metadata.chunk_overlap)

    async def get_servable_content(self, document_id: str) -> ServedContent | None:
        """Return readable content, extracting text from binary payloads.

        Previously extracted text is served directly.  Otherwise the
        stored content is classified with :func:`detect_content_type`;
        binary content is parsed, and on success the text is cached on
        the record (best effort).
        """
        record = await self.get_document(document_id)
        if record is None:
            return None
        meta = record.metadata

        if record.extracted_text:
            return ServedContent(
                content=record.extracted_text,
                chunked=meta.chunked,
                total_chunks=meta.total_chunks,
                is_binary=True,
                file_type=meta.file_type,
            )

        content = record.content
        from_chunks = False
        if meta.chunked:
            full = await self.get_full_document_content(document_id)
            if full is not None:
                content, from_chunks = full, True

        kind = detect_content_type(content)
        if kind is FileType.TXT:
            return ServedContent(
                content=content,
                chunked=meta.chunked,
                total_chunks=meta.total_chunks,
                is_binary=False,
                file_type=meta.file_type,
                from_chunks=from_chunks,
            )

        logger.info("Document %s holds binary %s content; extracting text", document_id, kind.value)
        text = await self._extract(content, kind)
        if not text:
            return ServedContent(
                content=UNREADABLE_BINARY_MESSAGE.format(kind=kind.value.upper()),
                chunked=meta.chunked,
                total_chunks=meta.total_chunks,
                is_binary=True,
                file_type=kind.value,
                from_chunks=from_chunks,
            )

        try:
            await asyncio.to_thread(self._backend.set_extracted_text, document_id, text)
        except Exception as exc:
            logger.warning("Could not cache extracted text for %s: %s", document_id, exc)

        return ServedContent(
            content=text,
            chunked=meta.chunked,
            total_chunks=meta.total_chunks,
            is_binary=True,
            file_type=kind.value,
            from_chunks=from_chunks,
        )

    # -- delete ---------------------------------------------------------------

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document and all its chunks; ``False`` if it was absent."""
        deleted = await asyncio.to_thread(self._backend.delete_document, document_id)
        if deleted:
            logger.info("Deleted document %s", document_id)
        return deleted
