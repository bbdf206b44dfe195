"""Abstract base class for document-store backends.

A new backend (Postgres, S3 + index, …) only needs to subclass
:class:`DocumentBackend`.  Backends are synchronous; the
:class:`~grounded_rag.storage.document_store.DocumentStore` service adds
retries, fallbacks, and the chunking decision on top.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from grounded_rag.storage.models import DocumentRecord, StoredChunk


class DocumentBackend(ABC):
    """Backend-agnostic persistence for documents and their chunks."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def put_document(self, record: DocumentRecord, chunks: list[StoredChunk]) -> None:
        """Persist *record* and its *chunks*.

        Raising leaves the store free to call :meth:`delete_document` to
        clean up anything partially written.
        """
        ...

    @abstractmethod
    def get_document(self, document_id: str) -> DocumentRecord | None:
        """Return the stored record, or ``None`` if it does not exist."""
        ...

    @abstractmethod
    def get_chunks(self, document_id: str) -> list[StoredChunk]:
        """Return every chunk of *document_id* (any order)."""
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> bool:
        """Delete the record and all of its chunks.

        The record must disappear before the chunks so that readers never
        observe a document whose chunks are half gone.  Returns ``False``
        if the document did not exist.
        """
        ...

    @abstractmethod
    def set_extracted_text(self, document_id: str, text: str) -> bool:
        """Attach extracted plain text to an existing record."""
        ...

    # -- optional overrides ---------------------------------------------------

    def list_documents(self) -> list[DocumentRecord]:
        """Return every stored record.  Optional — raises by default."""
        raise NotImplementedError(f"{type(self).__name__} does not support listing")
