"""
Storage — persistence of documents, chunks, and their embeddings.

Public surface
--------------
- :class:`DocumentStore` — chunking decision, reconstruction, retries.
- :class:`DocumentBackend` — abstract backend (subclass for new databases).
- :class:`InMemoryDocumentBackend` — process-local backend.
- :class:`ChromaDocumentBackend` — Chroma backend.
- :func:`build_document_backend` — backend selected by ``DOCUMENT_BACKEND``.
"""

from grounded_rag.storage.base import DocumentBackend
from grounded_rag.storage.document_store import DocumentStore
from grounded_rag.storage.memory_store import InMemoryDocumentBackend
from grounded_rag.storage.models import DocumentMetadata, DocumentRecord, ServedContent, StoredChunk

__all__ = [
    "ChromaDocumentBackend",
    "DocumentBackend",
    "DocumentMetadata",
    "DocumentRecord",
    "DocumentStore",
    "InMemoryDocumentBackend",
    "ServedContent",
    "StoredChunk",
    "build_document_backend",
]


def build_document_backend(kind: str | None = None) -> DocumentBackend:
    """Return the backend named by *kind* (default: ``settings.document_backend``)."""
    from grounded_rag.config import settings
    from grounded_rag.errors import ConfigurationError

    kind = (kind or settings.document_backend).lower()
    if kind == "memory":
        return InMemoryDocumentBackend()
    if kind == "chroma":
        from grounded_rag.storage.chroma_store import ChromaDocumentBackend

        return ChromaDocumentBackend()
    raise ConfigurationError(f"Unknown document backend: {kind!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaDocumentBackend to avoid pulling in chromadb at import time."""
    if name == "ChromaDocumentBackend":
        from grounded_rag.storage.chroma_store import ChromaDocumentBackend

        return ChromaDocumentBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
