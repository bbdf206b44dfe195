"""Process-local backend, used for development and tests."""

from __future__ import annotations

from grounded_rag.storage.base import DocumentBackend
from grounded_rag.storage.models import DocumentRecord, StoredChunk


class InMemoryDocumentBackend(DocumentBackend):
    """Dict-backed store.  Every operation completes without awaiting,
    so it is atomic with respect to other coroutines."""

    def __init__(self) -> None:
        self._documents: dict[str, DocumentRecord] = {}
        self._chunks: dict[str, list[StoredChunk]] = {}

    def put_document(self, record: DocumentRecord, chunks: list[StoredChunk]) -> None:
        self._documents[record.metadata.id] = record.model_copy(deep=True)
        if chunks:
            self._chunks[record.metadata.id] = [c.model_copy(deep=True) for c in chunks]

    def get_document(self, document_id: str) -> DocumentRecord | None:
        record = self._documents.get(document_id)
        return record.model_copy(deep=True) if record else None

    def get_chunks(self, document_id: str) -> list[StoredChunk]:
        return [c.model_copy(deep=True) for c in self._chunks.get(document_id, [])]

    def delete_document(self, document_id: str) -> bool:
        existed = self._documents.pop(document_id, None) is not None
        self._chunks.pop(document_id, None)
        return existed

    def set_extracted_text(self, document_id: str, text: str) -> bool:
        record = self._documents.get(document_id)
        if record is None:
            return False
        record.extracted_text = text
        record.metadata.has_extracted_text = True
        return True

    def list_documents(self) -> list[DocumentRecord]:
        return [r.model_copy(deep=True) for r in self._documents.values()]
