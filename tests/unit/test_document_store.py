"""Unit tests for the document store service and the in-memory backend."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from grounded_rag.errors import DocumentStoreError
from grounded_rag.ingestion.embedder import EmbeddedChunk
from grounded_rag.ingestion.loader import FileType
from grounded_rag.storage.document_store import DocumentStore, sanitize_text
from grounded_rag.storage.memory_store import InMemoryDocumentBackend
from grounded_rag.storage.models import PREVIEW_MARKER, DocumentRecord, StoredChunk


def _store(backend: InMemoryDocumentBackend | None = None, **kwargs) -> DocumentStore:
    kwargs.setdefault("retry_delay", 0)
    return DocumentStore(backend or InMemoryDocumentBackend(), **kwargs)


def _save(store: DocumentStore, text: str, chunks: list[EmbeddedChunk], overlap: int = 0):
    return asyncio.run(
        store.store_document_with_embeddings(
            "report.txt", "txt", text, "A summary.", 10, 20, chunks, chunk_overlap=overlap
        )
    )


class FailingPutBackend(InMemoryDocumentBackend):
    def __init__(self) -> None:
        super().__init__()
        self.deleted: list[str] = []

    def put_document(self, record: DocumentRecord, chunks: list[StoredChunk]) -> None:
        super().put_document(record, chunks)
        raise RuntimeError("disk full")

    def delete_document(self, document_id: str) -> bool:
        self.deleted.append(document_id)
        return super().delete_document(document_id)


class ReadOnlyCacheBackend(InMemoryDocumentBackend):
    def set_extracted_text(self, document_id: str, text: str) -> bool:
        raise PermissionError("read-only collection")


class FlakyReadBackend(InMemoryDocumentBackend):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.reads = 0

    def get_document(self, document_id: str) -> DocumentRecord | None:
        self.reads += 1
        if self.reads <= self.failures:
            raise ConnectionError("backend unavailable")
        return super().get_document(document_id)


# ── Writing ────────────────────────────────────────────────────────────


class TestStoreDocument:
    def test_single_chunk_document_is_not_chunked(self) -> None:
        store = _store()
        meta = _save(store, "Short text.", [EmbeddedChunk(text="Short text.", embedding=[1.0])])
        assert meta is not None
        assert meta.chunked is False
        assert meta.has_embeddings is True
        record = asyncio.run(store.get_document(meta.id))
        assert record.content == "Short text."

    def test_multiple_chunks_store_preview(self) -> None:
        store = _store(preview_chars=10)
        text = "abcdefghijklmnopqrstuvwxyz"
        chunks = [EmbeddedChunk(text=text[:13]), EmbeddedChunk(text=text[13:])]
        meta = _save(store, text, chunks)

        assert meta.chunked is True
        assert meta.total_chunks == 2
        assert meta.has_embeddings is False
        record = asyncio.run(store.get_document(meta.id))
        assert record.content == "abcdefghij" + PREVIEW_MARKER

    def test_long_text_is_chunked_even_without_chunks(self) -> None:
        store = _store(chunk_threshold=20)
        text = "x" * 50
        meta = _save(store, text, [])
        assert meta.chunked is True
        assert meta.total_chunks == 1
        assert asyncio.run(store.get_full_document_content(meta.id)) == text

    def test_control_characters_are_removed(self) -> None:
        assert sanitize_text("a\x00b\x07c\nd\te") == "abc\nd\te"
        store = _store()
        meta = _save(store, "nul\x00byte", [])
        assert asyncio.run(store.get_document(meta.id)).content == "nulbyte"

    def test_write_failure_cleans_up_and_returns_none(self) -> None:
        backend = FailingPutBackend()
        meta = _save(_store(backend), "text", [EmbeddedChunk(text="a"), EmbeddedChunk(text="b")])
        assert meta is None
        assert len(backend.deleted) == 1
        assert backend.list_documents() == []


# ── Reading ────────────────────────────────────────────────────────────


class TestReadDocument:
    def test_full_content_concatenates_chunks_in_index_order(self) -> None:
        backend = InMemoryDocumentBackend()
        store = _store(backend)
        meta = _save(store, "one two three", [EmbeddedChunk(text="one "), EmbeddedChunk(text="two "), EmbeddedChunk(text="three")])
        # Backends may return chunks in any order.
        backend._chunks[meta.id].reverse()
        assert asyncio.run(store.get_full_document_content(meta.id)) == "one two three"

    def test_full_content_of_unchunked_document_is_stored_content(self) -> None:
        store = _store()
        meta = _save(store, "plain", [])
        first = asyncio.run(store.get_full_document_content(meta.id))
        second = asyncio.run(store.get_full_document_content(meta.id))
        assert first == second == "plain"

    def test_full_content_drops_chunk_overlap(self) -> None:
        store = _store()
        text = "Rent is due monthly. Notice is sixty days."
        chunks = [EmbeddedChunk(text=text[:25]), EmbeddedChunk(text=text[19:])]
        meta = _save(store, text, chunks, overlap=6)
        assert meta.chunk_overlap == 6
        assert asyncio.run(store.get_full_document_content(meta.id)) == text

    def test_full_content_is_none_when_reads_keep_failing(self) -> None:
        backend = FlakyReadBackend(failures=10)
        store = _store(backend, read_retries=1)
        meta = _save(store, "ab", [EmbeddedChunk(text="a"), EmbeddedChunk(text="b")])
        assert asyncio.run(store.get_full_document_content(meta.id)) is None
        assert backend.reads == 2

    def test_missing_chunks_yield_none(self) -> None:
        backend = InMemoryDocumentBackend()
        store = _store(backend)
        meta = _save(store, "ab", [EmbeddedChunk(text="a"), EmbeddedChunk(text="b")])
        backend._chunks[meta.id].pop()
        assert asyncio.run(store.get_full_document_content(meta.id)) is None

    def test_unknown_document(self) -> None:
        store = _store()
        assert asyncio.run(store.get_document("doc_missing")) is None
        assert asyncio.run(store.get_full_document_content("doc_missing")) is None

    def test_read_is_retried(self) -> None:
        backend = FlakyReadBackend(failures=2)
        store = _store(backend)
        meta = _save(store, "hello", [])
        assert asyncio.run(store.get_document(meta.id)).content == "hello"
        assert backend.reads == 3

    def test_missing_document_is_retried_before_none(self) -> None:
        backend = FlakyReadBackend(failures=0)
        assert asyncio.run(_store(backend).get_document("doc_x")) is None
        assert backend.reads == 3

    def test_read_gives_up_after_retries(self) -> None:
        backend = FlakyReadBackend(failures=10)
        store = _store(backend, read_retries=2)
        with pytest.raises(DocumentStoreError):
            asyncio.run(store.get_document("doc_x"))
        assert backend.reads == 3


# ── Deleting ───────────────────────────────────────────────────────────


class TestDeleteDocument:
    def test_delete_removes_record_and_chunks(self) -> None:
        backend = InMemoryDocumentBackend()
        store = _store(backend)
        meta = _save(store, "ab", [EmbeddedChunk(text="a"), EmbeddedChunk(text="b")])
        assert asyncio.run(store.delete_document(meta.id)) is True
        assert asyncio.run(store.get_document(meta.id)) is None
        assert backend.get_chunks(meta.id) == []

    def test_delete_unknown_document(self) -> None:
        assert asyncio.run(_store().delete_document("doc_nope")) is False


# ── Serving content ────────────────────────────────────────────────────


class TestServableContent:
    def test_plain_text_is_served_as_is(self) -> None:
        store = _store()
        meta = _save(store, "Just words.", [])
        served = asyncio.run(store.get_servable_content(meta.id))
        assert served.content == "Just words."
        assert served.is_binary is False

    def test_binary_content_is_extracted_and_cached(self) -> None:
        extractor = MagicMock()

        async def extract(content: str, file_type: FileType) -> str:
            extractor(content, file_type)
            return "Extracted words."

        backend = InMemoryDocumentBackend()
        store = _store(backend, extractor=extract)
        meta = _save(store, "%PDF-1.4 binary junk", [])

        served = asyncio.run(store.get_servable_content(meta.id))
        assert served.content == "Extracted words."
        assert served.is_binary is True
        assert served.file_type == "pdf"
        assert backend.get_document(meta.id).metadata.has_extracted_text is True

        # Cached text is served without extracting again.
        asyncio.run(store.get_servable_content(meta.id))
        assert extractor.call_count == 1

    def test_failed_cache_write_still_serves_text(self) -> None:
        async def extract(content: str, file_type: FileType) -> str:
            return "Extracted."

        backend = ReadOnlyCacheBackend()
        store = _store(backend, extractor=extract)
        meta = _save(store, "%PDF-1.7 binary junk", [])

        served = asyncio.run(store.get_servable_content(meta.id))
        assert served.content == "Extracted."
        assert served.is_binary is True
        assert backend.get_document(meta.id).metadata.has_extracted_text is False

    def test_unreadable_binary_returns_message(self) -> None:
        async def extract(content: str, file_type: FileType) -> str:
            return ""

        store = _store(extractor=extract)
        meta = _save(store, "PK\x03\x04 word/document.xml", [])
        served = asyncio.run(store.get_servable_content(meta.id))
        assert served.is_binary is True
        assert "DOCX" in served.content

    def test_unknown_document(self) -> None:
        assert asyncio.run(_store().get_servable_content("doc_missing")) is None
