"""Chroma implementation of the document-store backend.

Three collections are used:

* ``<prefix>_documents`` — one record per document; the stored content
  (full text or preview) is the Chroma ``document`` and the remaining
  fields are flat metadata.
* ``<prefix>_chunks`` — chunk text keyed by ``chunk_<doc>_<index>``.
* ``<prefix>_chunk_vectors`` — real embeddings for the chunks that have
  one (cosine space).

Chroma requires a vector for every record and a fixed dimension per
collection, so the first two collections carry a one-element
placeholder vector and failed embeddings are simply absent from the
third.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import chromadb

from grounded_rag.config import settings
from grounded_rag.storage.base import DocumentBackend
from grounded_rag.storage.models import DocumentMetadata, DocumentRecord, StoredChunk

logger = logging.getLogger(__name__)

_PLACEHOLDER_VECTOR = [0.0]


def _build_client() -> Any:
    if settings.chroma_host:
        return chromadb.HttpClient(host=settings.chroma_host, port=settings.chroma_port)
    if settings.chroma_persist_dir:
        return chromadb.PersistentClient(path=settings.chroma_persist_dir)
    return chromadb.EphemeralClient()


def _record_to_metadata(record: DocumentRecord) -> dict[str, Any]:
    meta = record.metadata
    flat: dict[str, Any] = {
        "filename": meta.filename,
        "file_type": meta.file_type,
        "upload_date": meta.upload_date.isoformat(),
        "word_count": meta.word_count,
        "token_count": meta.token_count,
        "chunked": meta.chunked,
        "total_chunks": meta.total_chunks,
        "chunk_overlap": meta.chunk_overlap,
        "has_embeddings": meta.has_embeddings,
        "has_extracted_text": meta.has_extracted_text,
        "summary": record.summary,
    }
    # Chroma metadata values must be non-null scalars.
    if record.extracted_text is not None:
        flat["extracted_text"] = record.extracted_text
    return flat


def _metadata_to_record(document_id: str, content: str | None, flat: dict[str, Any]) -> DocumentRecord:
    extra: dict[str, Any] = {}
    if flat.get("upload_date"):
        extra["upload_date"] = datetime.fromisoformat(flat["upload_date"])
    metadata = DocumentMetadata(
        id=document_id,
        filename=flat.get("filename", ""),
        file_type=flat.get("file_type", "txt"),
        **extra,
        word_count=int(flat.get("word_count", 0)),
        token_count=int(flat.get("token_count", 0)),
        chunked=bool(flat.get("chunked", False)),
        total_chunks=int(flat.get("total_chunks", 0)),
        chunk_overlap=int(flat.get("chunk_overlap", 0)),
        has_embeddings=bool(flat.get("has_embeddings", False)),
        has_extracted_text=bool(flat.get("has_extracted_text", False)),
    )
    return DocumentRecord(
        metadata=metadata,
        content=content or "",
        summary=flat.get("summary", ""),
        extracted_text=flat.get("extracted_text"),
    )


class ChromaDocumentBackend(DocumentBackend):
    """Chroma-backed document store.

    Parameters
    ----------
    client:
        A ``chromadb`` client.  When *None*, one is created from the
        global settings (HTTP, persistent, or ephemeral, in that order).
    collection_prefix:
        Prefix for the three collection names.
    """

    def __init__(self, client: Any = None, *, collection_prefix: str = settings.chroma_collection_prefix) -> None:
        self._client = client if client is not None else _build_client()
        self._documents = self._client.get_or_create_collection(f"{collection_prefix}_documents")
        self._chunks = self._client.get_or_create_collection(f"{collection_prefix}_chunks")
        self._vectors = self._client.get_or_create_collection(
            f"{collection_prefix}_chunk_vectors",
            metadata={"hnsw:space": "cosine"},
        )

    # -- DocumentBackend overrides --------------------------------------------

    def put_document(self, record: DocumentRecord, chunks: list[StoredChunk]) -> None:
        document_id = record.metadata.id
        if chunks:
            self._chunks.upsert(
                ids=[c.chunk_id for c in chunks],
                documents=[c.text for c in chunks],
                metadatas=[{"document_id": document_id, "chunk_index": c.index} for c in chunks],
                embeddings=[_PLACEHOLDER_VECTOR for _ in chunks],
            )
            embedded = [c for c in chunks if c.embedding]
            if embedded:
                self._vectors.upsert(
                    ids=[c.chunk_id for c in embedded],
                    embeddings=[c.embedding for c in embedded],
                    metadatas=[{"document_id": document_id, "chunk_index": c.index} for c in embedded],
                )
        # Written last: the document only becomes visible once its chunks exist.
        self._documents.upsert(
            ids=[document_id],
            documents=[record.content],
            metadatas=[_record_to_metadata(record)],
            embeddings=[_PLACEHOLDER_VECTOR],
        )

    def get_document(self, document_id: str) -> DocumentRecord | None:
        result = self._documents.get(ids=[document_id], include=["documents", "metadatas"])
        ids = result.get("ids") or []
        if not ids:
            return None
        content = (result.get("documents") or [""])[0]
        flat = (result.get("metadatas") or [{}])[0] or {}
        return _metadata_to_record(document_id, content, flat)

    def get_chunks(self, document_id: str) -> list[StoredChunk]:
        result = self._chunks.get(where={"document_id": document_id}, include=["documents", "metadatas"])
        vectors = self._vectors.get(where={"document_id": document_id}, include=["embeddings"])
        by_id = {
            vid: [float(x) for x in emb]
            for vid, emb in zip(vectors.get("ids") or [], _as_list(vectors.get("embeddings")))
        }

        chunks: list[StoredChunk] = []
        for cid, text, meta in zip(result.get("ids") or [], result.get("documents") or [], result.get("metadatas") or []):
            chunks.append(
                StoredChunk(
                    document_id=document_id,
                    index=int((meta or {}).get("chunk_index", 0)),
                    text=text or "",
                    embedding=by_id.get(cid, []),
                )
            )
        return chunks

    def delete_document(self, document_id: str) -> bool:
        existed = bool(self._documents.get(ids=[document_id], include=[]).get("ids"))
        self._documents.delete(ids=[document_id])
        self._chunks.delete(where={"document_id": document_id})
        self._vectors.delete(where={"document_id": document_id})
        return existed

    def set_extracted_text(self, document_id: str, text: str) -> bool:
        result = self._documents.get(ids=[document_id], include=["metadatas"])
        if not result.get("ids"):
            return False
        flat = dict((result.get("metadatas") or [{}])[0] or {})
        flat["extracted_text"] = text
        flat["has_extracted_text"] = True
        self._documents.update(ids=[document_id], metadatas=[flat])
        logger.info("Cached %d chars of extracted text for %s", len(text), document_id)
        return True

    def list_documents(self) -> list[DocumentRecord]:
        result = self._documents.get(include=["documents", "metadatas"])
        return [
            _metadata_to_record(did, content, flat or {})
            for did, content, flat in zip(
                result.get("ids") or [], result.get("documents") or [], result.get("metadatas") or []
            )
        ]


def _as_list(value: Any) -> list[Any]:
    # Newer chromadb releases return numpy arrays here.
    if value is None:
        return []
    return list(value)
