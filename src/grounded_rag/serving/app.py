"""FastAPI application exposing ingestion, RAG, and document access."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from grounded_rag.config import configure_logging, settings
from grounded_rag.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentStoreError,
    InvalidRequestError,
)
from grounded_rag.ingestion.loader import FileType
from grounded_rag.rag.graph import run_rag
from grounded_rag.serving.dependencies import Services
from grounded_rag.serving.schemas import (
    AnalyzeResponse,
    DocumentContentResponse,
    DocumentResponse,
    QuestionRequest,
    QuestionResponse,
    RagResponse,
    SearchResults,
    as_dict,
)

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[Exception], int] = {
    InvalidRequestError: 400,
    DocumentNotFoundError: 404,
    DocumentStoreError: 500,
    ConfigurationError: 503,
}


def create_app(services: Services | None = None) -> FastAPI:
    """Build the API.  *services* defaults to components built from settings."""
    app = FastAPI(
        title="Grounded RAG API",
        version="0.1.0",
        description="Document ingestion and grounded, cited question answering.",
    )
    app.state.services = services or Services()

    # ── Error mapping ─────────────────────────────────────────────────
    for exc_type, status in _ERROR_STATUS.items():

        async def _handler(request: Request, exc: Exception, status: int = status) -> JSONResponse:
            if status >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=status, content={"success": False, "error": str(exc)})

        app.add_exception_handler(exc_type, _handler)

    def _services(request: Request) -> Services:
        return request.app.state.services

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(request: Request) -> AnalyzeResponse:
        """Ingest an uploaded file (multipart ``file``) or JSON ``{"input": ...}`` text."""
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            upload = form.get("file")
            if upload is None or isinstance(upload, str):
                raise InvalidRequestError("No file uploaded")
            data = await upload.read()
            result = await _services(request).ingestion.ingest_upload(upload.filename or "", data)
        else:
            body = as_dict(await _read_json(request))
            text = body.get("input")
            if not isinstance(text, str) or not text.strip():
                raise InvalidRequestError("Input must be a valid string")
            filename = body.get("filename") or "input.txt"
            result = await _services(request).ingestion.ingest(filename, FileType.TXT, text)
        return AnalyzeResponse(**result.model_dump())

    @app.post("/rag", response_model=RagResponse)
    async def rag(request: Request) -> RagResponse:
        """Retrieve, assemble, and answer with citations."""
        started = time.perf_counter()
        body = as_dict(await _read_json(request))
        query = body.get("query")
        collection_id = body.get("collection_id", body.get("bucketId"))
        if not isinstance(query, str) or not query.strip():
            raise InvalidRequestError("Query is required")
        if collection_id is None or not str(collection_id).strip():
            raise InvalidRequestError("collection_id is required")
        messages = body.get("messages") or []
        turns = [m for m in messages if isinstance(m, dict)] if isinstance(messages, list) else []
        include_thoughts = body.get("include_thoughts", True)

        result = await run_rag(
            _services(request).rag_graph,
            query,
            collection_id,
            turns=turns,
            want_thoughts=include_thoughts if isinstance(include_thoughts, bool) else True,
        )
        return RagResponse(
            timestamp=datetime.now(timezone.utc),
            query=result.query,
            response=result.answer,
            thoughts=result.thoughts,
            search_results=SearchResults(count=len(result.sources), sources=result.sources),
            notes=result.notes,
            usage=result.usage,
            execution_ms=int((time.perf_counter() - started) * 1000),
        )

    @app.get("/documents")
    async def list_documents(request: Request) -> dict[str, Any]:
        """Metadata of every stored document."""
        store = _services(request).store
        try:
            records = await asyncio.to_thread(store.backend.list_documents)
        except NotImplementedError as exc:
            return JSONResponse(status_code=501, content={"success": False, "error": str(exc)})
        return {"documents": [r.metadata.model_dump(mode="json") for r in records]}

    @app.post("/documents/question", response_model=QuestionResponse)
    async def document_question(request: Request) -> QuestionResponse:
        """Answer a question about one stored document or inline content."""
        payload = QuestionRequest.model_validate(as_dict(await _read_json(request)))
        answer = await _services(request).question_answerer.answer(
            payload.question,
            document_id=payload.document_id,
            content=payload.content,
            filename=payload.filename,
        )
        return QuestionResponse(**answer.model_dump())

    @app.get("/documents/{document_id}", response_model=DocumentResponse)
    async def get_document(document_id: str, request: Request) -> DocumentResponse:
        record = await _services(request).store.get_document(document_id)
        if record is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return DocumentResponse(metadata=record.metadata, summary=record.summary, content=record.content)

    @app.get("/documents/{document_id}/content", response_model=DocumentContentResponse)
    async def get_document_content(document_id: str, request: Request) -> DocumentContentResponse:
        """Readable content; binary payloads are converted to text first."""
        served = await _services(request).store.get_servable_content(document_id)
        if served is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return DocumentContentResponse(id=document_id, **served.model_dump())

    @app.delete("/documents/{document_id}")
    async def delete_document(document_id: str, request: Request) -> dict[str, Any]:
        if not await _services(request).store.delete_document(document_id):
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return {"success": True, "id": document_id}

    return app


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequestError("Invalid JSON in request body") from exc


configure_logging(settings.log_level)
app = create_app()
