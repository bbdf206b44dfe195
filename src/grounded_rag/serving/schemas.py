"""Request / response schemas for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from grounded_rag.rag.question import RankedSection
from grounded_rag.retrieval.models import Source
from grounded_rag.storage.models import DocumentMetadata


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class AnalyzeResponse(BaseModel):
    success: bool = True
    document_id: str | None = None
    filename: str
    file_type: str
    word_count: int
    token_count: int
    summary: str
    total_chunks: int
    embedded_chunks: int
    usage: dict[str, int] = Field(default_factory=dict)
    notes: list[str] = Field(default_factory=list)


class SearchResults(BaseModel):
    count: int
    sources: list[Source]


class RagResponse(BaseModel):
    success: bool = True
    timestamp: datetime
    query: str
    response: str
    thoughts: list[str] | None = None
    search_results: SearchResults
    notes: list[str] = Field(default_factory=list)
    usage: dict[str, int] = Field(default_factory=dict)
    execution_ms: int = 0


class DocumentResponse(BaseModel):
    metadata: DocumentMetadata
    summary: str
    content: str


class DocumentContentResponse(BaseModel):
    id: str
    content: str
    chunked: bool
    total_chunks: int
    is_binary: bool
    file_type: str | None = None
    from_chunks: bool = False


class QuestionRequest(BaseModel):
    question: str = ""
    document_id: str | None = None
    content: str | None = None
    filename: str | None = None


class QuestionResponse(BaseModel):
    answer: str
    sources: list[RankedSection]
    retrieval_method: str
    notes: list[str] = Field(default_factory=list)


def as_dict(body: Any) -> dict[str, Any]:
    return body if isinstance(body, dict) else {}
