"""In-memory fakes for every external client used by the pipeline."""

from __future__ import annotations

import asyncio
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage

from grounded_rag.retrieval.base import DocumentDetailClientBase, SearchClientBase


class FakeEmbeddings:
    """Deterministic embeddings; selected calls (1-based) can be made to fail."""

    def __init__(self, fail_on_calls: set[int] | None = None, dim: int = 3) -> None:
        self.fail_on_calls = fail_on_calls or set()
        self.dim = dim
        self.calls: list[list[str]] = []

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_on_calls:
            raise RuntimeError(f"embedding call {len(self.calls)} failed")
        return [self.vector_for(t) for t in texts]

    def vector_for(self, text: str) -> list[float]:
        words = text.lower().split()
        base = [float(len(text) % 7 + 1), float(len(words)), 1.0]
        if "alpha" in words:
            base = [10.0, 0.0, 0.0]
        if "beta" in words:
            base = [0.0, 10.0, 0.0]
        return (base + [0.0] * self.dim)[: self.dim]


class FakeChatModel:
    """Chat model returning canned replies and recording every call."""

    def __init__(self, responses: list[str] | None = None, *, error: Exception | None = None) -> None:
        self.responses = list(responses or ["ok"])
        self.error = error
        self.calls: list[list[BaseMessage]] = []
        self.bound: list[dict[str, Any]] = []

    def bind(self, **kwargs: Any) -> FakeChatModel:
        self.bound.append(kwargs)
        return self

    async def ainvoke(self, messages: list[BaseMessage], **kwargs: Any) -> AIMessage:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        content = self.responses[min(len(self.calls), len(self.responses)) - 1]
        return AIMessage(content=content)


class FakeSearchClient(SearchClientBase):
    """Returns a fixed payload or raises *error*."""

    def __init__(self, results: list[dict[str, Any]] | None = None, text: str = "", error: Exception | None = None) -> None:
        self.results = results or []
        self.text = text
        self.error = error
        self.calls: list[tuple[str, str, int]] = []

    async def search(self, collection_id: str, query: str, *, limit: int = 10) -> dict[str, Any]:
        self.calls.append((collection_id, query, limit))
        if self.error is not None:
            raise self.error
        return {"results": self.results, "text": self.text}


class FakeDetailClient(DocumentDetailClientBase):
    """Per-document payloads; an ``Exception`` value is raised, a float sleeps."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        self.details = details or {}
        self.requested: list[str] = []

    async def get_document(self, document_id: str) -> dict[str, Any]:
        self.requested.append(document_id)
        value = self.details.get(document_id, {})
        if isinstance(value, Exception):
            raise value
        if isinstance(value, float):
            await asyncio.sleep(value)
            return {}
        return value
