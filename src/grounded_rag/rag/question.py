"""Question answering against a single stored (or inline) document.

Sections are ranked by cosine similarity when vectors are available,
otherwise by keyword overlap.  The best sections are handed to the model
as the only permitted context.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Any

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.errors import DocumentNotFoundError, InvalidRequestError
from grounded_rag.ingestion.chunker import chunk_text
from grounded_rag.ingestion.embedder import EmbeddedChunk, EmbeddingGenerator
from grounded_rag.rag.prompts import build_document_question_messages
from grounded_rag.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

TOP_K = 5
RETURNED_SOURCES = 3
ANSWER_ERROR = "Sorry, I encountered an error while trying to answer your question."

STOP_WORDS = frozenset(
    {"a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "with", "about", "is", "are", "was", "were"}
)
_NON_WORD = re.compile(r"[^\w\s]")


class RankedSection(BaseModel):
    text: str
    score: float


class DocumentAnswer(BaseModel):
    answer: str
    sources: list[RankedSection] = Field(default_factory=list)
    retrieval_method: str = "keywords"
    notes: list[str] = Field(default_factory=list)


# ── Ranking ───────────────────────────────────────────────────────────


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between *a* and *b*; ``0.0`` for unusable input."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def rank_by_embedding(query_vector: list[float], chunks: list[EmbeddedChunk], top_k: int = TOP_K) -> list[RankedSection]:
    scored = [
        RankedSection(text=c.text, score=cosine_similarity(query_vector, c.embedding))
        for c in chunks
        if c.has_embedding
    ]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:top_k]


def extract_keywords(question: str) -> list[str]:
    words = _NON_WORD.sub("", question.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def rank_by_keywords(question: str, texts: list[str], top_k: int = TOP_K) -> list[RankedSection]:
    """Score *texts* by keyword occurrences, normalised into ``[0.5, 0.95]``."""
    keywords = extract_keywords(question)
    if not keywords:
        return [RankedSection(text=t, score=0.5) for t in texts[:top_k]]

    patterns = [re.compile(rf"\b{re.escape(k)}\b") for k in keywords]
    raw = []
    for text in texts:
        lowered = text.lower()
        hits = sum(len(p.findall(lowered)) for p in patterns)
        raw.append((hits / len(keywords), text))
    raw.sort(key=lambda pair: pair[0], reverse=True)
    return [RankedSection(text=t, score=min(0.95, max(0.5, s / 5))) for s, t in raw[:top_k]]


# ── Answerer ──────────────────────────────────────────────────────────


class DocumentQuestionAnswerer:
    """Answer a question from one document's content.

    Parameters
    ----------
    store:
        Document store used to load stored documents and chunks.
    embedder:
        Embedding generator; ``None`` forces keyword ranking.
    llm:
        LangChain chat model.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingGenerator | None,
        llm: Any,
        *,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
        timeout: float = settings.backend_timeout,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._llm = llm
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.timeout = timeout

    async def answer(
        self,
        question: str,
        *,
        document_id: str | None = None,
        content: str | None = None,
        filename: str | None = None,
    ) -> DocumentAnswer:
        """Answer *question* from a stored document or inline *content*.

        Raises
        ------
        InvalidRequestError
            If the question is empty or neither a document id nor
            content is given.
        DocumentNotFoundError
            If *document_id* does not exist.
        """
        if not question or not question.strip():
            raise InvalidRequestError("Question is required")
        if not document_id and not content:
            raise InvalidRequestError("A document id or document content is required")

        chunks: list[EmbeddedChunk] = []
        if document_id:
            record = await self._store.get_document(document_id)
            if record is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            filename = filename or record.metadata.filename
            if record.metadata.has_embeddings:
                stored = await self._store.get_chunks(document_id)
                chunks = [EmbeddedChunk(text=c.text, embedding=c.embedding) for c in stored]
            if not any(c.has_embedding for c in chunks):
                served = await self._store.get_servable_content(document_id)
                content = served.content if served else record.content
                chunks = []

        if not chunks:
            texts = chunk_text(content or "", self.chunk_size, self.chunk_overlap)
            chunks = await self._embedder.embed(texts) if self._embedder else [EmbeddedChunk(text=t) for t in texts]

        sections, method = await self._rank(question, chunks)
        context = "\n\n".join(
            f"SECTION {i} (relevance: {s.score:.2f}):\n{s.text}" for i, s in enumerate(sections, 1)
        )

        notes: list[str] = []
        messages = build_document_question_messages(question, context, filename or "document")
        try:
            response = await asyncio.wait_for(self._llm.ainvoke(messages), timeout=self.timeout)
            answer = response.content if isinstance(response.content, str) else str(response.content)
        except Exception as exc:
            logger.warning("Document question failed: %s", exc)
            answer = ANSWER_ERROR
            notes.append(f"Language model unavailable ({str(exc) or type(exc).__name__}).")

        return DocumentAnswer(
            answer=answer or "I couldn't generate an answer for this question.",
            sources=sections[:RETURNED_SOURCES],
            retrieval_method=method,
            notes=notes,
        )

    async def _rank(self, question: str, chunks: list[EmbeddedChunk]) -> tuple[list[RankedSection], str]:
        if self._embedder is not None and any(c.has_embedding for c in chunks):
            query = (await self._embedder.embed([question]))[0]
            if query.has_embedding:
                return rank_by_embedding(query.embedding, chunks), "embeddings"
            logger.warning("Question embedding failed; ranking by keywords")
        return rank_by_keywords(question, [c.text for c in chunks]), "keywords"
