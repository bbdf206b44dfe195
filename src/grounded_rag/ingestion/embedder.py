"""Batched embedding generation with per-batch failure isolation.

The generator talks to anything implementing LangChain's asynchronous
``Embeddings`` interface (``aembed_documents``).  A failed batch never
drops text: its chunks come back with an empty vector and the error
recorded, so storage can proceed and the caller can see which chunks
still need embedding.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.errors import ConfigurationError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_BATCH_DELAY = 0.2


class EmbeddingClient(Protocol):
    """Subset of ``langchain_core.embeddings.Embeddings`` used here."""

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]: ...


class EmbeddedChunk(BaseModel):
    """A chunk paired with its vector (empty when embedding failed)."""

    text: str
    embedding: list[float] = Field(default_factory=list)
    error: str | None = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class EmbeddingGenerator:
    """Embed chunks in sequential batches against an external API.

    Parameters
    ----------
    client:
        Embedding client.  ``None`` means embeddings are not configured;
        every chunk is then returned with an empty vector.
    batch_size:
        Texts per API call.
    batch_delay:
        Seconds to pause between batches (rate limiting).  No pause
        follows the final batch.
    timeout:
        Upper bound in seconds for a single batch call.
    """

    def __init__(
        self,
        client: EmbeddingClient | None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        timeout: float = settings.backend_timeout,
    ) -> None:
        self._client = client
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.timeout = timeout

    async def embed(self, chunks: list[str]) -> list[EmbeddedChunk]:
        """Return exactly one :class:`EmbeddedChunk` per input chunk, in order."""
        results: list[EmbeddedChunk] = []
        if not chunks:
            return results

        if self._client is None:
            logger.error("No embedding client configured; storing %d chunks without vectors", len(chunks))
            return [EmbeddedChunk(text=c, error="embedding client not configured") for c in chunks]

        try:
            for start in range(0, len(chunks), self.batch_size):
                batch = chunks[start : start + self.batch_size]
                results.extend(await self._embed_batch(batch, start, len(chunks)))

                if start + self.batch_size < len(chunks) and self.batch_delay > 0:
                    await asyncio.sleep(self.batch_delay)
        except Exception as exc:
            logger.exception("Embedding aborted after %d of %d chunks", len(results), len(chunks))
            results.extend(
                EmbeddedChunk(text=c, error=f"embedding aborted: {exc}") for c in chunks[len(results) :]
            )

        embedded = sum(1 for r in results if r.has_embedding)
        logger.info("Embedded %d / %d chunks", embedded, len(chunks))
        return results

    async def _embed_batch(self, batch: list[str], start: int, total: int) -> list[EmbeddedChunk]:
        end = start + len(batch)
        logger.info("Generating embeddings for chunks %d to %d of %d", start + 1, end, total)
        try:
            vectors = await asyncio.wait_for(self._client.aembed_documents(batch), timeout=self.timeout)
            if len(vectors) != len(batch):
                raise ValueError(f"expected {len(batch)} vectors, got {len(vectors)}")
        except Exception as exc:
            logger.warning("Embedding batch %d-%d failed: %s", start + 1, end, exc)
            return [EmbeddedChunk(text=text, error=str(exc) or type(exc).__name__) for text in batch]

        return [EmbeddedChunk(text=text, embedding=list(vec)) for text, vec in zip(batch, vectors)]


def build_embedding_client(
    provider: str = settings.embedding_provider,
    model: str = settings.embedding_model,
) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``"openai"`` requires ``OPENAI_API_KEY``; ``"huggingface"`` runs a
    local sentence-transformer and needs the ``local-embeddings`` extra.
    """
    if provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for OpenAI embeddings")
        from langchain_openai import OpenAIEmbeddings

        return OpenAIEmbeddings(model=model, api_key=settings.openai_api_key)

    if provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=model)

    raise ConfigurationError(f"Unsupported embedding provider: {provider!r}")
