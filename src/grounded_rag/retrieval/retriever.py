"""Retriever — query the external index and normalise its results.

This module is the **primary public interface** for retrieval.  It turns
the provider's loosely-typed payload into :class:`SearchResponse` so
that the context assembler only ever sees typed results.

Usage::

    from grounded_rag.retrieval import Retriever

    retriever = Retriever(GroundXClient())
    response  = await retriever.search("What is the notice period?", "1234")
    for r in response.results:
        print(r.file_name, r.score, r.text[:80])
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from grounded_rag.config import settings
from grounded_rag.errors import InvalidRequestError
from grounded_rag.retrieval.base import SearchClientBase
from grounded_rag.retrieval.models import SearchResponse, SearchResult, SourceMetadata

logger = logging.getLogger(__name__)

# Checked in order; the first positive number wins.
_SCORE_FIELDS: tuple[tuple[str, str], ...] = (
    ("score", "primary"),
    ("relevanceScore", "relevance"),
    ("rankingScore", "ranking"),
)


def extract_best_score(raw: dict[str, Any]) -> tuple[float | None, str]:
    """Return ``(score, source)`` for a raw search hit.

    Top-level score fields are tried first, then ``metadata.score`` and
    ``searchData.score``.  When none is a positive number the score is
    ``None`` with source ``"default"``.
    """
    for key, source in _SCORE_FIELDS:
        value = raw.get(key)
        if _is_positive_number(value):
            return float(value), source
    for container, source in (("metadata", "metadata"), ("searchData", "searchData")):
        nested = raw.get(container)
        if isinstance(nested, dict) and _is_positive_number(nested.get("score")):
            return float(nested["score"]), source
    return None, "default"


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _as_text(value: Any) -> str:
    """Strings pass through; numbers are rendered; anything else is empty."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


class Retriever:
    """Search a collection through any :class:`SearchClientBase`.

    Parameters
    ----------
    client:
        Concrete search client.
    limit:
        Maximum number of results requested.
    timeout:
        Upper bound in seconds for the search call.
    """

    def __init__(
        self,
        client: SearchClientBase,
        *,
        limit: int = settings.search_result_limit,
        timeout: float = settings.backend_timeout,
    ) -> None:
        self._client = client
        self.limit = limit
        self.timeout = timeout

    async def search(self, query: str, collection_id: str | int | None) -> SearchResponse:
        """Run *query* against *collection_id*.

        Raises
        ------
        InvalidRequestError
            If the query or the collection id is missing.  No call is made.
        """
        if not query or not str(query).strip():
            raise InvalidRequestError("Query is required")
        if collection_id is None or not str(collection_id).strip():
            raise InvalidRequestError("Collection id is required")

        raw = await asyncio.wait_for(
            self._client.search(str(collection_id), query, limit=self.limit),
            timeout=self.timeout,
        )
        results: list[SearchResult] = []
        for hit in raw.get("results") or []:
            if not isinstance(hit, dict):
                continue
            try:
                results.append(self._to_result(hit))
            except ValidationError as exc:
                logger.warning("Skipping malformed search hit %r: %s", hit.get("documentId"), exc)
        logger.info("Retrieved %d result(s) for collection %s", len(results), collection_id)
        return SearchResponse(
            result_count=len(results),
            raw_context_text=_as_text(raw.get("text")),
            results=results,
        )

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _to_result(hit: dict[str, Any]) -> SearchResult:
        document_id = str(hit.get("documentId") or "")
        score, score_source = extract_best_score(hit)
        raw_meta = hit.get("metadata") or hit.get("searchData") or {}
        metadata = SourceMetadata.from_raw(raw_meta if isinstance(raw_meta, dict) else {})
        if metadata.source_url is None and isinstance(hit.get("sourceUrl"), str):
            metadata.source_url = hit["sourceUrl"]
        highlight = hit.get("highlight") or {}
        highlights = highlight.get("text") if isinstance(highlight, dict) else None
        return SearchResult(
            document_id=document_id,
            file_name=_as_text(hit.get("fileName")) or f"Document {document_id}",
            score=score,
            score_source=score_source,
            text=_as_text(hit.get("text")) or _as_text(hit.get("suggestedText")),
            metadata=metadata,
            highlights=[h for h in highlights or [] if isinstance(h, str)],
        )
