"""Context assembly — enrich search results and build the prompt block.

Detail fetches run concurrently and are joined with all-settled
semantics: a source whose fetch fails or times out is still returned,
with a narrative line explaining what is missing.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from pydantic import BaseModel, Field

from grounded_rag.config import settings
from grounded_rag.retrieval.base import DocumentDetailClientBase
from grounded_rag.retrieval.models import (
    DocumentDetail,
    PageImage,
    SearchResponse,
    SearchResult,
    Source,
    SourceMetadata,
)

logger = logging.getLogger(__name__)

MAX_KEY_PHRASES = 5
MAX_SECTIONS = 5

_HEADING = re.compile(r"^\s*([A-Z][^.!?:\n]{1,80}):", re.MULTILINE)
_SIGNAL = re.compile(r"\b(important|key|significant|result|conclusion|finding)", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


class AssembledContext(BaseModel):
    """Enriched sources (same order as the search results) and the prompt text."""

    sources: list[Source] = Field(default_factory=list)
    prompt_context: str = ""


# ── Text heuristics ───────────────────────────────────────────────────


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if s.strip()]


def extract_key_phrases(text: str, limit: int = MAX_KEY_PHRASES) -> list[str]:
    """Heading-like lines followed by signal-word sentences, de-duplicated.

    >>> extract_key_phrases("Summary: ok. The key result is clear.")
    ['Summary', 'The key result is clear.']
    """
    phrases: list[str] = []
    for match in _HEADING.finditer(text or ""):
        phrase = match.group(1).strip()
        if phrase not in phrases:
            phrases.append(phrase)
    for sentence in split_sentences(text):
        if _SIGNAL.search(sentence) and sentence not in phrases:
            phrases.append(sentence)
    return phrases[:limit]


def extract_sections(text: str, limit: int = MAX_SECTIONS) -> list[str]:
    """Split *text* into at most *limit* readable sections.

    Blank-line paragraphs are preferred; if that yields one section or
    fewer, single lines are used; failing that, runs of three sentences.
    """
    text = (text or "").strip()
    if not text:
        return []
    sections = [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]
    if len(sections) <= 1:
        sections = [line.strip() for line in text.split("\n") if line.strip()]
    if len(sections) <= 1:
        sentences = split_sentences(text)
        sections = [" ".join(sentences[i : i + 3]) for i in range(0, len(sentences), 3)]
    return sections[:limit]


# ── Detail parsing ────────────────────────────────────────────────────


def parse_document_detail(raw: dict[str, Any]) -> DocumentDetail:
    pages: list[PageImage] = []
    for page in raw.get("pages") or []:
        if not isinstance(page, dict):
            continue
        number, url = page.get("pageNumber"), page.get("imageUrl")
        if isinstance(number, int) and isinstance(url, str) and url:
            pages.append(PageImage(page_number=number, image_url=url))
    metadata = raw.get("metadata")
    return DocumentDetail(
        title=raw.get("title") if isinstance(raw.get("title"), str) else None,
        file_name=raw.get("fileName") if isinstance(raw.get("fileName"), str) else None,
        metadata=SourceMetadata.from_raw(metadata if isinstance(metadata, dict) else {}),
        pages=pages,
        xray_url=raw.get("xrayUrl") if isinstance(raw.get("xrayUrl"), str) else None,
    )


# ── Assembler ─────────────────────────────────────────────────────────


class ContextAssembler:
    """Turn a :class:`SearchResponse` into enriched sources and a prompt block.

    Parameters
    ----------
    detail_client:
        Document-detail service.  ``None`` skips detail fetching; every
        source then carries a narrative note saying so.
    timeout:
        Upper bound in seconds for each detail fetch.
    """

    def __init__(
        self,
        detail_client: DocumentDetailClientBase | None,
        *,
        timeout: float = settings.backend_timeout,
    ) -> None:
        self._detail_client = detail_client
        self.timeout = timeout

    async def assemble(self, search: SearchResponse, query: str = "") -> AssembledContext:
        """Enrich every result; ``len(sources) == len(search.results)``."""
        outcomes = await asyncio.gather(
            *(self._fetch_detail(r) for r in search.results),
            return_exceptions=True,
        )
        sources = [self._enrich(result, outcome) for result, outcome in zip(search.results, outcomes)]
        failed = sum(1 for s in sources if s.document_id and not s.detail_available)
        if failed:
            logger.warning("Document detail unavailable for %d of %d source(s)", failed, len(sources))
        return AssembledContext(sources=sources, prompt_context=build_prompt_context(query, search, sources))

    async def _fetch_detail(self, result: SearchResult) -> DocumentDetail | None:
        if not result.document_id or self._detail_client is None:
            return None
        raw = await asyncio.wait_for(self._detail_client.get_document(result.document_id), timeout=self.timeout)
        return parse_document_detail(raw or {})

    def _enrich(self, result: SearchResult, outcome: DocumentDetail | BaseException | None) -> Source:
        narrative = [_describe(result)]
        metadata = result.metadata
        pages: list[PageImage] = []
        detail_available = False
        has_xray = False

        if isinstance(outcome, BaseException):
            reason = "timed out" if isinstance(outcome, asyncio.TimeoutError) else str(outcome) or type(outcome).__name__
            logger.warning("Detail fetch for %s failed: %s", result.document_id, reason)
            narrative.append(f"Extended details for this document could not be retrieved ({reason}).")
        elif outcome is None:
            if not result.document_id:
                narrative.append("No document id was returned, so extended details were not requested.")
            else:
                narrative.append("Document detail lookup is not configured.")
        else:
            detail_available = True
            detail_meta = outcome.metadata
            if outcome.title and not detail_meta.title:
                detail_meta = detail_meta.model_copy(update={"title": outcome.title})
            metadata = metadata.merged_with(detail_meta)
            pages = outcome.pages
            has_xray = outcome.xray_url is not None
            if pages:
                narrative.append(f"{len(pages)} page image(s) available.")

        return Source(
            **result.model_dump(exclude={"metadata"}),
            metadata=metadata,
            key_phrases=extract_key_phrases(result.text),
            extracted_sections=extract_sections(result.text),
            narrative=narrative,
            pages=pages,
            detail_available=detail_available,
            has_xray=has_xray,
        )


def _describe(result: SearchResult) -> str:
    where = f" (page {result.metadata.page})" if result.metadata.page is not None else ""
    if result.score is None:
        return f"Retrieved from {result.file_name}{where}; no relevance score was reported."
    return f"Retrieved from {result.file_name}{where} with relevance score {result.score:.2f}."


def build_prompt_context(query: str, search: SearchResponse, sources: list[Source]) -> str:
    """Render the numbered, citable context block given to the model."""
    parts = [f'# Search Results for Query: "{query}"\n']
    if search.raw_context_text:
        parts.append(f"## Original Search Context\n{search.raw_context_text}\n")
    for i, source in enumerate(sources, 1):
        lines = [f"## Source {i}: {source.file_name}"]
        if source.metadata.title:
            lines.append(f"Title: {source.metadata.title}")
        if source.metadata.page is not None:
            lines.append(f"Page: {source.metadata.page}")
        lines.append("")
        lines.append(f"Content:\n{source.text}")
        if source.key_phrases:
            lines.append("")
            lines.append("Key Phrases:")
            lines.extend(f"- {p}" for p in source.key_phrases)
        lines.append("\n---\n")
        parts.append("\n".join(lines))
    return "\n".join(parts)
