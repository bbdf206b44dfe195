"""Domain models for search results, document detail, and enriched sources."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

_PAGE_KEYS = ("page", "pageNumber", "page_number")
_SOURCE_URL_KEYS = ("sourceUrl", "sourceURL", "source_url", "source_URL", "url", "URL")


class SourceMetadata(BaseModel):
    """Typed view over the loose metadata returned by the search service.

    The fields the pipeline reads (page, section, title, source URL) are
    explicit; everything else is preserved in ``extra``.

    Attributes
    ----------
    page:
        Page number the passage came from, when known.
    section:
        Section heading, when the index reports one.
    title:
        Document title (filled from document detail if missing).
    source_url:
        Link back to the original document.
    extra:
        Every other key, unchanged.
    """

    page: int | None = None
    section: str | None = None
    title: str | None = None
    source_url: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict[str, Any] | None) -> SourceMetadata:
        raw = dict(raw or {})
        page = None
        for key in _PAGE_KEYS:
            if key in raw:
                page = _as_int(raw.pop(key))
                if page is not None:
                    break
        source_url = None
        for key in _SOURCE_URL_KEYS:
            value = raw.pop(key, None)
            if source_url is None and isinstance(value, str) and value:
                source_url = value
        section = raw.pop("section", None)
        title = raw.pop("title", None)
        return cls(
            page=page,
            section=section if isinstance(section, str) else None,
            title=title if isinstance(title, str) else None,
            source_url=source_url,
            extra=raw,
        )

    def merged_with(self, other: SourceMetadata) -> SourceMetadata:
        """Return a copy where *other* fills the fields this one lacks."""
        return SourceMetadata(
            page=self.page if self.page is not None else other.page,
            section=self.section or other.section,
            title=self.title or other.title,
            source_url=self.source_url or other.source_url,
            extra={**self.extra, **other.extra},
        )


class SearchResult(BaseModel):
    """One passage returned by the search service.

    ``score`` is ``None`` when the service reported no positive score;
    ``score_source`` names the field the score was read from.
    """

    document_id: str = ""
    file_name: str
    score: float | None = None
    score_source: str = "default"
    text: str = ""
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    highlights: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Outcome of a single search call."""

    result_count: int = 0
    raw_context_text: str = ""
    results: list[SearchResult] = Field(default_factory=list)


class PageImage(BaseModel):
    page_number: int
    image_url: str


class DocumentDetail(BaseModel):
    """Extended information from the document-detail service."""

    title: str | None = None
    file_name: str | None = None
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    pages: list[PageImage] = Field(default_factory=list)
    xray_url: str | None = None


class Source(SearchResult):
    """A search result enriched for prompting and citation.

    Attributes
    ----------
    key_phrases:
        Heading-like lines and signal sentences, at most five.
    extracted_sections:
        Paragraph / line / sentence-group split of the text, at most five.
    narrative:
        Human-readable notes about this source (e.g. why detail is missing).
    pages:
        Page images reported by the detail service.
    detail_available:
        ``True`` when the detail fetch succeeded.
    has_xray:
        The detail service exposes an X-ray analysis for the document.
    """

    key_phrases: list[str] = Field(default_factory=list)
    extracted_sections: list[str] = Field(default_factory=list)
    narrative: list[str] = Field(default_factory=list)
    pages: list[PageImage] = Field(default_factory=list)
    detail_available: bool = False
    has_xray: bool = False


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
