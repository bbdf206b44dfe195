"""
Retrieval — search over the external index and document detail lookup.

This module wraps the search service behind a clean interface so that
the RAG layer never needs to know which provider backs retrieval.

Public surface
--------------
- :class:`Retriever` — main entry point for search.
- :class:`SearchClientBase`, :class:`DocumentDetailClientBase` — abstract clients.
- :class:`GroundXClient` — HTTP implementation of both clients.
- :class:`SearchResult`, :class:`SearchResponse`, :class:`Source`,
  :class:`SourceMetadata`, :class:`DocumentDetail` — data models.
"""

from grounded_rag.retrieval.base import DocumentDetailClientBase, SearchClientBase
from grounded_rag.retrieval.groundx_client import GroundXClient
from grounded_rag.retrieval.models import (
    DocumentDetail,
    PageImage,
    SearchResponse,
    SearchResult,
    Source,
    SourceMetadata,
)
from grounded_rag.retrieval.retriever import Retriever, extract_best_score

__all__ = [
    "DocumentDetail",
    "DocumentDetailClientBase",
    "GroundXClient",
    "PageImage",
    "Retriever",
    "SearchClientBase",
    "SearchResponse",
    "SearchResult",
    "Source",
    "SourceMetadata",
    "extract_best_score",
]
