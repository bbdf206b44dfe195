"""Abstract clients for the external search and document-detail services.

Adding a new index provider only requires subclassing these two ABCs;
the retriever and context assembler never see provider-specific shapes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class SearchClientBase(ABC):
    """Backend-agnostic search interface."""

    @abstractmethod
    async def search(self, collection_id: str, query: str, *, limit: int = 10) -> dict[str, Any]:
        """Run *query* against *collection_id*.

        The returned dict **must** contain:

        * ``"results"`` – list of raw result dicts (``documentId``,
          ``fileName``, ``score``, ``text``, ``metadata``, …)
        * ``"text"`` – the service's combined context text (may be empty)
        """
        ...


class DocumentDetailClientBase(ABC):
    """Backend-agnostic document-detail interface."""

    @abstractmethod
    async def get_document(self, document_id: str) -> dict[str, Any]:
        """Return the raw detail payload for *document_id*.

        Expected keys (all optional): ``pages`` (``pageNumber``,
        ``imageUrl``), ``metadata``, ``title``, ``fileName``, ``xrayUrl``.
        Implementations raise on transport or HTTP errors.
        """
        ...
