"""Shared pytest configuration and fixtures."""

import pytest

from grounded_rag.storage.document_store import DocumentStore
from grounded_rag.storage.memory_store import InMemoryDocumentBackend


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that need a real Chroma client")


@pytest.fixture()
def store() -> DocumentStore:
    """Empty in-memory document store with no pause between read retries."""
    return DocumentStore(InMemoryDocumentBackend(), retry_delay=0)
