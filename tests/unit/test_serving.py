"""Unit tests for the serving layer."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from grounded_rag.config import settings
from grounded_rag.errors import ConfigurationError
from grounded_rag.ingestion.embedder import EmbeddingGenerator
from grounded_rag.ingestion.service import IngestionService
from grounded_rag.ingestion.summarizer import SUMMARY_UNAVAILABLE, Summarizer
from grounded_rag.rag.context import ContextAssembler
from grounded_rag.rag.graph import build_graph
from grounded_rag.rag.question import DocumentQuestionAnswerer
from grounded_rag.rag.synthesizer import AnswerSynthesizer
from grounded_rag.retrieval.retriever import Retriever
from grounded_rag.serving.app import create_app
from grounded_rag.serving.dependencies import Services
from grounded_rag.storage.document_store import DocumentStore
from grounded_rag.storage.memory_store import InMemoryDocumentBackend
from tests.fakes import FakeChatModel, FakeDetailClient, FakeEmbeddings, FakeSearchClient

HITS = [{"documentId": "d-1", "fileName": "lease.pdf", "score": 0.7, "text": "Notice is sixty days."}]


class UnconfiguredServices(Services):
    @property
    def rag_graph(self):
        raise ConfigurationError("SEARCH_API_KEY is required for the search service")


def _services(search: FakeSearchClient | None = None, cls: type[Services] = Services) -> Services:
    store = DocumentStore(InMemoryDocumentBackend(), retry_delay=0)
    embedder = EmbeddingGenerator(FakeEmbeddings(), batch_delay=0)
    llm = FakeChatModel(['{"answer": "Sixty days [lease.pdf].", "thoughts": ["Read source 1."]}'])
    kwargs = {
        "store": store,
        "ingestion": IngestionService(store, embedder, Summarizer(FakeChatModel(["## Summary"]))),
        "question_answerer": DocumentQuestionAnswerer(store, embedder, FakeChatModel(["From the document."])),
    }
    if cls is Services:
        kwargs["rag_graph"] = build_graph(
            Retriever(search or FakeSearchClient(HITS)),
            ContextAssembler(FakeDetailClient()),
            AnswerSynthesizer(llm),
        )
    return cls(**kwargs)


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app(_services()))


def _ingest(client: TestClient, text: str = "Rent is due monthly. Notice is sixty days.") -> str:
    response = client.post("/analyze", json={"input": text, "filename": "lease.txt"})
    assert response.status_code == 200
    return response.json()["document_id"]


# ── Health ─────────────────────────────────────────────────────────────


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ── Analyze ────────────────────────────────────────────────────────────


class TestAnalyze:
    def test_json_text(self, client: TestClient) -> None:
        body = client.post("/analyze", json={"input": "Rent is due monthly."}).json()
        assert body["success"] is True
        assert body["filename"] == "input.txt"
        assert body["word_count"] == 4
        assert body["token_count"] == 5
        assert body["summary"] == "## Summary"
        assert body["document_id"].startswith("doc_")

    def test_file_upload(self, client: TestClient) -> None:
        files = {"file": ("notes.txt", b"Deposit equals two months of rent.", "text/plain")}
        body = client.post("/analyze", files=files).json()
        assert body["file_type"] == "txt"
        assert body["word_count"] == 6

    def test_unsupported_upload(self, client: TestClient) -> None:
        files = {"file": ("photo.png", b"\x89PNG", "image/png")}
        response = client.post("/analyze", files=files)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_missing_input(self, client: TestClient) -> None:
        assert client.post("/analyze", json={"input": "  "}).status_code == 400

    def test_missing_credentials_degrade(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "openai_api_key", "")
        monkeypatch.setattr(settings, "llm_base_url", "")
        monkeypatch.setattr(settings, "document_backend", "memory")
        client = TestClient(create_app(Services()))

        body = client.post("/analyze", json={"input": "Rent is due monthly."}).json()
        assert body["document_id"].startswith("doc_")
        assert body["embedded_chunks"] == 0
        assert body["summary"] == SUMMARY_UNAVAILABLE
        assert len(body["notes"]) == 2

    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post("/analyze", content=b"{not json", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON in request body"


# ── RAG ────────────────────────────────────────────────────────────────


class TestRag:
    def test_answer_with_sources(self, client: TestClient) -> None:
        body = client.post("/rag", json={"query": "Notice period?", "collection_id": 12}).json()
        assert body["success"] is True
        assert body["response"] == "Sixty days [lease.pdf]."
        assert body["thoughts"] == ["Read source 1."]
        assert body["search_results"]["count"] == 1
        assert body["search_results"]["sources"][0]["file_name"] == "lease.pdf"
        assert body["execution_ms"] >= 0

    def test_bucket_id_alias(self) -> None:
        search = FakeSearchClient(HITS)
        client = TestClient(create_app(_services(search)))
        assert client.post("/rag", json={"query": "q", "bucketId": "99"}).status_code == 200
        assert search.calls[0][0] == "99"

    def test_include_thoughts_accepts_only_booleans(self, client: TestClient) -> None:
        body = client.post("/rag", json={"query": "q", "collection_id": 1, "include_thoughts": "false"}).json()
        assert body["thoughts"] == ["Read source 1."]

        body = client.post("/rag", json={"query": "q", "collection_id": 1, "include_thoughts": False}).json()
        assert body["thoughts"] is None

    @pytest.mark.parametrize("body", [{"collection_id": 1}, {"query": "q"}, {"query": "", "collection_id": 1}])
    def test_missing_fields(self, client: TestClient, body: dict) -> None:
        assert client.post("/rag", json=body).status_code == 400

    def test_unconfigured_search_is_503(self) -> None:
        client = TestClient(create_app(_services(cls=UnconfiguredServices)))
        response = client.post("/rag", json={"query": "q", "collection_id": 1})
        assert response.status_code == 503
        assert "SEARCH_API_KEY" in response.json()["error"]


# ── Documents ──────────────────────────────────────────────────────────


class TestDocuments:
    def test_get_document(self, client: TestClient) -> None:
        doc_id = _ingest(client)
        body = client.get(f"/documents/{doc_id}").json()
        assert body["metadata"]["id"] == doc_id
        assert body["metadata"]["filename"] == "lease.txt"
        assert body["content"] == "Rent is due monthly. Notice is sixty days."

    def test_content(self, client: TestClient) -> None:
        doc_id = _ingest(client)
        body = client.get(f"/documents/{doc_id}/content").json()
        assert body["id"] == doc_id
        assert body["is_binary"] is False

    def test_list(self, client: TestClient) -> None:
        doc_id = _ingest(client)
        ids = [d["id"] for d in client.get("/documents").json()["documents"]]
        assert ids == [doc_id]

    def test_list_runs_off_the_event_loop(self, client: TestClient) -> None:
        threaded = []
        to_thread = asyncio.to_thread

        async def tracking(func, /, *args, **kwargs):
            threaded.append(func)
            return await to_thread(func, *args, **kwargs)

        with patch("asyncio.to_thread", tracking):
            client.get("/documents")
        assert client.app.state.services.store.backend.list_documents in threaded

    def test_delete(self, client: TestClient) -> None:
        doc_id = _ingest(client)
        assert client.delete(f"/documents/{doc_id}").json() == {"success": True, "id": doc_id}
        assert client.get(f"/documents/{doc_id}").status_code == 404

    @pytest.mark.parametrize("path", ["/documents/doc_missing", "/documents/doc_missing/content"])
    def test_unknown_document_is_404(self, client: TestClient, path: str) -> None:
        response = client.get(path)
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Document doc_missing not found"}

    def test_delete_unknown(self, client: TestClient) -> None:
        assert client.delete("/documents/doc_missing").status_code == 404


class TestDocumentQuestion:
    def test_question_about_stored_document(self, client: TestClient) -> None:
        doc_id = _ingest(client)
        body = client.post("/documents/question", json={"question": "Notice?", "document_id": doc_id}).json()
        assert body["answer"] == "From the document."
        assert body["retrieval_method"] == "embeddings"
        assert body["sources"]

    def test_inline_content(self, client: TestClient) -> None:
        body = client.post("/documents/question", json={"question": "Rent?", "content": "Rent is 900."}).json()
        assert body["answer"] == "From the document."

    def test_missing_question(self, client: TestClient) -> None:
        assert client.post("/documents/question", json={"content": "x"}).status_code == 400

    def test_unknown_document(self, client: TestClient) -> None:
        response = client.post("/documents/question", json={"question": "q?", "document_id": "doc_missing"})
        assert response.status_code == 404
